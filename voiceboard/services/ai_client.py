"""LLM task extraction using LangChain chat models with JSON output."""

import os
import json
import re
import time
from datetime import date
from typing import Any, Optional
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import ValidationError
from voiceboard.models.extraction import TaskExtraction, TaskExtractionUpdate, TaskSnapshot
from voiceboard.utils.errors import ExtractionError
from voiceboard.utils.logging import (
    get_structured_logger,
    log_timing,
    sanitize_message_text,
)

logger = get_structured_logger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-audio-preview",
    "anthropic": "claude-sonnet-4-20250514",
}

FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

TASK_SHAPE = """{
  "title": "string (3-8 words, starts with an actionable verb)",
  "project": "string (project name or 'Inbox')",
  "priority": "'high' | 'medium' | 'low'",
  "context": "string (additional details)",
  "due_date": "'YYYY-MM-DD' or null",
  "tags": "string[]",
  "needs_clarification": "boolean",
  "clarification_question": "string or null",
  "confidence_score": "float 0.0-1.0",
  "subtasks_text": "string[] (3-6 actionable steps)"
}"""


def _language() -> str:
    return os.environ.get("EXTRACTION_LANGUAGE", "Spanish")


def build_extraction_prompt(today: Optional[date] = None) -> str:
    """Instructions for turning a recording into a new task."""
    today = today or date.today()
    return f"""You are an expert task management assistant. Extract structured task information from {_language()} audio recordings.
Return ONLY a valid JSON object with exactly this structure, no prose and no code fences:

{TASK_SHAPE}

Extraction rules
1. title: the main action, concise. "Call Juan about the budget", not "I need to call Juan".
2. priority:
   - high: "urgent", "asap", "critical", "immediately", "today".
   - low: "someday", "maybe", "eventually".
   - otherwise medium.
3. due_date: resolve relative dates against today ({today.isoformat()}).
   - "tomorrow" -> the day after today.
   - "next week" -> next Monday.
   - "in 3 days" -> today plus 3 days.
   - null when no date is mentioned.
4. project: infer from context, or "Inbox" if none is mentioned.
5. needs_clarification: true only if the action is ambiguous or critical information is missing; then ask one short clarification_question, otherwise null.
6. confidence_score: your confidence in the extraction from 0.0 to 1.0.
7. subtasks_text: 3 to 6 concrete, actionable steps that complete the task, in order.
Write title, context, tags and steps in the language of the recording."""


def build_update_prompt(snapshot: TaskSnapshot, today: Optional[date] = None) -> str:
    """Instructions for refining an existing task from a follow-up recording."""
    today = today or date.today()
    current = snapshot.model_dump(mode="json")
    return f"""You are an expert task management assistant. The user recorded a follow-up voice note ({_language()}) about an existing task.

Current task:
{json.dumps(current, ensure_ascii=False, indent=2)}

Return ONLY a JSON object containing the fields the recording changes. Allowed fields:
"title", "description", "priority" ('high' | 'medium' | 'low'), "project", "due_date" ('YYYY-MM-DD'),
"tags" (string[]), "confidence_score" (0.0-1.0), "subtasks_text" (string[], the complete new list of steps).
Leave out every field the recording does not change. Return {{}} if nothing changes.
Resolve relative dates against today ({today.isoformat()}). No prose and no code fences."""


def build_subtasks_prompt(title: str, description: Optional[str], instruction: Optional[str] = None) -> str:
    """Instructions for decomposing a task into steps."""
    prompt = f"""Decompose the following task into 3 to 6 concrete, actionable steps.

Task: {title}
Details: {description or "(none)"}
"""
    if instruction and instruction.strip():
        prompt += f"\nUser instruction: {instruction.strip()}\n"
    prompt += "\nReturn ONLY a JSON array of strings, one per step, in the language of the task. No prose and no code fences."
    return prompt


def audio_content_block(audio_base64: str, mime_type: str) -> dict:
    """LangChain standard base64 audio block."""
    return {
        "type": "audio",
        "source_type": "base64",
        "data": audio_base64,
        "mime_type": mime_type,
    }


def get_llm_model():
    """Get configured LLM model."""
    provider = os.environ.get("LLM_PROVIDER", "openai").lower()
    model_name = os.environ.get("LLM_MODEL") or DEFAULT_MODELS.get(provider, "")
    temperature = float(os.environ.get("LLM_TEMPERATURE", "0.2"))

    logger.debug(
        "Getting LLM model",
        llm_provider=provider,
        llm_model=model_name
    )

    if provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ExtractionError("OPENAI_API_KEY not set")
        return ChatOpenAI(model=model_name, api_key=api_key, temperature=temperature)
    elif provider == "anthropic":
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ExtractionError("ANTHROPIC_API_KEY not set")
        return ChatAnthropic(model=model_name, api_key=api_key, temperature=temperature)
    else:
        raise ExtractionError(f"Unsupported LLM provider: {provider}")


def response_text(response: Any) -> str:
    """Plain text of a chat model response (string or content blocks)."""
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content)


def parse_json_payload(content: str, expect: type = dict) -> Any:
    """Extract the JSON object (or array) from a model response."""
    if not content or not content.strip():
        raise ExtractionError("Empty LLM response")

    text = FENCE_PATTERN.sub("", content.strip())
    open_char, close_char = ("[", "]") if expect is list else ("{", "}")
    start_idx = text.find(open_char)
    end_idx = text.rfind(close_char) + 1
    if start_idx < 0 or end_idx <= start_idx:
        raise ExtractionError("No JSON found in LLM response")

    try:
        payload = json.loads(text[start_idx:end_idx])
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Failed to parse LLM response: {e}")

    if not isinstance(payload, expect):
        raise ExtractionError(f"Expected JSON {expect.__name__}, got {type(payload).__name__}")
    return payload


class TaskExtractionClient:
    """
    The three AI operations behind the board.

    extract_task and extract_update take an audio clip already encoded for
    transport; generate_subtasks works from text alone. All three raise
    ExtractionError on provider failures, non-JSON output or schema mismatch.
    """

    def __init__(self, model: Any = None):
        self._model = model

    @property
    def model(self):
        if self._model is None:
            self._model = get_llm_model()
        return self._model

    async def _invoke(self, operation: str, messages: list) -> str:
        provider = os.environ.get("LLM_PROVIDER", "openai").lower()
        model_name = os.environ.get("LLM_MODEL") or DEFAULT_MODELS.get(provider, "")

        logger.info(
            "LLM request started",
            operation=operation,
            llm_provider=provider,
            llm_model=model_name
        )

        llm_start_time = time.time()
        with log_timing(f"llm_{operation}", logger=logger):
            try:
                response = await self.model.ainvoke(messages)
            except ExtractionError:
                raise
            except Exception as e:
                logger.error(
                    "LLM request failed",
                    operation=operation,
                    llm_provider=provider,
                    error=str(e)
                )
                raise ExtractionError(f"Failed to process request with {provider}: {e}")

        content = response_text(response)
        logger.info(
            "LLM response received",
            operation=operation,
            llm_provider=provider,
            llm_model=model_name,
            llm_latency_ms=round((time.time() - llm_start_time) * 1000, 2),
            response_size_chars=len(content),
            response_preview=sanitize_message_text(content, max_length=200)
        )
        return content

    async def extract_task(self, audio_base64: str, mime_type: str) -> TaskExtraction:
        messages = [
            SystemMessage(content=build_extraction_prompt()),
            HumanMessage(content=[
                {"type": "text", "text": "Analyze this recording and extract the task."},
                audio_content_block(audio_base64, mime_type),
            ]),
        ]
        payload = parse_json_payload(await self._invoke("extract_task", messages))
        try:
            return TaskExtraction.model_validate(payload)
        except ValidationError as e:
            raise ExtractionError(f"AI response did not match the task schema: {e}")

    async def extract_update(self, snapshot: TaskSnapshot, audio_base64: str, mime_type: str) -> TaskExtractionUpdate:
        messages = [
            SystemMessage(content=build_update_prompt(snapshot)),
            HumanMessage(content=[
                {"type": "text", "text": "Apply this follow-up recording to the task."},
                audio_content_block(audio_base64, mime_type),
            ]),
        ]
        payload = parse_json_payload(await self._invoke("extract_update", messages))
        try:
            return TaskExtractionUpdate.model_validate(payload)
        except ValidationError as e:
            raise ExtractionError(f"AI update did not match the task schema: {e}")

    async def generate_subtasks(
        self,
        title: str,
        description: Optional[str] = None,
        instruction: Optional[str] = None
    ) -> list[str]:
        messages = [HumanMessage(content=build_subtasks_prompt(title, description, instruction))]
        payload = parse_json_payload(await self._invoke("generate_subtasks", messages), expect=list)
        steps = [step.strip() for step in payload if isinstance(step, str)]
        steps = [step for step in steps if step]
        if not steps:
            raise ExtractionError("AI returned no subtasks")
        return steps


_client: Optional[TaskExtractionClient] = None


def get_extraction_client() -> TaskExtractionClient:
    """Get or create global extraction client."""
    global _client
    if _client is None:
        _client = TaskExtractionClient()
    return _client
