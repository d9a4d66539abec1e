"""AI extraction models: create/update responses and request correlation."""

from typing import Optional, Any
from datetime import date
from pydantic import BaseModel, Field, AliasChoices, field_validator
from voiceboard.models.task import (
    Subtask,
    Task,
    TaskPriority,
    TaskStatus,
    parse_due_date,
    unique_tags,
)

SUBTASKS_ALIASES = AliasChoices("subtasks_text", "suggested_subtasks", "subtasks")


def normalize_priority(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower() or None
    return value


def normalize_subtasks_text(value: Any) -> Any:
    """Accept flat strings or {"text": ...} objects; drop blanks."""
    if value is None or not isinstance(value, list):
        return value
    texts = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("text") or item.get("title") or ""
        item = str(item).strip()
        if item:
            texts.append(item)
    return texts


class TaskExtraction(BaseModel):
    """AI response for creating a task from an audio clip."""
    title: str = Field(..., min_length=1, description="Actionable title (3-8 words)")
    project: str = Field(default="Inbox", description="Project name or 'Inbox'")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    context: str = Field(default="", description="Additional details")
    due_date: Optional[date] = Field(None, description="yyyy-MM-dd or null")
    tags: list[str] = Field(default_factory=list)
    needs_clarification: bool = Field(default=False)
    clarification_question: Optional[str] = None
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    subtasks_text: list[str] = Field(
        default_factory=list,
        validation_alias=SUBTASKS_ALIASES,
        description="3-6 actionable steps"
    )

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> Any:
        return normalize_priority(value) or TaskPriority.MEDIUM

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, value: Any) -> Optional[date]:
        return parse_due_date(value)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> list[str]:
        return unique_tags(value)

    @field_validator("context", "project", mode="before")
    @classmethod
    def coerce_text(cls, value: Any, info) -> Any:
        if value is None:
            return "Inbox" if info.field_name == "project" else ""
        return value

    @field_validator("subtasks_text", mode="before")
    @classmethod
    def coerce_subtasks(cls, value: Any) -> Any:
        return normalize_subtasks_text(value) or []


class TaskExtractionUpdate(BaseModel):
    """
    AI response for updating a task from a follow-up recording.

    Every field is optional. A field the model left out (or returned as null)
    leaves the local value untouched.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    project: Optional[str] = None
    priority: Optional[TaskPriority] = None
    context: Optional[str] = None
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None
    needs_clarification: Optional[bool] = None
    clarification_question: Optional[str] = None
    confidence_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    subtasks_text: Optional[list[str]] = Field(None, validation_alias=SUBTASKS_ALIASES)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> Any:
        return normalize_priority(value)

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, value: Any) -> Optional[date]:
        return parse_due_date(value)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> Optional[list[str]]:
        if value is None:
            return None
        return unique_tags(value)

    @field_validator("title", mode="before")
    @classmethod
    def blank_title_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("subtasks_text", mode="before")
    @classmethod
    def coerce_subtasks(cls, value: Any) -> Any:
        return normalize_subtasks_text(value)

    def provided_fields(self) -> set[str]:
        """Names of the fields the AI actually returned with a value."""
        return {
            name for name in self.model_fields_set
            if getattr(self, name) is not None
        }


class TaskSnapshot(BaseModel):
    """Editable state of a task sent to the AI along with a follow-up recording."""
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    subtasks: list[Subtask] = Field(default_factory=list)

    @classmethod
    def from_task(cls, task: Task) -> "TaskSnapshot":
        return cls(
            title=task.title,
            description=task.description,
            priority=task.priority,
            status=task.status,
            subtasks=[subtask.model_copy() for subtask in task.subtasks],
        )


class RequestTag(BaseModel):
    """Identifies one outgoing AI request for a task."""
    task_id: str
    seq: int = Field(..., ge=1)


class TaggedResult(BaseModel):
    """AI response keyed to the request it answers."""
    task_id: str
    seq: int
    payload: Any = None

    @classmethod
    def for_tag(cls, tag: RequestTag, payload: Any) -> "TaggedResult":
        return cls(task_id=tag.task_id, seq=tag.seq, payload=payload)
