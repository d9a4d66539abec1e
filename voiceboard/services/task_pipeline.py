"""Task pipelines - audio/text through the AI, reconciled, then persisted."""

from typing import Optional
from voiceboard.models.extraction import TaggedResult, TaskSnapshot
from voiceboard.models.session import UserSession
from voiceboard.models.task import ManualEdits, MoveIntent, Task
from voiceboard.services.ai_client import TaskExtractionClient, get_extraction_client
from voiceboard.services.audio import AudioClip, encode_audio_clip
from voiceboard.services.edit_session import TaskEditSession
from voiceboard.services.reconciliation import (
    apply_manual_edits,
    build_task_from_extraction,
    merge_extraction_update,
    replace_subtasks,
    resolve_drop,
    toggle_subtask,
)
from voiceboard.services.supabase_client import (
    get_task,
    insert_task,
    reorder_task,
    update_task,
)
from voiceboard.utils.errors import SupabaseError, TaskNotFoundError
from voiceboard.utils.logging import (
    get_structured_logger,
    log_timing,
    mask_user_id,
    sanitize_message_text,
    get_correlation_id,
    timed,
)

logger = get_structured_logger(__name__)

AI_UPDATE_FIELDS = ("title", "description", "priority", "progress", "ai_extracted")
MANUAL_SAVE_FIELDS = ("title", "description", "priority", "status", "progress", "ai_extracted")
CHECKLIST_FIELDS = ("progress", "ai_extracted")


def _changes(task: Task, fields: tuple[str, ...]) -> dict:
    record = task.to_record()
    return {name: record.get(name) for name in fields}


async def load_task(task_id: str) -> Task:
    """Fetch one task or raise TaskNotFoundError."""
    row = await get_task(task_id)
    if row is None:
        raise TaskNotFoundError(f"Task not found: {task_id}")
    return Task.model_validate(row)


async def create_task_from_audio(
    clip: AudioClip,
    session: UserSession,
    ai: Optional[TaskExtractionClient] = None
) -> Task:
    """
    Create one todo task from a recording.

    Nothing is written unless encoding and extraction both succeed. If the
    insert fails, the extracted payload is logged so it is not lost.
    """
    correlation_id = get_correlation_id()
    ai = ai or get_extraction_client()

    logger.info(
        "Create from audio started",
        correlation_id=correlation_id,
        user_id=mask_user_id(session.user_id),
        mime_type=clip.mime_type,
        audio_bytes=len(clip.data),
        duration_seconds=clip.duration_seconds
    )

    audio_base64 = encode_audio_clip(clip)
    extraction = await ai.extract_task(audio_base64, clip.mime_type)
    task = build_task_from_extraction(extraction, created_by=session.user_id)

    try:
        with log_timing("insert_task", logger=logger, correlation_id=correlation_id):
            row = await insert_task(task.to_record())
    except SupabaseError as e:
        logger.error(
            "Task insert failed after extraction",
            correlation_id=correlation_id,
            user_id=mask_user_id(session.user_id),
            extracted_payload=extraction.model_dump(mode="json"),
            error=str(e)
        )
        raise

    created = Task.model_validate(row)
    logger.info(
        "Task created from audio",
        correlation_id=correlation_id,
        task_id=created.id,
        title=sanitize_message_text(created.title, max_length=100),
        priority=created.priority.value,
        subtask_count=len(created.subtasks),
        needs_clarification=created.needs_clarification,
        confidence=extraction.confidence_score
    )
    return created


async def update_task_from_audio(
    task: Task,
    clip: AudioClip,
    edit_session: TaskEditSession,
    ai: Optional[TaskExtractionClient] = None
) -> Task:
    """
    Refine a task from a follow-up recording.

    The response is checked against the request tag before merging, so a
    late answer cannot land on a task the user has since left. On any AI
    failure nothing is written.
    """
    if not task.id:
        raise TaskNotFoundError("Task has no ID")

    correlation_id = get_correlation_id()
    ai = ai or get_extraction_client()
    audio_base64 = encode_audio_clip(clip)

    tag = edit_session.begin(task.id)
    try:
        update = await ai.extract_update(TaskSnapshot.from_task(task), audio_base64, clip.mime_type)
        result = edit_session.accept(TaggedResult.for_tag(tag, update))
        merged = merge_extraction_update(task, result.payload)

        logger.info(
            "AI update merged",
            correlation_id=correlation_id,
            task_id=task.id,
            seq=tag.seq,
            fields_changed=sorted(update.provided_fields()),
            progress=merged.progress
        )

        with log_timing("update_task", logger=logger, correlation_id=correlation_id, task_id=task.id):
            row = await update_task(task.id, _changes(merged, AI_UPDATE_FIELDS))
    finally:
        edit_session.finish(tag)

    return Task.model_validate(row)


async def save_manual_edits(task: Task, edits: ManualEdits) -> Task:
    """Persist form values; clears the clarification flag."""
    if not task.id:
        raise TaskNotFoundError("Task has no ID")

    updated = apply_manual_edits(task, edits)
    row = await update_task(task.id, _changes(updated, MANUAL_SAVE_FIELDS))

    logger.info(
        "Manual edits saved",
        correlation_id=get_correlation_id(),
        task_id=task.id,
        status=updated.status.value,
        priority=updated.priority.value,
        progress=updated.progress,
        cleared_clarification=task.needs_clarification
    )
    return Task.model_validate(row)


async def regenerate_subtasks(
    task: Task,
    instruction: Optional[str] = None,
    ai: Optional[TaskExtractionClient] = None
) -> Task:
    """Replace the checklist with newly generated steps; untouched on failure."""
    if not task.id:
        raise TaskNotFoundError("Task has no ID")

    ai = ai or get_extraction_client()
    steps = await ai.generate_subtasks(task.title, task.description, instruction)
    updated = replace_subtasks(task, steps)
    row = await update_task(task.id, _changes(updated, CHECKLIST_FIELDS))

    logger.info(
        "Subtasks regenerated",
        correlation_id=get_correlation_id(),
        task_id=task.id,
        subtask_count=len(updated.subtasks),
        has_instruction=bool(instruction)
    )
    return Task.model_validate(row)


async def toggle_task_subtask(task: Task, subtask_id: str) -> Task:
    """Flip one checklist item and persist the new progress."""
    if not task.id:
        raise TaskNotFoundError("Task has no ID")

    updated = toggle_subtask(task, subtask_id)
    row = await update_task(task.id, _changes(updated, CHECKLIST_FIELDS))

    logger.debug(
        "Subtask toggled",
        task_id=task.id,
        subtask_id=subtask_id,
        progress=updated.progress
    )
    return Task.model_validate(row)


@timed("move_task", logger=logger)
async def move_task(tasks: list[Task], active_id: str, over_id: Optional[str]) -> Optional[MoveIntent]:
    """Send a drop to the reorder procedure; the caller refetches afterwards."""
    intent = resolve_drop(tasks, active_id, over_id)
    if intent is None:
        logger.debug("Drop had no effect", task_id=active_id, over_id=over_id)
        return None

    await reorder_task(intent.task_id, intent.new_status.value, intent.new_order)
    logger.info(
        "Task moved",
        correlation_id=get_correlation_id(),
        task_id=intent.task_id,
        new_status=intent.new_status.value,
        new_order=intent.new_order
    )
    return intent
