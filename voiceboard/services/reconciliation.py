"""
Task reconciliation: merging AI output into task state.

Every function here is pure and returns a new Task. Progress is only ever
set through compute_progress, and the clarification flag is only cleared
by apply_manual_edits.
"""

from typing import Iterable, Optional
from ulid import ULID
from voiceboard.models.extraction import TaskExtraction, TaskExtractionUpdate
from voiceboard.models.task import (
    AiExtractedData,
    ManualEdits,
    MoveIntent,
    Subtask,
    Task,
    TaskStatus,
)
from voiceboard.utils.errors import TaskNotFoundError

# Update fields that live on ai_extracted rather than on the task row
AI_METADATA_FIELDS = ("project", "due_date", "tags", "confidence_score")


def compute_progress(subtasks: Iterable[Subtask]) -> int:
    """Percentage of completed subtasks, rounded half up; 0 without subtasks."""
    subtasks = list(subtasks)
    total = len(subtasks)
    if total == 0:
        return 0
    completed = sum(1 for subtask in subtasks if subtask.completed)
    return (200 * completed + total) // (2 * total)


def new_subtask_id(existing_ids: set[str]) -> str:
    """Generate a subtask ID not present in existing_ids."""
    while True:
        candidate = str(ULID())
        if candidate not in existing_ids:
            return candidate


def build_subtasks(texts: Iterable[str], existing_ids: Iterable[str] = ()) -> list[Subtask]:
    """Map flat step strings to fresh, uncompleted Subtask records."""
    taken = set(existing_ids)
    subtasks = []
    for text in texts:
        text = (text or "").strip()
        if not text:
            continue
        subtask_id = new_subtask_id(taken)
        taken.add(subtask_id)
        subtasks.append(Subtask(id=subtask_id, text=text))
    return subtasks


def _seed_ai_data(task: Task) -> AiExtractedData:
    """AI payload for a task that never had one."""
    return AiExtractedData(
        title=task.title,
        priority=task.priority,
        context=task.description or "",
    )


def build_task_from_extraction(extraction: TaskExtraction, created_by: Optional[str]) -> Task:
    """New todo task from a create-extraction response."""
    ai_data = AiExtractedData(
        title=extraction.title,
        project=extraction.project,
        priority=extraction.priority,
        context=extraction.context,
        due_date=extraction.due_date,
        tags=extraction.tags,
        confidence_score=extraction.confidence_score,
        needs_clarification=extraction.needs_clarification,
        clarification_question=extraction.clarification_question,
        suggested_subtasks=build_subtasks(extraction.subtasks_text),
    )
    return Task(
        title=extraction.title,
        status=TaskStatus.TODO,
        priority=extraction.priority,
        description=extraction.context,
        order=0,
        progress=0,
        created_by=created_by,
        ai_extracted=ai_data,
    )


def merge_extraction_update(task: Task, update: TaskExtractionUpdate) -> Task:
    """
    Field-level override merge of a follow-up extraction into a task.

    Each of title, description (falling back to context), priority and
    subtasks_text that the AI returned replaces the local value; anything it
    left out is kept. A returned subtask list replaces the checklist outright,
    so completion state from the previous round is dropped. The clarification
    flag and question are never touched here.
    """
    fields = update.provided_fields()
    changes: dict = {}

    ai_data = task.ai_extracted.model_copy(deep=True) if task.ai_extracted else None
    if ai_data is None and fields - {"description"}:
        ai_data = _seed_ai_data(task)

    if "title" in fields:
        changes["title"] = update.title
        ai_data.title = update.title

    if "description" in fields:
        changes["description"] = update.description
    elif "context" in fields:
        changes["description"] = update.context

    if "context" in fields:
        ai_data.context = update.context

    if "priority" in fields:
        changes["priority"] = update.priority
        ai_data.priority = update.priority

    for name in AI_METADATA_FIELDS:
        if name in fields:
            setattr(ai_data, name, getattr(update, name))

    if "subtasks_text" in fields:
        prior_ids = [subtask.id for subtask in ai_data.suggested_subtasks]
        ai_data.suggested_subtasks = build_subtasks(update.subtasks_text, existing_ids=prior_ids)

    changes["ai_extracted"] = ai_data
    changes["progress"] = compute_progress(ai_data.suggested_subtasks if ai_data else [])
    return task.model_copy(update=changes)


def apply_manual_edits(task: Task, edits: ManualEdits) -> Task:
    """Write form values verbatim and treat the save as clarification."""
    ai_data = task.ai_extracted.model_copy(deep=True) if task.ai_extracted else None
    subtasks = ai_data.suggested_subtasks if ai_data else []

    if edits.subtask_states:
        for subtask in subtasks:
            if subtask.id in edits.subtask_states:
                subtask.completed = bool(edits.subtask_states[subtask.id])

    if ai_data is not None:
        ai_data.needs_clarification = False

    return task.model_copy(update={
        "title": edits.title,
        "description": edits.description,
        "priority": edits.priority,
        "status": edits.status,
        "ai_extracted": ai_data,
        "progress": compute_progress(subtasks),
    })


def replace_subtasks(task: Task, texts: Iterable[str]) -> Task:
    """Swap the checklist for freshly generated steps."""
    ai_data = task.ai_extracted.model_copy(deep=True) if task.ai_extracted else _seed_ai_data(task)
    prior_ids = [subtask.id for subtask in ai_data.suggested_subtasks]
    ai_data.suggested_subtasks = build_subtasks(texts, existing_ids=prior_ids)
    return task.model_copy(update={
        "ai_extracted": ai_data,
        "progress": compute_progress(ai_data.suggested_subtasks),
    })


def toggle_subtask(task: Task, subtask_id: str) -> Task:
    """Flip one subtask's completed flag; only progress is recomputed."""
    if task.ai_extracted is None:
        raise TaskNotFoundError(f"Subtask not found: {subtask_id}")

    ai_data = task.ai_extracted.model_copy(deep=True)
    for subtask in ai_data.suggested_subtasks:
        if subtask.id == subtask_id:
            subtask.completed = not subtask.completed
            break
    else:
        raise TaskNotFoundError(f"Subtask not found: {subtask_id}")

    return task.model_copy(update={
        "ai_extracted": ai_data,
        "progress": compute_progress(ai_data.suggested_subtasks),
    })


def _column(tasks: Iterable[Task], status: TaskStatus) -> list[Task]:
    return sorted((t for t in tasks if t.status == status), key=lambda t: t.order)


def resolve_drop(tasks: list[Task], active_id: str, over_id: Optional[str]) -> Optional[MoveIntent]:
    """
    Turn a drop into a reorder intent, or None when nothing moves.

    Dropping on a column appends the task to it. Dropping on another task
    takes that task's column and position.
    """
    if not over_id:
        return None

    active = next((t for t in tasks if t.id == active_id), None)
    if active is None:
        return None

    column_ids = {status.value for status in TaskStatus}
    if over_id in column_ids:
        target_status = TaskStatus(over_id)
        if target_status == active.status:
            return None
        siblings = [t for t in _column(tasks, target_status) if t.id != active.id]
        return MoveIntent(task_id=active.id, new_status=target_status, new_order=len(siblings))

    over = next((t for t in tasks if t.id == over_id), None)
    if over is None or over.id == active.id:
        return None

    column = _column(tasks, over.status)
    new_order = [t.id for t in column].index(over.id)
    if over.status == active.status and [t.id for t in column].index(active.id) == new_order:
        return None
    return MoveIntent(task_id=active.id, new_status=over.status, new_order=new_order)


def apply_move(task: Task, new_status: TaskStatus) -> Task:
    """Local view of a move: only the status changes."""
    return task.model_copy(update={"status": TaskStatus(new_status)})
