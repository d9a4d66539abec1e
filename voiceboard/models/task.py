"""Task models."""

from enum import Enum
from typing import Optional, Any
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    """Board columns, left to right."""
    TODO = "todo"
    DOING = "doing"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(str, Enum):
    """Task priority values."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


KANBAN_COLUMNS: list[tuple[TaskStatus, str]] = [
    (TaskStatus.TODO, "Todo"),
    (TaskStatus.DOING, "In Progress"),
    (TaskStatus.REVIEW, "Review"),
    (TaskStatus.DONE, "Done"),
]


def parse_due_date(value: Any) -> Optional[date]:
    """Parse yyyy-MM-dd or an ISO datetime into a date, None if unresolvable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.split("T")[0].strip())
        except ValueError:
            return None
    return None


def unique_tags(value: Any) -> list[str]:
    """Normalize tags into an ordered list without blanks or duplicates."""
    if not value:
        return []
    seen: list[str] = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class Subtask(BaseModel):
    """One checklist step within a task."""
    id: str = Field(..., min_length=1, description="Subtask ID, unique within its task")
    text: str = Field(..., description="Step text")
    completed: bool = Field(default=False, description="Whether the step is done")


class AiExtractedData(BaseModel):
    """The AI's structured read of one audio or text input."""
    title: str = Field(..., description="Actionable title (3-8 words)")
    project: str = Field(default="Inbox", description="Project name or 'Inbox'")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    context: str = Field(default="", description="Free-text rationale/details")
    due_date: Optional[date] = Field(None, description="Due date if resolvable")
    tags: list[str] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    needs_clarification: bool = Field(default=False)
    clarification_question: Optional[str] = Field(
        None,
        description="Only meaningful while needs_clarification is true"
    )
    suggested_subtasks: list[Subtask] = Field(default_factory=list)

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, value: Any) -> Optional[date]:
        return parse_due_date(value)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> list[str]:
        return unique_tags(value)

    @property
    def visible_clarification_question(self) -> Optional[str]:
        """Question to display, hidden once the flag has been cleared."""
        if not self.needs_clarification:
            return None
        return self.clarification_question


class Task(BaseModel):
    """Task model (one row of the tasks table)."""
    id: Optional[str] = Field(None, description="Store-assigned task ID")
    created_at: Optional[str] = None
    title: str = Field(..., min_length=1, description="Task title")
    status: TaskStatus = Field(default=TaskStatus.TODO)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    project_id: Optional[str] = None
    description: Optional[str] = None
    order: int = Field(default=0, description="Sort key within a status column")
    progress: int = Field(default=0, ge=0, le=100, description="Derived from subtask completion")
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    audio_url: Optional[str] = None
    transcription: Optional[str] = None
    ai_extracted: Optional[AiExtractedData] = None

    @property
    def subtasks(self) -> list[Subtask]:
        if self.ai_extracted is None:
            return []
        return self.ai_extracted.suggested_subtasks

    @property
    def needs_clarification(self) -> bool:
        return bool(self.ai_extracted and self.ai_extracted.needs_clarification)

    def to_record(self) -> dict[str, Any]:
        """Row dict for the store; store-assigned fields omitted until set."""
        record = self.model_dump(mode="json")
        for key in ("id", "created_at"):
            if record.get(key) is None:
                record.pop(key, None)
        return record

    def to_response(self) -> dict[str, Any]:
        """JSON for clients; a cleared clarification question is not shown."""
        payload = self.model_dump(mode="json")
        if self.ai_extracted is not None:
            payload["ai_extracted"]["clarification_question"] = self.ai_extracted.visible_clarification_question
        return payload


class ManualEdits(BaseModel):
    """Values from the task edit form."""
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    subtask_states: Optional[dict[str, bool]] = Field(
        None,
        description="Subtask ID -> completed, as shown in the checklist"
    )


class MoveIntent(BaseModel):
    """Drag-and-drop result handed to the reorder procedure."""
    task_id: str
    new_status: TaskStatus
    new_order: int = Field(..., ge=0)
