"""Explicit application state for a board session."""

from typing import Literal, Optional
from pydantic import BaseModel, Field
from voiceboard.models.task import Task


class BoardState(BaseModel):
    """Which task is open and which theme is active."""
    selected_task_id: Optional[str] = None
    is_task_modal_open: bool = False
    theme: Literal["dark", "light"] = Field(default="dark")

    def open_task(self, task: Task) -> None:
        self.selected_task_id = task.id
        self.is_task_modal_open = True

    def close_task(self) -> None:
        self.selected_task_id = None
        self.is_task_modal_open = False

    def toggle_theme(self) -> str:
        self.theme = "light" if self.theme == "dark" else "dark"
        return self.theme
