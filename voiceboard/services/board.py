"""Board view: the cached task list grouped into status columns."""

from typing import Optional
from voiceboard.models.task import KANBAN_COLUMNS, Task, TaskStatus
from voiceboard.services.supabase_client import list_tasks
from voiceboard.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)


def group_tasks_by_status(tasks: list[Task]) -> dict[TaskStatus, list[Task]]:
    """One list per column (every column present), each sorted by order."""
    columns: dict[TaskStatus, list[Task]] = {status: [] for status, _ in KANBAN_COLUMNS}
    for task in tasks:
        columns[task.status].append(task)
    for column in columns.values():
        column.sort(key=lambda t: t.order)
    return columns


class TaskBoard:
    """
    In-memory task list kept eventually consistent with the store.

    The change feed and local mutations only mark the list stale; the next
    read refetches. A local edit can therefore be replaced by a refetch,
    last write wins at the store.
    """

    def __init__(self):
        self.tasks: list[Task] = []
        self.stale = True

    def invalidate(self) -> None:
        self.stale = True

    async def refresh(self) -> list[Task]:
        with log_timing("refresh_task_board", logger=logger):
            rows = await list_tasks()
        self.tasks = [Task.model_validate(row) for row in rows]
        self.stale = False
        logger.debug("Task board refreshed", task_count=len(self.tasks))
        return self.tasks

    async def ensure_fresh(self) -> list[Task]:
        if self.stale:
            return await self.refresh()
        return self.tasks

    async def columns(self) -> dict[TaskStatus, list[Task]]:
        return group_tasks_by_status(await self.ensure_fresh())

    async def get(self, task_id: str) -> Optional[Task]:
        tasks = await self.ensure_fresh()
        return next((t for t in tasks if t.id == task_id), None)
