"""Request/response correlation for AI updates to an open task."""

from typing import Optional
from voiceboard.models.extraction import RequestTag, TaggedResult
from voiceboard.utils.errors import ConcurrentEditError, StaleResponseError
from voiceboard.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class TaskEditSession:
    """
    Tracks which task view is open and which AI requests are in flight.

    Each request gets a monotonic sequence number. A response is only
    accepted if its sequence number is the latest issued for that task and
    the task is still the one open in the view.
    """

    def __init__(self):
        self.active_task_id: Optional[str] = None
        self._seq = 0
        self._latest: dict[str, int] = {}
        self._in_flight: set[str] = set()

    def open(self, task_id: str) -> None:
        self.active_task_id = task_id
        logger.debug("Task view opened", task_id=task_id)

    def close(self) -> None:
        logger.debug("Task view closed", task_id=self.active_task_id)
        self.active_task_id = None

    def is_processing(self, task_id: str) -> bool:
        return task_id in self._in_flight

    def begin(self, task_id: str) -> RequestTag:
        """Tag a new AI request; only one may run per task."""
        if task_id in self._in_flight:
            raise ConcurrentEditError(f"An update is already processing for task {task_id}")

        self._seq += 1
        self._latest[task_id] = self._seq
        self._in_flight.add(task_id)

        logger.debug("AI request tagged", task_id=task_id, seq=self._seq)
        return RequestTag(task_id=task_id, seq=self._seq)

    def accept(self, result: TaggedResult) -> TaggedResult:
        """Validate a response before it is merged."""
        latest = self._latest.get(result.task_id)
        if latest is None or result.seq != latest:
            logger.warning(
                "Discarding stale AI response",
                task_id=result.task_id,
                seq=result.seq,
                latest_seq=latest
            )
            raise StaleResponseError(f"Response {result.seq} for task {result.task_id} is stale")

        if self.active_task_id != result.task_id:
            logger.warning(
                "Discarding AI response for a task that is no longer open",
                task_id=result.task_id,
                active_task_id=self.active_task_id,
                seq=result.seq
            )
            raise StaleResponseError(f"Task {result.task_id} is no longer open")

        return result

    def finish(self, tag: RequestTag) -> None:
        """Release the in-flight slot whether or not the request succeeded."""
        if self._latest.get(tag.task_id) == tag.seq:
            self._in_flight.discard(tag.task_id)
