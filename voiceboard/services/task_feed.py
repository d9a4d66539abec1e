"""Real-time change feed over the tasks table."""

from typing import Any, Callable, Optional
from voiceboard.services.supabase_client import TASKS_TABLE, get_async_supabase_client
from voiceboard.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

CHANNEL_NAME = "public:tasks"


class TaskChangeFeed:
    """
    Fires on_change for any insert, update or delete on tasks.

    The event payload is not trusted; it only signals that the cached list
    should be refetched.
    """

    def __init__(self):
        self._channel: Optional[Any] = None
        self._on_change: Optional[Callable[[], None]] = None

    @property
    def is_running(self) -> bool:
        return self._channel is not None

    def _handle_event(self, payload: Any) -> None:
        event_type = payload.get("eventType") if isinstance(payload, dict) else None
        logger.debug("Task change received", event_type=event_type)
        if self._on_change is not None:
            self._on_change()

    async def start(self, on_change: Callable[[], None]) -> None:
        if self.is_running:
            return

        self._on_change = on_change
        client = await get_async_supabase_client()
        channel = client.channel(CHANNEL_NAME)
        channel.on_postgres_changes("*", schema="public", table=TASKS_TABLE, callback=self._handle_event)
        await channel.subscribe()
        self._channel = channel
        logger.info("Task change feed subscribed", channel=CHANNEL_NAME)

    async def stop(self) -> None:
        if self._channel is None:
            return

        client = await get_async_supabase_client()
        await client.remove_channel(self._channel)
        self._channel = None
        self._on_change = None
        logger.info("Task change feed unsubscribed", channel=CHANNEL_NAME)
