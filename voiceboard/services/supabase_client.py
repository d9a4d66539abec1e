"""Supabase client wrapper with async context manager support."""

import os
from typing import Optional
from supabase import create_client, acreate_client, Client, AsyncClient
from supabase.client import ClientOptions
from supabase.lib.client_options import AsyncClientOptions
from voiceboard.utils.errors import SupabaseError
import logging

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
REORDER_PROCEDURE = "reorder_tasks"

# Global client instances (singleton pattern)
_client: Optional[Client] = None
_async_client: Optional[AsyncClient] = None


def _credentials() -> tuple[str, str]:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY") or os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

    if not url or not key:
        raise SupabaseError("SUPABASE_URL and SUPABASE_KEY (or SUPABASE_SERVICE_ROLE_KEY) must be set")
    return url, key


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url, key = _credentials()
        options = ClientOptions(
            auto_refresh_token=True,
            persist_session=False,
            flow_type="pkce",
        )
        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"url": url})

    return _client


async def get_async_supabase_client() -> AsyncClient:
    """Get or create the async client used for realtime subscriptions."""
    global _async_client

    if _async_client is None:
        url, key = _credentials()
        options = AsyncClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            realtime={"params": {"eventsPerSecond": 10}},
        )
        _async_client = await acreate_client(url, key, options)
        logger.info("Async Supabase client initialized", extra={"url": url})

    return _async_client


async def close_supabase_client() -> None:
    """Drop client references; the next call builds fresh clients."""
    global _client, _async_client
    if _async_client is not None:
        await _async_client.remove_all_channels()
    _client = None
    _async_client = None
    logger.info("Supabase client closed")


class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self):
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "type": exc_type.__name__}
            )
        return False


# Tasks table operations
async def list_tasks() -> list[dict]:
    """Get all tasks ordered by their column position."""
    async with SupabaseClient() as client:
        try:
            result = client.table(TASKS_TABLE).select("*").order("order", desc=False).execute()
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to list tasks: {e}")


async def get_task(task_id: str) -> Optional[dict]:
    """Get task by ID."""
    async with SupabaseClient() as client:
        try:
            result = client.table(TASKS_TABLE).select("*").eq("id", task_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to get task: {e}")


async def insert_task(task_data: dict) -> dict:
    """Create a new task row."""
    async with SupabaseClient() as client:
        try:
            result = client.table(TASKS_TABLE).insert(task_data).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to create task: {e}")
        if result.data and len(result.data) > 0:
            return result.data[0]
        raise SupabaseError("Failed to create task: no data returned")


async def update_task(task_id: str, updates: dict) -> dict:
    """Update a task row by ID."""
    async with SupabaseClient() as client:
        try:
            result = client.table(TASKS_TABLE).update(updates).eq("id", task_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to update task: {e}")
        if result.data and len(result.data) > 0:
            return result.data[0]
        raise SupabaseError(f"Failed to update task: {task_id}")


async def reorder_task(task_id: str, new_status: str, new_order: int) -> None:
    """Move a task; the database procedure resequences its column."""
    async with SupabaseClient() as client:
        try:
            client.rpc(REORDER_PROCEDURE, {
                "p_task_id": task_id,
                "p_new_status": new_status,
                "p_new_order": new_order,
            }).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to reorder task: {e}")
