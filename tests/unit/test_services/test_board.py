"""Tests for the board view and change feed."""

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch
from voiceboard.models.task import TaskStatus
from voiceboard.services.board import TaskBoard, group_tasks_by_status
from voiceboard.services.task_feed import TaskChangeFeed
from tests.utils.factories import create_task


def rows(*tasks):
    return [t.model_dump(mode="json") for t in tasks]


@pytest.mark.unit
def test_group_tasks_by_status():
    tasks = [
        create_task(id="c", status=TaskStatus.DOING, order=1),
        create_task(id="a", status=TaskStatus.TODO, order=0),
        create_task(id="b", status=TaskStatus.DOING, order=0),
    ]

    columns = group_tasks_by_status(tasks)

    assert list(columns) == [TaskStatus.TODO, TaskStatus.DOING, TaskStatus.REVIEW, TaskStatus.DONE]
    assert [t.id for t in columns[TaskStatus.DOING]] == ["b", "c"]
    assert columns[TaskStatus.DONE] == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_board_refetches_only_when_stale():
    board = TaskBoard()
    mock_list = AsyncMock(return_value=rows(create_task(id="a")))

    with patch("voiceboard.services.board.list_tasks", new=mock_list):
        await board.ensure_fresh()
        await board.ensure_fresh()
        assert mock_list.await_count == 1

        board.invalidate()
        assert (await board.get("a")).id == "a"
        assert mock_list.await_count == 2
        assert await board.get("zzz") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_feed_event_invalidates_board():
    board = TaskBoard()
    board.stale = False
    channel = MagicMock()
    channel.subscribe = AsyncMock()
    client = MagicMock()
    client.channel.return_value = channel
    client.remove_channel = AsyncMock()

    with patch("voiceboard.services.task_feed.get_async_supabase_client", new=AsyncMock(return_value=client)):
        feed = TaskChangeFeed()
        await feed.start(board.invalidate)
        await feed.start(board.invalidate)

        client.channel.assert_called_once()
        kwargs = channel.on_postgres_changes.call_args.kwargs
        assert kwargs["table"] == "tasks"
        assert feed.is_running is True

        kwargs["callback"]({"eventType": "UPDATE", "new": {"id": "a"}})
        assert board.stale is True

        await feed.stop()
        client.remove_channel.assert_awaited_once_with(channel)
        assert feed.is_running is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_feed_ignores_events_after_stop():
    channel = MagicMock()
    channel.subscribe = AsyncMock()
    client = MagicMock()
    client.channel.return_value = channel
    client.remove_channel = AsyncMock()
    on_change = Mock()

    with patch("voiceboard.services.task_feed.get_async_supabase_client", new=AsyncMock(return_value=client)):
        feed = TaskChangeFeed()
        await feed.start(on_change)
        feed._handle_event({"eventType": "INSERT"})
        assert on_change.call_count == 1

        await feed.stop()
        feed._handle_event({"eventType": "DELETE"})
        feed._handle_event("not-a-dict")

    assert on_change.call_count == 1
