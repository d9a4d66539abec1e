"""Tests for the task pipelines."""

import pytest
from unittest.mock import AsyncMock, patch
from voiceboard.models.extraction import TaskExtraction, TaskExtractionUpdate
from voiceboard.models.task import ManualEdits, TaskPriority, TaskStatus
from voiceboard.services.audio import AudioClip
from voiceboard.services.edit_session import TaskEditSession
from voiceboard.services.task_pipeline import (
    create_task_from_audio,
    load_task,
    move_task,
    regenerate_subtasks,
    save_manual_edits,
    toggle_task_subtask,
    update_task_from_audio,
)
from voiceboard.utils.errors import (
    AudioEncodingError,
    ConcurrentEditError,
    ExtractionError,
    StaleResponseError,
    SupabaseError,
    TaskNotFoundError,
)
from tests.fixtures.ai_responses import update_response_new_steps, update_response_priority_only
from tests.utils.assertions import assert_progress_consistent
from tests.utils.factories import create_task

PIPELINE = "voiceboard.services.task_pipeline"


def echo_row(base=None, task_id="new-task-id"):
    """Mock store write that returns the stored row after the write."""
    async def _write(*args):
        if len(args) == 1:
            return {"id": task_id, "created_at": "2025-03-10T12:00:00+00:00", **args[0]}
        row = base.to_record()
        row.update(args[1])
        return row
    return AsyncMock(side_effect=_write)


@pytest.fixture
def open_session(sample_task):
    session = TaskEditSession()
    session.open(sample_task.id)
    return session


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_task_from_audio(audio_clip, user_session, mock_ai_client, sample_create_response):
    mock_ai_client.extract_task.return_value = TaskExtraction.model_validate(sample_create_response)

    with patch(f"{PIPELINE}.insert_task", new=echo_row()) as mock_insert:
        task = await create_task_from_audio(audio_clip, user_session, ai=mock_ai_client)

    mock_insert.assert_awaited_once()
    record = mock_insert.call_args[0][0]
    assert record["status"] == "todo"
    assert record["created_by"] == user_session.user_id
    assert "id" not in record

    assert task.id == "new-task-id"
    assert task.title == "Call Sarah"
    assert [s.text for s in task.subtasks] == ["Step A", "Step B"]
    assert task.progress == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_rejects_empty_clip_before_ai(user_session, mock_ai_client):
    clip = AudioClip(data=b"", mime_type="audio/webm")

    with patch(f"{PIPELINE}.insert_task", new=AsyncMock()) as mock_insert:
        with pytest.raises(AudioEncodingError):
            await create_task_from_audio(clip, user_session, ai=mock_ai_client)

    mock_ai_client.extract_task.assert_not_awaited()
    mock_insert.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_ai_failure_writes_nothing(audio_clip, user_session, mock_ai_client):
    mock_ai_client.extract_task.side_effect = ExtractionError("No JSON found in LLM response")

    with patch(f"{PIPELINE}.insert_task", new=AsyncMock()) as mock_insert:
        with pytest.raises(ExtractionError):
            await create_task_from_audio(audio_clip, user_session, ai=mock_ai_client)

    mock_insert.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_insert_failure_logs_extraction(audio_clip, user_session, mock_ai_client, sample_create_response):
    mock_ai_client.extract_task.return_value = TaskExtraction.model_validate(sample_create_response)

    with patch(f"{PIPELINE}.insert_task", new=AsyncMock(side_effect=SupabaseError("down"))), \
         patch(f"{PIPELINE}.logger") as mock_logger:
        with pytest.raises(SupabaseError):
            await create_task_from_audio(audio_clip, user_session, ai=mock_ai_client)

    kwargs = mock_logger.error.call_args.kwargs
    assert kwargs["extracted_payload"]["title"] == "Call Sarah"
    assert kwargs["user_id"] != user_session.user_id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_from_audio_priority_only(sample_task, audio_clip, open_session, mock_ai_client):
    mock_ai_client.extract_update.return_value = TaskExtractionUpdate.model_validate(update_response_priority_only())

    with patch(f"{PIPELINE}.update_task", new=echo_row(sample_task)) as mock_update:
        updated = await update_task_from_audio(sample_task, audio_clip, open_session, ai=mock_ai_client)

    task_id, changes = mock_update.call_args[0]
    assert task_id == sample_task.id
    assert changes["priority"] == "low"
    assert changes["title"] == sample_task.title
    assert "status" not in changes

    assert updated.priority == TaskPriority.LOW
    assert updated.subtasks == sample_task.subtasks
    assert updated.needs_clarification is True
    assert open_session.is_processing(sample_task.id) is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_from_audio_replaces_steps(sample_task, audio_clip, open_session, mock_ai_client):
    mock_ai_client.extract_update.return_value = TaskExtractionUpdate.model_validate(update_response_new_steps())

    with patch(f"{PIPELINE}.update_task", new=echo_row(sample_task)):
        updated = await update_task_from_audio(sample_task, audio_clip, open_session, ai=mock_ai_client)

    assert [s.text for s in updated.subtasks] == ["Draft agenda", "Book room", "Send invites"]
    assert updated.progress == 0
    assert_progress_consistent(updated)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_update_leaves_task_unchanged(sample_task, audio_clip, open_session, mock_ai_client):
    mock_ai_client.extract_update.side_effect = ExtractionError("timeout")
    before = sample_task.model_dump()

    with patch(f"{PIPELINE}.update_task", new=AsyncMock()) as mock_update:
        with pytest.raises(ExtractionError):
            await update_task_from_audio(sample_task, audio_clip, open_session, ai=mock_ai_client)

    mock_update.assert_not_awaited()
    assert sample_task.model_dump() == before
    assert open_session.is_processing(sample_task.id) is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_discarded_when_task_closed_mid_request(sample_task, audio_clip, open_session, mock_ai_client):
    async def _close_then_answer(*args):
        open_session.close()
        return TaskExtractionUpdate.model_validate(update_response_priority_only())

    mock_ai_client.extract_update.side_effect = _close_then_answer

    with patch(f"{PIPELINE}.update_task", new=AsyncMock()) as mock_update:
        with pytest.raises(StaleResponseError):
            await update_task_from_audio(sample_task, audio_clip, open_session, ai=mock_ai_client)

    mock_update.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_update_rejected_while_first_in_flight(sample_task, audio_clip, open_session, mock_ai_client):
    open_session.begin(sample_task.id)

    with pytest.raises(ConcurrentEditError):
        await update_task_from_audio(sample_task, audio_clip, open_session, ai=mock_ai_client)

    mock_ai_client.extract_update.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_manual_save_clears_clarification(sample_task):
    edits = ManualEdits(
        title="Approve budget",
        description="Q3 numbers",
        priority=TaskPriority.HIGH,
        status=TaskStatus.REVIEW,
    )

    with patch(f"{PIPELINE}.update_task", new=echo_row(sample_task)) as mock_update:
        saved = await save_manual_edits(sample_task, edits)

    changes = mock_update.call_args[0][1]
    assert changes["status"] == "review"
    assert changes["ai_extracted"]["needs_clarification"] is False
    assert saved.title == "Approve budget"
    assert saved.needs_clarification is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_regenerate_subtasks(sample_task, mock_ai_client):
    mock_ai_client.generate_subtasks.return_value = ["Collect receipts", "Review budget"]

    with patch(f"{PIPELINE}.update_task", new=echo_row(sample_task)) as mock_update:
        updated = await regenerate_subtasks(sample_task, "make it shorter", ai=mock_ai_client)

    mock_ai_client.generate_subtasks.assert_awaited_once_with(
        sample_task.title, sample_task.description, "make it shorter"
    )
    assert set(mock_update.call_args[0][1]) == {"progress", "ai_extracted"}
    assert [s.text for s in updated.subtasks] == ["Collect receipts", "Review budget"]
    assert updated.progress == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_regenerate_failure_keeps_checklist(sample_task, mock_ai_client):
    mock_ai_client.generate_subtasks.side_effect = ExtractionError("AI returned no subtasks")

    with patch(f"{PIPELINE}.update_task", new=AsyncMock()) as mock_update:
        with pytest.raises(ExtractionError):
            await regenerate_subtasks(sample_task, ai=mock_ai_client)

    mock_update.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_task_subtask_persists_progress(sample_task):
    target = sample_task.subtasks[1]

    with patch(f"{PIPELINE}.update_task", new=echo_row(sample_task)) as mock_update:
        updated = await toggle_task_subtask(sample_task, target.id)

    assert mock_update.call_args[0][1]["progress"] == 50
    assert updated.progress == 50


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_unknown_subtask(sample_task):
    with patch(f"{PIPELINE}.update_task", new=AsyncMock()) as mock_update:
        with pytest.raises(TaskNotFoundError):
            await toggle_task_subtask(sample_task, "missing")

    mock_update.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_move_task_calls_reorder():
    tasks = [
        create_task(id="a", status=TaskStatus.TODO, order=0),
        create_task(id="b", status=TaskStatus.DOING, order=0),
    ]

    with patch(f"{PIPELINE}.reorder_task", new=AsyncMock()) as mock_reorder:
        intent = await move_task(tasks, "a", TaskStatus.DOING.value)

    mock_reorder.assert_awaited_once_with("a", "doing", 1)
    assert intent.new_order == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_move_task_noop_skips_reorder():
    tasks = [create_task(id="a", status=TaskStatus.TODO, order=0)]

    with patch(f"{PIPELINE}.reorder_task", new=AsyncMock()) as mock_reorder:
        assert await move_task(tasks, "a", None) is None

    mock_reorder.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_task_missing():
    with patch(f"{PIPELINE}.get_task", new=AsyncMock(return_value=None)):
        with pytest.raises(TaskNotFoundError):
            await load_task("missing")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_task(sample_task):
    row = sample_task.model_dump(mode="json")
    with patch(f"{PIPELINE}.get_task", new=AsyncMock(return_value=row)):
        task = await load_task(sample_task.id)

    assert task.id == sample_task.id
    assert task.subtasks == sample_task.subtasks
