"""Drag-and-drop move endpoint."""

from voiceboard.services.auth import require_session
from voiceboard.services.board import TaskBoard
from voiceboard.services.task_pipeline import move_task
from voiceboard.utils.http import JsonRequestHandler, run_async
from voiceboard.utils.logging import correlation_context


async def _move(access_token, body):
    await require_session(access_token)
    board = TaskBoard()
    tasks = await board.refresh()
    intent = await move_task(tasks, body["active_id"], body.get("over_id"))
    board.invalidate()
    return intent


class handler(JsonRequestHandler):
    """POST {active_id, over_id}: over_id is a column id or another task id."""

    def do_POST(self):
        with correlation_context(self.correlation_header()):
            try:
                body = self.read_json()
                self.require_fields(body, "active_id")
                intent = run_async(_move(self.bearer_token(), body))
                self.send_json(200, {
                    "moved": intent is not None,
                    "intent": intent.model_dump(mode="json") if intent else None,
                })
            except Exception as e:
                self.send_error_json(e)
