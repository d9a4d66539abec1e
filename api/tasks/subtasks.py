"""Subtask generation from a text prompt."""

from voiceboard.services.auth import require_session
from voiceboard.services.task_pipeline import load_task, regenerate_subtasks
from voiceboard.utils.http import JsonRequestHandler, run_async
from voiceboard.utils.logging import correlation_context


async def _regenerate(access_token, body):
    await require_session(access_token)
    task = await load_task(body["task_id"])
    return await regenerate_subtasks(task, body.get("instruction"))


class handler(JsonRequestHandler):
    """POST {task_id, instruction?}: replace the checklist."""

    def do_POST(self):
        with correlation_context(self.correlation_header()):
            try:
                body = self.read_json()
                self.require_fields(body, "task_id")
                task = run_async(_regenerate(self.bearer_token(), body))
                self.send_json(200, {"task": task.to_response()})
            except Exception as e:
                self.send_error_json(e)
