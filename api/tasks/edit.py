"""Manual edit endpoint: form save or checklist toggle."""

from voiceboard.models.task import ManualEdits
from voiceboard.services.auth import require_session
from voiceboard.services.task_pipeline import load_task, save_manual_edits, toggle_task_subtask
from voiceboard.utils.http import JsonRequestHandler, run_async
from voiceboard.utils.logging import correlation_context


async def _edit(access_token, body):
    await require_session(access_token)
    task = await load_task(body["task_id"])

    if body.get("toggle_subtask_id"):
        return await toggle_task_subtask(task, body["toggle_subtask_id"])

    edits = ManualEdits.model_validate({
        key: body[key]
        for key in ("title", "description", "priority", "status", "subtask_states")
        if key in body
    })
    return await save_manual_edits(task, edits)


class handler(JsonRequestHandler):
    """POST {task_id, title, description, priority, status} or {task_id, toggle_subtask_id}."""

    def do_POST(self):
        with correlation_context(self.correlation_header()):
            try:
                body = self.read_json()
                self.require_fields(body, "task_id")
                task = run_async(_edit(self.bearer_token(), body))
                self.send_json(200, {"task": task.to_response()})
            except Exception as e:
                self.send_error_json(e)
