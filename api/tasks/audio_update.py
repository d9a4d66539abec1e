"""Update-from-audio endpoint."""

from voiceboard.services.audio import AudioClip
from voiceboard.services.auth import require_session
from voiceboard.services.edit_session import TaskEditSession
from voiceboard.services.task_pipeline import load_task, update_task_from_audio
from voiceboard.utils.http import JsonRequestHandler, run_async
from voiceboard.utils.logging import correlation_context


async def _update(access_token, body):
    await require_session(access_token)
    task = await load_task(body["task_id"])
    clip = AudioClip.from_base64(
        body["audio_base64"],
        body.get("mime_type", ""),
        int(body.get("duration_seconds") or 0),
    )
    # One request per invocation: the view is the task named in the body.
    edit_session = TaskEditSession()
    edit_session.open(task.id)
    return await update_task_from_audio(task, clip, edit_session)


class handler(JsonRequestHandler):
    """POST {task_id, audio_base64, mime_type}: merge a follow-up recording."""

    def do_POST(self):
        with correlation_context(self.correlation_header()):
            try:
                body = self.read_json()
                self.require_fields(body, "task_id", "audio_base64")
                task = run_async(_update(self.bearer_token(), body))
                self.send_json(200, {"task": task.to_response()})
            except Exception as e:
                self.send_error_json(e)
