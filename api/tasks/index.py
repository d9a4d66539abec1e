"""Board endpoint: list tasks by column, create a task from audio."""

from voiceboard.models.task import KANBAN_COLUMNS
from voiceboard.services.audio import AudioClip
from voiceboard.services.auth import require_session
from voiceboard.services.board import TaskBoard
from voiceboard.services.task_pipeline import create_task_from_audio
from voiceboard.utils.http import JsonRequestHandler, run_async
from voiceboard.utils.logging import correlation_context


async def _board_payload(access_token):
    await require_session(access_token)
    columns = await TaskBoard().columns()
    return {
        "columns": [
            {
                "id": status.value,
                "title": title,
                "tasks": [task.to_response() for task in columns[status]],
            }
            for status, title in KANBAN_COLUMNS
        ]
    }


async def _create(access_token, body):
    session = await require_session(access_token)
    clip = AudioClip.from_base64(
        body["audio_base64"],
        body.get("mime_type", ""),
        int(body.get("duration_seconds") or 0),
    )
    return await create_task_from_audio(clip, session)


class handler(JsonRequestHandler):
    """GET: board columns. POST {audio_base64, mime_type}: new task."""

    def do_GET(self):
        with correlation_context(self.correlation_header()):
            try:
                self.send_json(200, run_async(_board_payload(self.bearer_token())))
            except Exception as e:
                self.send_error_json(e)

    def do_POST(self):
        with correlation_context(self.correlation_header()):
            try:
                body = self.read_json()
                self.require_fields(body, "audio_base64")
                task = run_async(_create(self.bearer_token(), body))
                self.send_json(201, {"task": task.to_response()})
            except Exception as e:
                self.send_error_json(e)
