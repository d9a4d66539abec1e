"""Health check endpoint."""

from voiceboard.utils.http import JsonRequestHandler

SERVICE_NAME = "voiceboard-backend"


class handler(JsonRequestHandler):
    """Liveness probe; answers GET and POST alike."""

    def do_GET(self):
        self.send_json(200, {"status": "ok", "service": SERVICE_NAME})

    def do_POST(self):
        self.do_GET()
