"""Passwordless sign-in endpoint."""

from voiceboard.services.auth import send_magic_link
from voiceboard.utils.http import JsonRequestHandler, run_async
from voiceboard.utils.logging import correlation_context


class handler(JsonRequestHandler):
    """Send a magic sign-in link to {email}."""

    def do_POST(self):
        with correlation_context(self.correlation_header()):
            try:
                body = self.read_json()
                self.require_fields(body, "email")
                run_async(send_magic_link(body["email"], body.get("redirect_to")))
                self.send_json(200, {"ok": True, "message": "Check your email for the login link!"})
            except Exception as e:
                self.send_error_json(e)
