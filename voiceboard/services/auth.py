"""Session handling over Supabase auth (passwordless email link)."""

import os
from typing import Optional
from voiceboard.models.session import UserSession
from voiceboard.services.supabase_client import SupabaseClient
from voiceboard.utils.errors import AuthError
from voiceboard.utils.logging import EMAIL_PATTERN, get_structured_logger, mask_email, mask_user_id

logger = get_structured_logger(__name__)


def _to_session(user, access_token: Optional[str] = None, expires_at: Optional[int] = None) -> UserSession:
    return UserSession(
        user_id=str(user.id),
        email=getattr(user, "email", None),
        access_token=access_token,
        expires_at=expires_at,
    )


async def send_magic_link(email: str, redirect_to: Optional[str] = None) -> None:
    """Send a sign-in link to the given address."""
    email = (email or "").strip()
    if not EMAIL_PATTERN.fullmatch(email):
        raise AuthError("A valid email address is required")

    redirect_to = redirect_to or os.environ.get("AUTH_REDIRECT_URL")
    options = {"should_create_user": True}
    if redirect_to:
        options["email_redirect_to"] = redirect_to

    async with SupabaseClient() as client:
        try:
            client.auth.sign_in_with_otp({"email": email, "options": options})
        except Exception as e:
            logger.warning("Magic link request failed", email=mask_email(email), error=str(e))
            raise AuthError(f"Could not send sign-in link: {e}")

    logger.info("Magic link sent", email=mask_email(email))


async def get_current_session() -> Optional[UserSession]:
    """Session held by the client, if any."""
    async with SupabaseClient() as client:
        try:
            session = client.auth.get_session()
        except Exception as e:
            logger.warning("Could not read auth session", error=str(e))
            return None

    if session is None or session.user is None:
        return None
    return _to_session(session.user, session.access_token, session.expires_at)


async def get_session_for_token(access_token: str) -> Optional[UserSession]:
    """Resolve a bearer token to its user."""
    if not access_token:
        return None

    async with SupabaseClient() as client:
        try:
            response = client.auth.get_user(access_token)
        except Exception as e:
            logger.info("Access token rejected", error=str(e))
            return None

    if response is None or response.user is None:
        return None
    return _to_session(response.user, access_token)


async def require_session(access_token: Optional[str] = None) -> UserSession:
    """Current session, or AuthError; every board operation is gated on this."""
    if access_token:
        session = await get_session_for_token(access_token)
    else:
        session = await get_current_session()

    if session is None:
        raise AuthError("Sign in required")

    logger.debug("Session resolved", user_id=mask_user_id(session.user_id))
    return session


async def sign_out() -> None:
    async with SupabaseClient() as client:
        try:
            client.auth.sign_out()
        except Exception as e:
            raise AuthError(f"Sign out failed: {e}")
    logger.info("Signed out")
