"""Session model."""

from typing import Optional
from pydantic import BaseModel, Field


class UserSession(BaseModel):
    """Signed-in user as reported by Supabase auth."""
    user_id: str = Field(..., description="Auth user ID")
    email: Optional[str] = None
    access_token: Optional[str] = None
    expires_at: Optional[int] = Field(None, description="Unix timestamp")
