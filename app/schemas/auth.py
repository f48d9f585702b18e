from __future__ import annotations

from pydantic import BaseModel


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthMeResponse(BaseModel):
    """Response model for authenticated identity info."""

    id: int
    sub: str
    full_name: str | None = None
    admin: bool
    company_id: int
    role: str
