"""
Identity models produced while authenticating Telegram initData.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class TelegramUser(BaseModel):
    """User object embedded (JSON-encoded) in initData"""
    id: str = Field(..., description="Telegram user id, kept as a string to avoid precision loss")
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    language_code: Optional[str] = None
    is_premium: bool = False


class ParsedInitData(BaseModel):
    """Structured view of a raw initData payload. Nothing here is trusted until verified."""
    user: TelegramUser
    auth_date: int = Field(..., description="Unix seconds when Telegram issued the payload")
    hash: str = Field(..., description="Hex HMAC-SHA256 signature")
    query_id: Optional[str] = None
    fields: Dict[str, str] = Field(default_factory=dict, description="All key/value pairs, hash included")
    raw: str


class Principal(BaseModel):
    """Authenticated identity. Lives for the duration of one request."""
    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    class Config:
        frozen = True

    @property
    def display_name(self) -> str:
        return self.username or self.first_name or f"user_{self.id}"
