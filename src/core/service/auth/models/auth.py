"""
Configuration struct for Telegram initData authentication.
"""

from pydantic import BaseModel, Field


class AuthPolicy(BaseModel):
    """Explicit auth configuration handed to AuthGate at construction"""
    bot_token: str = Field(..., description="Telegram bot token used as the signing secret")
    max_age_seconds: int = Field(default=300, ge=0, description="Maximum age of auth_date")
    max_future_skew_seconds: int = Field(default=30, ge=0, description="Tolerated clock skew for auth_date in the future")

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, settings) -> "AuthPolicy":
        return cls(
            bot_token=settings.TELEGRAM_BOT_TOKEN,
            max_age_seconds=settings.INIT_DATA_MAX_AGE_SECONDS,
            max_future_skew_seconds=settings.INIT_DATA_MAX_FUTURE_SKEW_SECONDS,
        )
