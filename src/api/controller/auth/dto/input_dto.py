"""
Input DTOs for authentication API endpoints.
"""

from pydantic import BaseModel, Field, field_validator


class TelegramAuthRequestDto(BaseModel):
    """DTO for authenticating with Telegram Mini App initData."""

    init_data: str = Field(
        ...,
        min_length=1,
        description="Raw initData query string exactly as provided by Telegram.WebApp"
    )

    @field_validator('init_data')
    @classmethod
    def validate_init_data(cls, v):
        if not v.strip():
            raise ValueError('initData cannot be empty')
        return v
