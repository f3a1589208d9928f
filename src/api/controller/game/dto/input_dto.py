"""
Input DTOs for game API endpoints.
"""

from pydantic import BaseModel, Field


class GameCompleteRequestDto(BaseModel):
    """DTO for reporting a finished game."""

    score: int = Field(..., description="Final score reported by the client")
    duration_seconds: int = Field(..., description="How long the game lasted")


class FeedPetRequestDto(BaseModel):
    """DTO for feeding the pet, optionally several times in one step."""

    feed_count: int = Field(default=1, description="Number of feeds to apply at once")


class AddPointsRequestDto(BaseModel):
    delta: int = Field(..., description="Signed point adjustment")
