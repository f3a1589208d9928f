"""
Output DTOs for authentication and health endpoints.
"""

from pydantic import BaseModel, Field
from typing import Dict
from datetime import datetime

from src.api.controller.game.dto.output_dto import UserProfileDto


class TelegramAuthResponseDto(BaseModel):
    """DTO for a successful Telegram authentication."""

    success: bool = Field(True, description="Authentication status")
    user: UserProfileDto = Field(..., description="Profile of the authenticated user, created on first login")


class HealthCheckResponseDto(BaseModel):
    """DTO for health check response."""

    status: str = Field(..., description="Overall service status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    services: Dict[str, str] = Field(default_factory=dict, description="Status of each dependency")
    timestamp: datetime = Field(..., description="Health check timestamp")
