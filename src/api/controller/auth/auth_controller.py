"""
Authentication controller for Telegram Mini App initData.
"""

from fastapi import APIRouter, Depends

from src.api.controller.auth.dto.input_dto import TelegramAuthRequestDto
from src.api.controller.auth.dto.output_dto import TelegramAuthResponseDto
from src.api.controller.game.dto.output_dto import UserProfileDto
from src.core.dependencies import get_progression_service
from src.core.logger.logger import get_logger
from src.core.service.progression.progression_service import ProgressionService

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/telegram", response_model=TelegramAuthResponseDto)
async def authenticate_telegram(
    request: TelegramAuthRequestDto,
    service: ProgressionService = Depends(get_progression_service)
):
    """
    Verify Telegram initData and return the user's profile.

    The signature is checked against the bot token and auth_date must be
    recent. A user seen for the first time gets a fresh profile with full
    energy. Failures return 401 with the rejection kind in `details`.
    """
    principal, user = await service.authenticate(request.init_data)

    logger.info(
        "Telegram login",
        extra={"user_id": principal.id, "level": user.level, "rank": user.current_rank.value}
    )
    return TelegramAuthResponseDto(user=UserProfileDto.from_state(user))
