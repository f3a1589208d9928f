"""
Game controller: energy, game results, pet and ranking endpoints.

Handlers only translate HTTP to ProgressionService calls. Rejections raise
ServiceError subclasses that the global handler renders.
"""

from fastapi import APIRouter, Depends

from src.api.controller.game.dto.input_dto import (
    AddPointsRequestDto,
    FeedPetRequestDto,
    GameCompleteRequestDto,
)
from src.api.controller.game.dto.output_dto import (
    AddPointsResponseDto,
    ClaimYieldResponseDto,
    FeedPetResponseDto,
    GameCompleteResponseDto,
    PetDto,
    UserProfileDto,
)
from src.core.dependencies import get_principal, get_progression_service
from src.core.service.auth.models.principal import Principal
from src.core.service.progression.models import EnergyStatus, GameResult, PetStatus, RankInfo
from src.core.service.progression.progression_service import ProgressionService

router = APIRouter(prefix="/game", tags=["Game"])


@router.get("/energy", response_model=EnergyStatus)
async def get_energy(
    principal: Principal = Depends(get_principal),
    service: ProgressionService = Depends(get_progression_service),
):
    """Current energy after regeneration and seconds until the next point."""
    return await service.get_energy_state(principal.id)


@router.post("/complete", response_model=GameCompleteResponseDto)
async def complete_game(
    request: GameCompleteRequestDto,
    principal: Principal = Depends(get_principal),
    service: ProgressionService = Depends(get_progression_service),
):
    """
    Record a finished game.

    Consumes energy and awards points and XP. Implausible results, missing
    energy and bursts above the per-minute cap are rejected without any
    state change.
    """
    await service.ensure_user(principal)
    outcome = await service.complete_game(
        principal.id,
        GameResult(score=request.score, duration_seconds=request.duration_seconds),
    )
    return GameCompleteResponseDto(
        points_earned=outcome.points_earned,
        xp_earned=outcome.xp_earned,
        energy_remaining=outcome.energy_remaining,
        user=UserProfileDto.from_state(outcome.user),
        rank_rewards=outcome.rank_rewards,
    )


@router.get("/pet", response_model=PetStatus)
async def get_pet(
    principal: Principal = Depends(get_principal),
    service: ProgressionService = Depends(get_progression_service),
):
    return await service.get_pet_status(principal.id)


@router.post("/pet/feed", response_model=FeedPetResponseDto)
async def feed_pet(
    request: FeedPetRequestDto,
    principal: Principal = Depends(get_principal),
    service: ProgressionService = Depends(get_progression_service),
):
    """Feed the pet. The first feed hatches it."""
    await service.ensure_user(principal)
    outcome = await service.feed_pet(principal.id, feed_count=request.feed_count)
    return FeedPetResponseDto(
        points_spent=outcome.points_spent,
        xp_gained=outcome.xp_gained,
        levels_gained=outcome.levels_gained,
        pet=PetDto.from_state(outcome.pet),
        user=UserProfileDto.from_state(outcome.user),
        rank_rewards=outcome.rank_rewards,
    )


@router.post("/pet/claim", response_model=ClaimYieldResponseDto)
async def claim_pet_yield(
    principal: Principal = Depends(get_principal),
    service: ProgressionService = Depends(get_progression_service),
):
    """Collect the pet's accrued yield into the user's points."""
    await service.ensure_user(principal)
    outcome = await service.claim_pet_yield(principal.id)
    return ClaimYieldResponseDto(
        amount=outcome.amount,
        pet=PetDto.from_state(outcome.pet),
        user=UserProfileDto.from_state(outcome.user),
        authorization=outcome.authorization,
        rank_rewards=outcome.rank_rewards,
    )


@router.post("/points", response_model=AddPointsResponseDto)
async def add_points(
    request: AddPointsRequestDto,
    principal: Principal = Depends(get_principal),
    service: ProgressionService = Depends(get_progression_service),
):
    await service.ensure_user(principal)
    outcome = await service.add_points(principal.id, request.delta)
    return AddPointsResponseDto(
        points_applied=outcome.points_applied,
        user=UserProfileDto.from_state(outcome.user),
        rank_rewards=outcome.rank_rewards,
    )


@router.get("/rank", response_model=RankInfo)
async def get_rank(
    principal: Principal = Depends(get_principal),
    service: ProgressionService = Depends(get_progression_service),
):
    return await service.get_rank_info(principal.id)
