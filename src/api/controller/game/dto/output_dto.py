"""
Output DTOs for game API endpoints.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.core.service.progression.models import (
    ClaimAuthorization,
    PetState,
    Rank,
    RankRewardEvent,
    UserState,
)


class UserProfileDto(BaseModel):
    """Public view of a user's progression."""

    id: str
    username: Optional[str] = None
    wallet_address: Optional[str] = None
    public_key: Optional[str] = None
    total_points: int
    lifetime_points: int
    level: int
    current_xp: int
    current_rank: Rank
    current_energy: int

    @classmethod
    def from_state(cls, user: UserState) -> "UserProfileDto":
        return cls(
            id=user.id,
            username=user.username,
            wallet_address=user.wallet_address,
            public_key=user.public_key,
            total_points=user.total_points,
            lifetime_points=user.lifetime_points,
            level=user.level,
            current_xp=user.current_xp,
            current_rank=user.current_rank,
            current_energy=user.current_energy,
        )


class PetDto(BaseModel):
    level: int
    xp: int
    hatched: bool
    last_feed_at: Optional[datetime] = None
    last_claim_at: Optional[datetime] = None
    daily_spend: int
    total_yield_claimed: int

    @classmethod
    def from_state(cls, pet: PetState) -> "PetDto":
        return cls(
            level=pet.level,
            xp=pet.xp,
            hatched=pet.hatched,
            last_feed_at=pet.last_feed_at,
            last_claim_at=pet.last_claim_at,
            daily_spend=pet.daily_spend,
            total_yield_claimed=pet.total_yield_claimed,
        )


class GameCompleteResponseDto(BaseModel):
    success: bool = Field(True)
    points_earned: int
    xp_earned: int
    energy_remaining: int
    user: UserProfileDto
    rank_rewards: List[RankRewardEvent] = Field(default_factory=list)


class FeedPetResponseDto(BaseModel):
    success: bool = Field(True)
    points_spent: int
    xp_gained: int
    levels_gained: int
    pet: PetDto
    user: UserProfileDto
    rank_rewards: List[RankRewardEvent] = Field(default_factory=list)


class ClaimYieldResponseDto(BaseModel):
    success: bool = Field(True)
    amount: int = Field(..., description="Points credited by this claim")
    pet: PetDto
    user: UserProfileDto
    authorization: Optional[ClaimAuthorization] = Field(
        None, description="Signed claim for on-chain recording, present when a wallet is linked"
    )
    rank_rewards: List[RankRewardEvent] = Field(default_factory=list)


class AddPointsResponseDto(BaseModel):
    success: bool = Field(True)
    points_applied: int
    user: UserProfileDto
    rank_rewards: List[RankRewardEvent] = Field(default_factory=list)
