"""
State and result models for the progression engine.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class Rank(str, Enum):
    RANK1 = "RANK1"
    RANK2 = "RANK2"
    RANK3 = "RANK3"
    RANK4 = "RANK4"
    RANK5 = "RANK5"
    RANK6 = "RANK6"


RANK_ORDER: List[Rank] = list(Rank)


def rank_index(rank: Rank) -> int:
    return RANK_ORDER.index(Rank(rank))


class ActionKind(str, Enum):
    FEED = "feed"
    GAME = "game"


class RankThreshold(BaseModel):
    rank: Rank
    minimum_lifetime_points: int = Field(..., ge=0)
    reward_amount: int = Field(default=0, ge=0)

    class Config:
        frozen = True


class UserState(BaseModel):
    """Persisted progression state of one principal"""
    id: str
    username: Optional[str] = None
    wallet_address: Optional[str] = None
    public_key: Optional[str] = None
    total_points: int = Field(default=0, ge=0)
    lifetime_points: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    current_xp: int = Field(default=0, ge=0)
    current_rank: Rank = Rank.RANK1
    current_energy: int = Field(default=0, ge=0)
    last_energy_update: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = Field(default=0, ge=0, description="Optimistic concurrency token; 0 means never stored")

    @model_validator(mode="after")
    def check_lifetime_covers_total(self) -> "UserState":
        if self.lifetime_points < self.total_points:
            raise ValueError("lifetime_points must be >= total_points")
        return self


class PetState(BaseModel):
    """Persisted virtual pet, owned 1:1 by a UserState"""
    user_id: str
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    last_feed_at: Optional[datetime] = None
    last_claim_at: Optional[datetime] = None
    last_accrual_at: Optional[datetime] = Field(default=None, description="Time accrued_yield was last banked; defaults to last_claim_at")
    accrued_yield: int = Field(default=0, ge=0)
    daily_spend: int = Field(default=0, ge=0)
    daily_spend_date: Optional[date] = None
    total_yield_claimed: int = Field(default=0, ge=0)
    hatched: bool = False


class RateWindow(BaseModel):
    """Snapshot of one principal's trailing window for one action kind"""
    window_start: datetime
    count: int
    limit: int


class RankRewardEvent(BaseModel):
    user_id: str
    previous_rank: Rank
    new_rank: Rank
    reward_amount: int
    credited: bool = False


class PointsApplication(BaseModel):
    """Result of ProgressionCalculator.apply_points"""
    state: UserState
    rank_event: Optional[RankRewardEvent] = None


class EnergyStatus(BaseModel):
    current_energy: int
    max_energy: int
    seconds_until_next: int


class GameResult(BaseModel):
    score: int
    duration_seconds: int


class RankInfo(BaseModel):
    current_rank: Rank
    lifetime_points: int
    next_rank: Optional[Rank] = None
    next_rank_threshold: int
    points_to_next_rank: int
    rank_progress: int = Field(..., ge=0, le=100)


class PetStatus(BaseModel):
    level: int
    current_xp: int
    xp_for_next_level: int
    hatched: bool
    claimable_yield: int
    can_claim: bool
    seconds_until_claim: Optional[int] = None
    daily_feed_spent: int
    daily_feed_limit: int
    feed_cost: int
    last_claim_at: Optional[datetime] = None


class ClaimAuthorization(BaseModel):
    """Signed statement that `amount` may be recorded on-chain for `wallet_address`"""
    token: str
    nonce: str
    wallet_address: str
    amount: int
    expires_at: datetime


class MutationOutcome(BaseModel):
    """Committed snapshot returned by every state-changing operation"""
    user: UserState
    pet: PetState
    rank_rewards: List[RankRewardEvent] = Field(default_factory=list)


class PointsOutcome(MutationOutcome):
    points_applied: int


class GameOutcome(MutationOutcome):
    points_earned: int
    xp_earned: int
    energy_remaining: int


class FeedOutcome(MutationOutcome):
    points_spent: int
    xp_gained: int
    levels_gained: int


class ClaimOutcome(MutationOutcome):
    amount: int
    authorization: Optional[ClaimAuthorization] = None
