from datetime import timedelta
from typing import Dict, List

from pydantic import BaseModel, Field, model_validator

from src.core.service.progression.models import ActionKind, Rank, RankThreshold


class ProgressionPolicy(BaseModel):
    """All game constants, passed by reference into every calculator"""

    # Energy
    max_energy: int = Field(default=10, ge=1)
    energy_regen_interval_seconds: int = Field(default=1800, ge=1)
    energy_per_game: int = Field(default=1, ge=0)

    # User levels
    user_xp_for_level_up: int = Field(default=1000, ge=1)
    user_max_level: int = Field(default=100, ge=1)
    xp_per_score_point: int = Field(default=1, ge=0)

    # Games
    base_points_per_game: int = Field(default=0, ge=0)
    score_multiplier: float = Field(default=1.0, ge=0)
    min_game_duration_seconds: int = Field(default=5, ge=0)
    max_game_duration_seconds: int = Field(default=300, ge=1)

    # Pet
    feed_cost: int = Field(default=20, ge=0)
    xp_per_feed: int = Field(default=20, ge=0)
    pet_xp_for_level_up: int = Field(default=1200, ge=1)
    pet_max_level: int = Field(default=10, ge=1)
    max_daily_spend: int = Field(default=600, ge=0)
    max_feeds_per_request: int = Field(default=30, ge=1)
    max_claim_hours: int = Field(default=4, ge=0)
    # Base rate scales level * growth_rate up so MIN_CLAIM_AMOUNT is reachable within max_claim_hours
    yield_per_level_per_hour: int = Field(default=500, ge=0)
    growth_rate: float = Field(default=0.8, ge=0)
    min_claim_amount: int = Field(default=1000, ge=0)
    claim_cooldown_seconds: int = Field(default=3600, ge=0)

    # Ranking
    rank_table: List[RankThreshold] = Field(default_factory=lambda: default_rank_table())
    credit_rank_rewards: bool = True

    # Anti-cheat
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    rate_limits: Dict[ActionKind, int] = Field(
        default_factory=lambda: {ActionKind.FEED: 30, ActionKind.GAME: 10}
    )

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_rank_table(self) -> "ProgressionPolicy":
        if not self.rank_table:
            raise ValueError("rank_table must not be empty")
        if self.rank_table[0].minimum_lifetime_points != 0:
            raise ValueError("the lowest rank must start at 0 lifetime points")
        thresholds = [entry.minimum_lifetime_points for entry in self.rank_table]
        if thresholds != sorted(thresholds) or len(set(thresholds)) != len(thresholds):
            raise ValueError("rank thresholds must be strictly ascending")
        return self

    @property
    def energy_regen_interval(self) -> timedelta:
        return timedelta(seconds=self.energy_regen_interval_seconds)

    @classmethod
    def from_settings(cls, settings) -> "ProgressionPolicy":
        return cls(
            max_energy=settings.MAX_ENERGY,
            energy_regen_interval_seconds=settings.ENERGY_REGEN_INTERVAL_SECONDS,
            energy_per_game=settings.ENERGY_PER_GAME,
            user_xp_for_level_up=settings.USER_XP_FOR_LEVEL_UP,
            user_max_level=settings.USER_MAX_LEVEL,
            xp_per_score_point=settings.XP_PER_SCORE_POINT,
            base_points_per_game=settings.BASE_POINTS_PER_GAME,
            score_multiplier=settings.SCORE_MULTIPLIER,
            min_game_duration_seconds=settings.MIN_GAME_DURATION_SECONDS,
            max_game_duration_seconds=settings.MAX_GAME_DURATION_SECONDS,
            feed_cost=settings.PET_FEED_COST,
            xp_per_feed=settings.PET_XP_PER_FEED,
            pet_xp_for_level_up=settings.PET_XP_FOR_LEVEL_UP,
            pet_max_level=settings.PET_MAX_LEVEL,
            max_daily_spend=settings.PET_MAX_DAILY_SPEND,
            max_feeds_per_request=settings.PET_MAX_FEEDS_PER_REQUEST,
            max_claim_hours=settings.PET_MAX_CLAIM_HOURS,
            yield_per_level_per_hour=settings.PET_YIELD_PER_LEVEL_PER_HOUR,
            growth_rate=settings.PET_GROWTH_RATE,
            min_claim_amount=settings.PET_MIN_CLAIM_AMOUNT,
            claim_cooldown_seconds=settings.PET_CLAIM_COOLDOWN_SECONDS,
            rank_table=build_rank_table(settings.RANK_THRESHOLDS, settings.RANK_REWARDS),
            credit_rank_rewards=settings.CREDIT_RANK_REWARDS,
            rate_limit_window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            rate_limits={
                ActionKind.FEED: settings.RATE_LIMIT_FEEDS_PER_MINUTE,
                ActionKind.GAME: settings.RATE_LIMIT_GAMES_PER_MINUTE,
            },
        )


def build_rank_table(thresholds: Dict[str, int], rewards: Dict[str, int]) -> List[RankThreshold]:
    table = [
        RankThreshold(
            rank=Rank(name),
            minimum_lifetime_points=minimum,
            reward_amount=rewards.get(name, 0),
        )
        for name, minimum in thresholds.items()
    ]
    return sorted(table, key=lambda entry: entry.minimum_lifetime_points)


def default_rank_table() -> List[RankThreshold]:
    return build_rank_table(
        {"RANK1": 0, "RANK2": 10000, "RANK3": 25000, "RANK4": 45000, "RANK5": 60000, "RANK6": 75000},
        {"RANK1": 0, "RANK2": 1000, "RANK3": 2000, "RANK4": 3000, "RANK5": 4000, "RANK6": 5000},
    )
