"""
Virtual pet: feeding, leveling and time-based yield.

Yield accrues at `yield_per_level_per_hour * level * growth_rate` per hour.
Feeding banks what was earned so far into `accrued_yield` and moves
`last_accrual_at` forward, so a level-up only raises the rate from that point
on. Accrual stops `max_claim_hours` after the last claim. The spend counter
for feeding is reset lazily, on the first feed of a new UTC day.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from src.core.exceptions.base import ProgressionError, ProgressionErrorKind
from src.core.service.progression.calculator import carry_xp
from src.core.service.progression.energy_clock import elapsed_seconds
from src.core.service.progression.models import PetState
from src.core.service.progression.policy import ProgressionPolicy

SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class FeedResult:
    pet: PetState
    points_spent: int
    xp_gained: int
    levels_gained: int


@dataclass(frozen=True)
class ClaimResult:
    pet: PetState
    amount: int


class PetAccrualEngine:
    def __init__(self, policy: ProgressionPolicy):
        self.policy = policy

    def yield_rate_per_hour(self, level: int) -> float:
        return self.policy.yield_per_level_per_hour * level * self.policy.growth_rate

    def accrual_deadline(self, pet: PetState) -> datetime:
        return pet.last_claim_at + timedelta(hours=self.policy.max_claim_hours)

    def compute_claimable(self, pet: PetState, now: datetime) -> int:
        if not pet.hatched or pet.last_claim_at is None:
            return 0

        since = pet.last_accrual_at or pet.last_claim_at
        until = min(now, self.accrual_deadline(pet))
        hours = elapsed_seconds(since, until) / SECONDS_PER_HOUR
        return pet.accrued_yield + math.floor(hours * self.yield_rate_per_hour(pet.level))

    def accrue(self, pet: PetState, now: datetime) -> PetState:
        """Bank the claimable amount at the current level into accrued_yield"""
        return pet.model_copy(update={
            "accrued_yield": self.compute_claimable(pet, now),
            "last_accrual_at": now,
        })

    def seconds_until_claimable(self, pet: PetState, now: datetime) -> Optional[int]:
        """Seconds until a claim would succeed; None if it never will without feeding"""
        if not pet.hatched or pet.last_claim_at is None:
            return None

        since_claim = elapsed_seconds(pet.last_claim_at, now)
        wait = max(0.0, self.policy.claim_cooldown_seconds - since_claim)

        shortfall = self.policy.min_claim_amount - self.compute_claimable(pet, now)
        if shortfall > 0:
            rate = self.yield_rate_per_hour(pet.level)
            seconds_needed = shortfall / rate * SECONDS_PER_HOUR if rate > 0 else math.inf
            if seconds_needed > elapsed_seconds(now, self.accrual_deadline(pet)):
                return None
            wait = max(wait, seconds_needed)

        return math.ceil(wait)

    def daily_spend_today(self, pet: PetState, now: datetime) -> int:
        return pet.daily_spend if pet.daily_spend_date == now.date() else 0

    def roll_daily_spend(self, pet: PetState, now: datetime) -> PetState:
        today = now.date()
        if pet.daily_spend_date == today:
            return pet
        return pet.model_copy(update={"daily_spend": 0, "daily_spend_date": today})

    def feed(self, pet: PetState, now: datetime, feed_count: int = 1) -> FeedResult:
        """
        Feed the pet `feed_count` times as one all-or-nothing step.

        Raises:
            ProgressionError: INVALID_FEED_COUNT, PET_MAX_LEVEL or DAILY_CAP_EXCEEDED
        """
        if feed_count < 1 or feed_count > self.policy.max_feeds_per_request:
            raise ProgressionError(
                ProgressionErrorKind.INVALID_FEED_COUNT,
                f"Invalid feed count (1-{self.policy.max_feeds_per_request})",
                details={"feed_count": feed_count},
            )

        if pet.level >= self.policy.pet_max_level:
            raise ProgressionError(ProgressionErrorKind.PET_MAX_LEVEL, "Pet is at maximum level")

        pet = self.roll_daily_spend(pet, now)
        cost = feed_count * self.policy.feed_cost
        if pet.daily_spend + cost > self.policy.max_daily_spend:
            raise ProgressionError(
                ProgressionErrorKind.DAILY_CAP_EXCEEDED,
                f"Daily feeding limit exceeded ({self.policy.max_daily_spend} points/day)",
                details={"daily_spend": pet.daily_spend, "cost": cost, "limit": self.policy.max_daily_spend},
            )

        if pet.hatched:
            pet = self.accrue(pet, now)
        else:
            pet = pet.model_copy(update={
                "hatched": True,
                "last_claim_at": now,
                "last_accrual_at": now,
                "accrued_yield": 0,
            })

        xp_gained = feed_count * self.policy.xp_per_feed
        level, xp, levels_gained = carry_xp(
            pet.level,
            pet.xp,
            xp_gained,
            self.policy.pet_xp_for_level_up,
            self.policy.pet_max_level,
        )

        fed = pet.model_copy(update={
            "xp": xp,
            "level": level,
            "daily_spend": pet.daily_spend + cost,
            "last_feed_at": now,
        })
        return FeedResult(pet=fed, points_spent=cost, xp_gained=xp_gained, levels_gained=levels_gained)

    def claim(self, pet: PetState, now: datetime) -> ClaimResult:
        """
        Collect the accrued yield. Rejections leave the pet untouched.

        Raises:
            ProgressionError: CLAIM_COOLDOWN or BELOW_CLAIM_MINIMUM
        """
        if pet.hatched and pet.last_claim_at is not None:
            since_claim = elapsed_seconds(pet.last_claim_at, now)
            if since_claim < self.policy.claim_cooldown_seconds:
                raise ProgressionError(
                    ProgressionErrorKind.CLAIM_COOLDOWN,
                    "Pet yield was claimed too recently",
                    details={"retry_after": math.ceil(self.policy.claim_cooldown_seconds - since_claim)},
                )

        amount = self.compute_claimable(pet, now)
        if amount < self.policy.min_claim_amount:
            raise ProgressionError(
                ProgressionErrorKind.BELOW_CLAIM_MINIMUM,
                f"Minimum claim is {self.policy.min_claim_amount} points",
                details={"claimable": amount, "minimum": self.policy.min_claim_amount},
            )

        claimed = pet.model_copy(update={
            "accrued_yield": 0,
            "last_claim_at": now,
            "last_accrual_at": now,
            "total_yield_claimed": pet.total_yield_claimed + amount,
        })
        return ClaimResult(pet=claimed, amount=amount)
