"""
Public facade of the progression engine.

Every mutation follows the same cycle: load the principal's state, compute the
new state with the pure calculators, then commit with compare-and-swap on the
version that was loaded. A lost race re-reads and recomputes a bounded number
of times before surfacing a CONFLICT. Policy rejections raise before any write
is attempted.
"""

import asyncio
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from src.core.exceptions.base import ProgressionError, ProgressionErrorKind, StoreTimeoutError
from src.core.logger.logger import get_logger
from src.core.service.auth.auth_gate import IdentityProvider
from src.core.service.auth.models.principal import Principal
from src.core.service.progression.calculator import ProgressionCalculator
from src.core.service.progression.claim_authorizer import ClaimAuthorizer
from src.core.service.progression.energy_clock import EnergyClock
from src.core.service.progression.models import (
    ActionKind,
    ClaimOutcome,
    EnergyStatus,
    FeedOutcome,
    GameOutcome,
    GameResult,
    MutationOutcome,
    PetState,
    PetStatus,
    PointsOutcome,
    RankInfo,
    RankRewardEvent,
    UserState,
)
from src.core.service.progression.pet_engine import PetAccrualEngine
from src.core.service.progression.policy import ProgressionPolicy
from src.core.service.progression.rate_limiter import ActionRateLimiter
from src.core.service.progression.wallet import generate_wallet
from src.infra.repository.state_store import StateStore

logger = get_logger(__name__)

T = TypeVar("T")
Outcome = TypeVar("Outcome", bound=MutationOutcome)


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]


class ProgressionService:
    def __init__(
        self,
        store: StateStore,
        policy: ProgressionPolicy,
        rate_limiter: Optional[ActionRateLimiter] = None,
        claim_authorizer: Optional[ClaimAuthorizer] = None,
        identity_provider: Optional[IdentityProvider] = None,
        max_commit_retries: int = 3,
        operation_timeout_seconds: float = 2.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.policy = policy
        self.calculator = ProgressionCalculator(policy)
        self.energy_clock = EnergyClock(policy.energy_regen_interval)
        self.pet_engine = PetAccrualEngine(policy)
        self.rate_limiter = rate_limiter or ActionRateLimiter(policy.rate_limits, policy.rate_limit_window_seconds)
        self.claim_authorizer = claim_authorizer
        self.identity_provider = identity_provider
        self.max_commit_retries = max(1, max_commit_retries)
        self.operation_timeout_seconds = operation_timeout_seconds
        self.clock = clock
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Persistence plumbing
    # ------------------------------------------------------------------

    async def _call_store(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.operation_timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "State store call timed out",
                extra={"operation": operation, "timeout_seconds": self.operation_timeout_seconds}
            )
            raise StoreTimeoutError(operation, self.operation_timeout_seconds)

    def _default_user(self, user_id: str, now: datetime) -> UserState:
        return UserState(
            id=user_id,
            current_energy=self.policy.max_energy,
            last_energy_update=now,
            created_at=now,
            current_rank=self.policy.rank_table[0].rank,
        )

    async def _load(self, user_id: str, now: datetime) -> Tuple[UserState, PetState]:
        user = await self._call_store("load_user_state", self.store.load_user_state(user_id))
        pet = await self._call_store("load_pet_state", self.store.load_pet_state(user_id))
        if user is None:
            user = self._default_user(user_id, now)
        if pet is None:
            pet = PetState(user_id=user_id)
        return user, pet

    async def _mutate(
        self,
        user_id: str,
        operation: str,
        now: datetime,
        compute: Callable[[UserState, PetState], Outcome],
    ) -> Outcome:
        async with self._locks.acquire(user_id):
            for attempt in range(1, self.max_commit_retries + 1):
                user, pet = await self._load(user_id, now)
                outcome = compute(user, pet)

                committed = await self._call_store(
                    "compare_and_swap",
                    self.store.compare_and_swap(user_id, user.version, outcome.user, outcome.pet),
                )
                if committed:
                    stored_user = outcome.user.model_copy(update={"version": user.version + 1})
                    return outcome.model_copy(update={"user": stored_user})

                logger.warning(
                    "Concurrent modification detected, retrying",
                    extra={"user_id": user_id, "operation": operation, "attempt": attempt}
                )

        raise ProgressionError(
            ProgressionErrorKind.CONFLICT,
            "State changed concurrently, please retry",
            details={"attempts": self.max_commit_retries},
        )

    def _check_rate(self, user_id: str, action_kind: ActionKind, now: datetime) -> None:
        if not self.rate_limiter.allow(user_id, action_kind, now):
            raise ProgressionError(
                ProgressionErrorKind.RATE_LIMITED,
                f"Too many {action_kind.value} actions, slow down",
                details={"retry_after": self.policy.rate_limit_window_seconds},
            )

    # ------------------------------------------------------------------
    # Point crediting shared by every operation
    # ------------------------------------------------------------------

    def _credit(self, user: UserState, delta: int) -> Tuple[UserState, List[RankRewardEvent]]:
        """Apply a delta and, if configured, credit the rank rewards it unlocks"""
        events: List[RankRewardEvent] = []
        application = self.calculator.apply_points(user, delta)
        user = application.state

        # Each credited reward can unlock at most one further rank
        for _ in range(len(self.policy.rank_table)):
            event = application.rank_event
            if event is None:
                break
            if not self.policy.credit_rank_rewards or event.reward_amount <= 0:
                events.append(event)
                break
            events.append(event.model_copy(update={"credited": True}))
            application = self.calculator.apply_points(user, event.reward_amount)
            user = application.state

        for event in events:
            logger.info(
                "Rank up",
                extra={
                    "user_id": user.id,
                    "previous_rank": event.previous_rank.value,
                    "new_rank": event.new_rank.value,
                    "reward_amount": event.reward_amount,
                    "credited": event.credited,
                }
            )
        return user, events

    def _regenerated(self, user: UserState, now: datetime) -> UserState:
        energy, reference = self.energy_clock.advance(
            user.last_energy_update, self.policy.max_energy, user.current_energy, now
        )
        return user.model_copy(update={"current_energy": energy, "last_energy_update": reference})

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def authenticate(self, raw_init_data: str, now: Optional[datetime] = None) -> Tuple[Principal, UserState]:
        """Authenticate initData and load (or create) the principal's state"""
        if self.identity_provider is None:
            raise RuntimeError("ProgressionService was built without an identity provider")
        now = now or self.clock()
        principal = self.identity_provider.authenticate(raw_init_data, now)
        return principal, await self.ensure_user(principal, now)

    async def ensure_user(self, principal: Principal, now: Optional[datetime] = None) -> UserState:
        """Return the principal's state, creating it (with a wallet) on first interaction"""
        now = now or self.clock()
        user, _ = await self._load(principal.id, now)
        username_current = principal.username is None or user.username == principal.username
        if user.version > 0 and user.wallet_address and username_current:
            return user

        def compute(user: UserState, pet: PetState) -> MutationOutcome:
            update = {"username": principal.username or user.username}
            if not user.wallet_address:
                wallet_address, public_key = generate_wallet(principal, now)
                update.update(wallet_address=wallet_address, public_key=public_key)
            return MutationOutcome(user=user.model_copy(update=update), pet=pet)

        outcome = await self._mutate(principal.id, "ensure_user", now, compute)
        if user.version == 0:
            logger.info(
                "Created user on first interaction",
                extra={"user_id": principal.id, "wallet_address": outcome.user.wallet_address}
            )
        return outcome.user

    async def get_energy_state(self, user_id: str, now: Optional[datetime] = None) -> EnergyStatus:
        now = now or self.clock()
        user, _ = await self._load(user_id, now)
        return EnergyStatus(
            current_energy=self.energy_clock.regenerate(
                user.last_energy_update, self.policy.max_energy, user.current_energy, now
            ),
            max_energy=self.policy.max_energy,
            seconds_until_next=self.energy_clock.seconds_until_next(
                user.last_energy_update, self.policy.max_energy, user.current_energy, now
            ),
        )

    async def complete_game(self, user_id: str, result: GameResult, now: Optional[datetime] = None) -> GameOutcome:
        now = now or self.clock()

        if result.score < 0 or not (
            self.policy.min_game_duration_seconds <= result.duration_seconds <= self.policy.max_game_duration_seconds
        ):
            raise ProgressionError(
                ProgressionErrorKind.INVALID_GAME_RESULT,
                "Implausible game result",
                details={"score": result.score, "duration_seconds": result.duration_seconds},
            )

        self._check_rate(user_id, ActionKind.GAME, now)
        points = self.policy.base_points_per_game + math.floor(result.score * self.policy.score_multiplier)
        xp = points * self.policy.xp_per_score_point

        def compute(user: UserState, pet: PetState) -> GameOutcome:
            user = self._regenerated(user, now)
            if user.current_energy < self.policy.energy_per_game:
                raise ProgressionError(
                    ProgressionErrorKind.INSUFFICIENT_ENERGY,
                    "Not enough energy to play",
                    details={"current_energy": user.current_energy},
                )
            user = user.model_copy(update={"current_energy": user.current_energy - self.policy.energy_per_game})

            user, events = self._credit(user, points)
            user = self.calculator.add_xp(user, xp)
            return GameOutcome(
                user=user,
                pet=pet,
                rank_rewards=events,
                points_earned=points,
                xp_earned=xp,
                energy_remaining=user.current_energy,
            )

        outcome = await self._mutate(user_id, "complete_game", now, compute)
        logger.info(
            "Game completed",
            extra={"user_id": user_id, "score": result.score, "points_earned": points}
        )
        return outcome

    async def feed_pet(self, user_id: str, now: Optional[datetime] = None, feed_count: int = 1) -> FeedOutcome:
        now = now or self.clock()
        self._check_rate(user_id, ActionKind.FEED, now)

        def compute(user: UserState, pet: PetState) -> FeedOutcome:
            cost = feed_count * self.policy.feed_cost
            if user.total_points < cost:
                raise ProgressionError(
                    ProgressionErrorKind.INSUFFICIENT_POINTS,
                    "Insufficient points",
                    details={"required": cost, "available": user.total_points},
                )
            fed = self.pet_engine.feed(pet, now, feed_count)
            user, events = self._credit(user, -fed.points_spent)
            return FeedOutcome(
                user=user,
                pet=fed.pet,
                rank_rewards=events,
                points_spent=fed.points_spent,
                xp_gained=fed.xp_gained,
                levels_gained=fed.levels_gained,
            )

        outcome = await self._mutate(user_id, "feed_pet", now, compute)
        logger.info(
            "Pet fed",
            extra={
                "user_id": user_id,
                "feed_count": feed_count,
                "xp_gained": outcome.xp_gained,
                "pet_level": outcome.pet.level,
            }
        )
        return outcome

    async def claim_pet_yield(self, user_id: str, now: Optional[datetime] = None) -> ClaimOutcome:
        now = now or self.clock()

        def compute(user: UserState, pet: PetState) -> ClaimOutcome:
            claimed = self.pet_engine.claim(pet, now)
            user, events = self._credit(user, claimed.amount)
            return ClaimOutcome(user=user, pet=claimed.pet, rank_rewards=events, amount=claimed.amount)

        outcome = await self._mutate(user_id, "claim_pet_yield", now, compute)

        if self.claim_authorizer and outcome.user.wallet_address:
            authorization = self.claim_authorizer.issue(
                user_id, outcome.user.wallet_address, outcome.amount, now
            )
            outcome = outcome.model_copy(update={"authorization": authorization})

        logger.info("Pet yield claimed", extra={"user_id": user_id, "amount": outcome.amount})
        return outcome

    async def add_points(self, user_id: str, delta: int, now: Optional[datetime] = None) -> PointsOutcome:
        now = now or self.clock()

        def compute(user: UserState, pet: PetState) -> PointsOutcome:
            before = user.total_points
            user, events = self._credit(user, delta)
            return PointsOutcome(user=user, pet=pet, rank_rewards=events, points_applied=user.total_points - before)

        outcome = await self._mutate(user_id, "add_points", now, compute)
        logger.info(
            "Points updated",
            extra={"user_id": user_id, "delta": delta, "total_points": outcome.user.total_points}
        )
        return outcome

    async def get_pet_status(self, user_id: str, now: Optional[datetime] = None) -> PetStatus:
        now = now or self.clock()
        _, pet = await self._load(user_id, now)
        claimable = self.pet_engine.compute_claimable(pet, now)
        wait = self.pet_engine.seconds_until_claimable(pet, now)
        return PetStatus(
            level=pet.level,
            current_xp=pet.xp,
            xp_for_next_level=self.policy.pet_xp_for_level_up,
            hatched=pet.hatched,
            claimable_yield=claimable,
            can_claim=wait == 0,
            seconds_until_claim=wait,
            daily_feed_spent=self.pet_engine.daily_spend_today(pet, now),
            daily_feed_limit=self.policy.max_daily_spend,
            feed_cost=self.policy.feed_cost,
            last_claim_at=pet.last_claim_at,
        )

    async def get_rank_info(self, user_id: str) -> RankInfo:
        user, _ = await self._load(user_id, self.clock())
        return self.calculator.rank_info(user)
