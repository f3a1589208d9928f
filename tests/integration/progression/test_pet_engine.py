from datetime import timedelta

import pytest

from src.core.exceptions.base import ProgressionError, ProgressionErrorKind
from src.core.service.progression.models import PetState
from src.core.service.progression.pet_engine import PetAccrualEngine


@pytest.fixture
def engine(progression_policy):
    return PetAccrualEngine(progression_policy)


@pytest.fixture
def hatched_pet(now):
    return PetState(user_id="42", hatched=True, last_claim_at=now - timedelta(hours=2))


def test_first_feed_hatches_pet(engine, now):
    result = engine.feed(PetState(user_id="42"), now)

    assert result.pet.hatched is True
    assert result.pet.last_claim_at == now
    assert result.pet.last_feed_at == now
    assert result.pet.xp == 20
    assert result.points_spent == 20
    assert result.pet.daily_spend == 20
    assert result.pet.daily_spend_date == now.date()


def test_daily_cap_allows_thirtieth_feed_and_rejects_thirty_first(engine, now):
    pet = PetState(user_id="42")
    for i in range(30):
        pet = engine.feed(pet, now + timedelta(seconds=i)).pet

    assert pet.daily_spend == 600

    with pytest.raises(ProgressionError) as exc_info:
        engine.feed(pet, now + timedelta(minutes=1))

    assert exc_info.value.kind == ProgressionErrorKind.DAILY_CAP_EXCEEDED


def test_daily_cap_resets_on_next_utc_day(engine, now):
    pet = engine.feed(PetState(user_id="42"), now, feed_count=30).pet
    tomorrow = now.replace(hour=0, minute=0, second=1) + timedelta(days=1)

    result = engine.feed(pet, tomorrow)

    assert result.pet.daily_spend == 20
    assert result.pet.daily_spend_date == tomorrow.date()


def test_batch_feed_is_all_or_nothing(engine, now):
    pet = engine.feed(PetState(user_id="42"), now, feed_count=25).pet

    with pytest.raises(ProgressionError) as exc_info:
        engine.feed(pet, now, feed_count=6)

    assert exc_info.value.kind == ProgressionErrorKind.DAILY_CAP_EXCEEDED
    assert pet.daily_spend == 500


@pytest.mark.parametrize("feed_count", [0, -1, 31])
def test_invalid_feed_count(engine, now, feed_count):
    with pytest.raises(ProgressionError) as exc_info:
        engine.feed(PetState(user_id="42"), now, feed_count=feed_count)

    assert exc_info.value.kind == ProgressionErrorKind.INVALID_FEED_COUNT


def test_feed_levels_up_pet(engine, now):
    pet = PetState(user_id="42", hatched=True, last_claim_at=now, xp=1190)

    result = engine.feed(pet, now)

    assert result.pet.level == 2
    assert result.pet.xp == 10
    assert result.levels_gained == 1


def test_max_level_pet_cannot_be_fed(engine, now):
    pet = PetState(user_id="42", hatched=True, last_claim_at=now, level=10)

    with pytest.raises(ProgressionError) as exc_info:
        engine.feed(pet, now)

    assert exc_info.value.kind == ProgressionErrorKind.PET_MAX_LEVEL


def test_unhatched_pet_accrues_nothing(engine, now):
    pet = PetState(user_id="42")

    assert engine.compute_claimable(pet, now + timedelta(days=3)) == 0
    assert engine.seconds_until_claimable(pet, now) is None


def test_claimable_grows_with_time(engine, hatched_pet, now):
    # level 1: 500 * 1 * 0.8 = 400 per hour
    assert engine.compute_claimable(hatched_pet, now) == 800


def test_claimable_capped_at_max_hours(engine, now):
    pet = PetState(user_id="42", hatched=True, level=3, last_claim_at=now - timedelta(hours=10))

    assert engine.compute_claimable(pet, now) == 4800


def test_claim_below_minimum_leaves_pet_untouched(engine, now):
    pet = PetState(
        user_id="42",
        hatched=True,
        accrued_yield=500,
        last_claim_at=now - timedelta(hours=1),
        last_accrual_at=now,
    )

    with pytest.raises(ProgressionError) as exc_info:
        engine.claim(pet, now)

    assert exc_info.value.kind == ProgressionErrorKind.BELOW_CLAIM_MINIMUM
    assert exc_info.value.details["claimable"] == 500
    assert pet.last_claim_at == now - timedelta(hours=1)
    assert pet.accrued_yield == 500


def test_claim_resets_accrual(engine, now):
    pet = PetState(user_id="42", hatched=True, last_claim_at=now - timedelta(hours=3))

    result = engine.claim(pet, now)

    assert result.amount == 1200
    assert result.pet.accrued_yield == 0
    assert result.pet.last_claim_at == now
    assert result.pet.total_yield_claimed == 1200
    assert engine.compute_claimable(result.pet, now) == 0


def test_claim_within_cooldown_rejected(engine, now):
    pet = PetState(
        user_id="42",
        hatched=True,
        accrued_yield=5000,
        last_claim_at=now - timedelta(minutes=30),
    )

    with pytest.raises(ProgressionError) as exc_info:
        engine.claim(pet, now)

    assert exc_info.value.kind == ProgressionErrorKind.CLAIM_COOLDOWN
    assert exc_info.value.details["retry_after"] == 1800


def test_feeding_banks_yield_earned_so_far(engine, hatched_pet, now):
    result = engine.feed(hatched_pet, now)

    assert result.pet.accrued_yield == 800
    assert result.pet.last_accrual_at == now
    assert result.pet.last_claim_at == hatched_pet.last_claim_at
    assert engine.compute_claimable(result.pet, now) == 800


def test_seconds_until_claimable(engine, now):
    pet = PetState(user_id="42", hatched=True, last_claim_at=now - timedelta(hours=1))

    # 1000 minimum at 400/hour needs 2.5 hours
    assert engine.seconds_until_claimable(pet, now) == 5400


def test_seconds_until_claimable_never_when_rate_too_low(progression_policy, now):
    policy = progression_policy.model_copy(update={"min_claim_amount": 10_000})
    engine = PetAccrualEngine(policy)
    pet = PetState(user_id="42", hatched=True, last_claim_at=now)

    assert engine.seconds_until_claimable(pet, now) is None


def test_level_up_raises_rate_only_from_the_feed_onwards(progression_policy, now):
    engine = PetAccrualEngine(progression_policy.model_copy(update={"pet_xp_for_level_up": 20}))
    hatched = engine.feed(PetState(user_id="42"), now).pet
    assert hatched.level == 2

    # 3h at level 2 (800/h) banked, then level 3 (1200/h) for 1h
    leveled = engine.feed(hatched, now + timedelta(hours=3)).pet
    assert leveled.level == 3
    assert leveled.accrued_yield == 2400

    claim = engine.claim(leveled, now + timedelta(hours=4))

    assert claim.amount == 2400 + 1200


def test_claim_after_level_up_pays_banked_yield_then_restarts(progression_policy, now):
    engine = PetAccrualEngine(progression_policy.model_copy(update={"pet_xp_for_level_up": 20}))
    pet = PetState(user_id="42", hatched=True, last_claim_at=now)

    pet = engine.feed(pet, now + timedelta(hours=3)).pet
    first = engine.claim(pet, now + timedelta(hours=4))

    # 3h at level 1 (400/h) plus 1h at level 2 (800/h)
    assert first.amount == 1200 + 800
    assert engine.compute_claimable(first.pet, now + timedelta(hours=4)) == 0

    second = engine.claim(first.pet, now + timedelta(hours=6))

    assert second.amount == 1600
    assert second.pet.total_yield_claimed == 2000 + 1600


def test_banked_yield_still_capped_at_max_hours(engine, now):
    pet = PetState(user_id="42", hatched=True, last_claim_at=now - timedelta(hours=3))

    banked = engine.accrue(pet, now)

    # one more hour reaches the cap; anything later adds nothing
    assert engine.compute_claimable(banked, now + timedelta(hours=1)) == 1600
    assert engine.compute_claimable(banked, now + timedelta(hours=20)) == 1600
