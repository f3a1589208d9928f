"""
Points, levels and ranks.

Everything here is pure: a new UserState is returned and the input is never
mutated, so the service can re-run a computation after a commit conflict.
"""

from typing import Optional, Tuple

from src.core.service.progression.models import (
    PointsApplication,
    Rank,
    RankInfo,
    RankRewardEvent,
    RankThreshold,
    UserState,
    rank_index,
)
from src.core.service.progression.policy import ProgressionPolicy


def carry_xp(level: int, xp: int, gain: int, xp_for_level_up: int, max_level: int) -> Tuple[int, int, int]:
    """
    Add XP and roll any overflow into levels, several at a time if needed.

    Returns:
        (new_level, new_xp, levels_gained). At max_level the XP saturates just
        below xp_for_level_up so 0 <= xp < xp_for_level_up always holds.
    """
    if gain < 0:
        raise ValueError("XP gain must be non-negative")

    start_level = level
    xp += gain
    while xp >= xp_for_level_up and level < max_level:
        xp -= xp_for_level_up
        level += 1

    if level >= max_level:
        level = max_level
        xp = min(xp, xp_for_level_up - 1)

    return level, xp, level - start_level


class ProgressionCalculator:
    def __init__(self, policy: ProgressionPolicy):
        self.policy = policy

    def threshold_for(self, lifetime_points: int) -> RankThreshold:
        """Last table entry whose minimum does not exceed lifetime_points"""
        selected = self.policy.rank_table[0]
        for entry in self.policy.rank_table:
            if entry.minimum_lifetime_points <= lifetime_points:
                selected = entry
            else:
                break
        return selected

    def rank_for(self, lifetime_points: int) -> Rank:
        return self.threshold_for(lifetime_points).rank

    def reward_for(self, rank: Rank) -> int:
        for entry in self.policy.rank_table:
            if entry.rank == rank:
                return entry.reward_amount
        return 0

    def apply_points(self, state: UserState, delta: int) -> PointsApplication:
        total_points = max(0, state.total_points + delta)
        lifetime_points = max(state.lifetime_points, total_points)

        derived_rank = self.rank_for(lifetime_points)
        # A stored rank is never taken away, even if the table is later raised
        new_rank = max(state.current_rank, derived_rank, key=rank_index)

        rank_event: Optional[RankRewardEvent] = None
        if new_rank != state.current_rank:
            rank_event = RankRewardEvent(
                user_id=state.id,
                previous_rank=state.current_rank,
                new_rank=new_rank,
                reward_amount=self.reward_for(new_rank),
            )

        new_state = state.model_copy(update={
            "total_points": total_points,
            "lifetime_points": lifetime_points,
            "current_rank": new_rank,
        })
        return PointsApplication(state=new_state, rank_event=rank_event)

    def add_xp(self, state: UserState, gain: int) -> UserState:
        level, xp, _ = carry_xp(
            state.level,
            state.current_xp,
            gain,
            self.policy.user_xp_for_level_up,
            self.policy.user_max_level,
        )
        return state.model_copy(update={"level": level, "current_xp": xp})

    def rank_info(self, state: UserState) -> RankInfo:
        lifetime_points = state.lifetime_points
        current = max(state.current_rank, self.rank_for(lifetime_points), key=rank_index)
        table = self.policy.rank_table
        positions = [i for i, entry in enumerate(table) if entry.rank == current]
        position = positions[0] if positions else table.index(self.threshold_for(lifetime_points))

        if position + 1 >= len(table):
            return RankInfo(
                current_rank=current,
                lifetime_points=lifetime_points,
                next_rank=None,
                next_rank_threshold=lifetime_points,
                points_to_next_rank=0,
                rank_progress=100,
            )

        floor = table[position].minimum_lifetime_points
        ceiling = table[position + 1].minimum_lifetime_points
        progress = (lifetime_points - floor) * 100 // (ceiling - floor)
        return RankInfo(
            current_rank=current,
            lifetime_points=lifetime_points,
            next_rank=table[position + 1].rank,
            next_rank_threshold=ceiling,
            points_to_next_rank=max(0, ceiling - lifetime_points),
            rank_progress=max(0, min(100, progress)),
        )
