import math
from datetime import datetime, timedelta
from typing import Tuple


def elapsed_seconds(since: datetime, now: datetime) -> float:
    """Seconds from `since` to `now`, never negative"""
    return max(0.0, (now - since).total_seconds())


class EnergyClock:
    """One energy point regenerates every `regen_interval` up to the cap"""

    def __init__(self, regen_interval: timedelta):
        if regen_interval.total_seconds() <= 0:
            raise ValueError("regen_interval must be positive")
        self.regen_interval = regen_interval

    def _intervals_elapsed(self, last_update: datetime, now: datetime) -> int:
        return int(elapsed_seconds(last_update, now) // self.regen_interval.total_seconds())

    def regenerate(self, last_update: datetime, max_energy: int, current_energy: int, now: datetime) -> int:
        """min(current + whole intervals elapsed, max)"""
        return min(current_energy + self._intervals_elapsed(last_update, now), max_energy)

    def advance(
        self,
        last_update: datetime,
        max_energy: int,
        current_energy: int,
        now: datetime,
    ) -> Tuple[int, datetime]:
        """
        Regenerate and move the reference timestamp forward by the whole
        intervals consumed, so partial progress toward the next point is kept.
        A full tank restarts the clock at `now`.
        """
        energy = self.regenerate(last_update, max_energy, current_energy, now)
        if energy >= max_energy:
            return energy, max(now, last_update)

        gained = energy - current_energy
        if gained <= 0:
            return energy, last_update
        return energy, last_update + gained * self.regen_interval

    def seconds_until_next(self, last_update: datetime, max_energy: int, current_energy: int, now: datetime) -> int:
        energy, reference = self.advance(last_update, max_energy, current_energy, now)
        if energy >= max_energy:
            return 0
        remaining = self.regen_interval.total_seconds() - elapsed_seconds(reference, now)
        return max(0, math.ceil(remaining))
