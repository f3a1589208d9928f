"""
Anti-cheat sliding window limiter for feed and game actions.
"""

import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Optional, Tuple

from src.core.logger.logger import get_logger
from src.core.service.progression.models import ActionKind, RateWindow

logger = get_logger(__name__)


class ActionRateLimiter:
    """
    Per (principal, action kind) log of action timestamps over a trailing window.

    The window trails the timestamp of the action being checked, not the order
    in which requests arrive. A timestamp older than the newest one already
    recorded for the same key is refused outright instead of being allowed to
    shift the window back.

    Keys whose actions have all left the window are swept at most once per
    window length. After a sweep, timestamps at or before the sweep cutoff are
    refused for every key, since the evidence needed to judge them is gone.
    """

    def __init__(self, limits: Dict[ActionKind, int], window_seconds: int = 60):
        self.limits = dict(limits)
        self.window = timedelta(seconds=window_seconds)
        self._events: Dict[Tuple[str, ActionKind], Deque[datetime]] = {}
        self._latest: Dict[Tuple[str, ActionKind], datetime] = {}
        self._swept_until: Optional[datetime] = None
        self._next_sweep: Optional[datetime] = None
        self._lock = threading.Lock()

    def tracked_keys(self) -> int:
        """Number of (principal, action kind) keys currently held in memory"""
        with self._lock:
            return len(self._events.keys() | self._latest.keys())

    def _prune(self, key: Tuple[str, ActionKind], now: datetime) -> Deque[datetime]:
        events = self._events.get(key)
        if events is None:
            return deque()

        cutoff = now - self.window
        while events and events[0] <= cutoff:
            events.popleft()
        if not events:
            del self._events[key]
        return events

    def _sweep(self, now: datetime) -> None:
        if self._next_sweep is not None and now < self._next_sweep:
            return

        cutoff = now - self.window
        for key in list(self._events):
            self._prune(key, now)
        for key in [k for k, latest in self._latest.items() if latest <= cutoff]:
            del self._latest[key]

        self._swept_until = cutoff
        self._next_sweep = now + self.window

    def allow(self, principal_id: str, action_kind: ActionKind, now: datetime) -> bool:
        limit = self.limits.get(action_kind)
        if limit is None:
            logger.warning("No rate limit configured for action", extra={"action_kind": str(action_kind)})
            return False

        key = (principal_id, action_kind)
        with self._lock:
            latest = self._latest.get(key)
            if (latest is not None and now < latest) or (
                self._swept_until is not None and now <= self._swept_until
            ):
                logger.warning(
                    "Out-of-order action timestamp rejected",
                    extra={
                        "user_id": principal_id,
                        "action_kind": action_kind.value,
                        "timestamp": now.isoformat(),
                        "latest": (latest or self._swept_until).isoformat(),
                    }
                )
                return False

            self._sweep(now)
            events = self._prune(key, now)
            if len(events) >= limit:
                logger.warning(
                    "Action rate limit exceeded",
                    extra={
                        "user_id": principal_id,
                        "action_kind": action_kind.value,
                        "current_count": len(events),
                        "limit": limit,
                    }
                )
                return False

            events.append(now)
            self._events[key] = events
            self._latest[key] = now
            return True

    def window_for(self, principal_id: str, action_kind: ActionKind, now: datetime) -> RateWindow:
        key = (principal_id, action_kind)
        with self._lock:
            events = self._prune(key, max(now, self._latest.get(key, now)))
            return RateWindow(
                window_start=events[0] if events else now,
                count=len(events),
                limit=self.limits.get(action_kind, 0),
            )

    def reset(self, principal_id: Optional[str] = None) -> None:
        """Forget recorded actions for one principal, or for everyone"""
        with self._lock:
            if principal_id is None:
                self._events.clear()
                self._latest.clear()
                return
            for key in [k for k in self._latest if k[0] == principal_id]:
                self._events.pop(key, None)
                self._latest.pop(key, None)
