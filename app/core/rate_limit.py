import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from app.core.config import Settings


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class FixedWindowRateLimiter:
    """
    Counts hits per key inside a fixed window.

    A key's window opens on its first hit and resets once ``window_seconds``
    have elapsed. Counters are process-local; expired windows are swept at
    most once per window so idle clients do not accumulate.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, (started, _) in self._windows.items()
            if now - started >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0

            reset_in = self.window_seconds - (now - started)
            if count >= self.limit:
                self._windows[key] = (started, count)
                return RateLimitResult(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after=max(1, math.ceil(reset_in)),
                )

            count += 1
            self._windows[key] = (started, count)
            return RateLimitResult(
                allowed=True,
                limit=self.limit,
                remaining=self.limit - count,
                retry_after=0,
            )


@dataclass
class RateLimitRule:
    name: str
    path_prefix: str
    limiter: FixedWindowRateLimiter
    methods: Optional[FrozenSet[str]] = field(default=None)

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")


def build_rate_limit_rules(
    settings: Settings, clock: Callable[[], float] = time.monotonic
) -> List[RateLimitRule]:
    """Auth, upload and general API rules, checked in that order."""
    window = settings.rate_limit_window_seconds
    return [
        RateLimitRule(
            name="auth",
            path_prefix="/api/auth",
            limiter=FixedWindowRateLimiter(settings.auth_rate_limit_max, window, clock),
        ),
        RateLimitRule(
            name="upload",
            path_prefix="/api/artworks/create",
            limiter=FixedWindowRateLimiter(settings.upload_rate_limit_max, window, clock),
            methods=frozenset({"POST"}),
        ),
        RateLimitRule(
            name="api",
            path_prefix="/api",
            limiter=FixedWindowRateLimiter(settings.api_rate_limit_max, window, clock),
        ),
    ]
