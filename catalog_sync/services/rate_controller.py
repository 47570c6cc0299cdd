"""
Adaptive rate controller shared by every caller of one upstream host class
"""
import asyncio
from typing import Optional

from pydantic import BaseModel, ConfigDict

from catalog_sync.core.clock import Clock, Sleeper, monotonic, sleep
from catalog_sync.core.config import Settings
from catalog_sync.core.logging import log


class RateControllerSnapshot(BaseModel):
    """Point-in-time view of a controller, for logs and tests"""
    name: str
    min_interval_ms: float
    floor_interval_ms: float
    strikes: int
    safe_mode: bool
    cooldown_remaining_ms: float


class AdaptiveRateController:
    """
    Spaces outbound calls and backs off when the upstream answers 429.

    acquire() is a reserve-or-wait gate: callers queue on a FIFO lock, wait out
    any cooldown and the minimum spacing, then stamp the request time. Rate
    limits add strikes, push the cooldown deadline out and widen the spacing;
    successes decay strikes and relax the spacing back toward its floor.
    Safe mode latches on after enough strikes and only a restart clears it.
    """

    def __init__(
        self,
        name: str,
        min_interval_ms: float = 0,
        rate_limit_base_ms: float = 2000,
        rate_limit_max_ms: float = 120000,
        max_interval_ms: float = 10000,
        widen_factor: float = 1.5,
        relax_factor: float = 0.9,
        strike_cap: int = 10,
        safe_mode_strikes: int = 3,
        clock: Optional[Clock] = None,
        sleeper: Optional[Sleeper] = None,
    ):
        self.name = name
        self.rate_limit_base_ms = rate_limit_base_ms
        self.rate_limit_max_ms = rate_limit_max_ms
        self.max_interval_ms = max(max_interval_ms, min_interval_ms)
        self.widen_factor = widen_factor
        self.relax_factor = relax_factor
        self.strike_cap = strike_cap
        self.safe_mode_strikes = safe_mode_strikes

        self._clock = clock or monotonic
        self._sleep = sleeper or sleep
        self._lock = asyncio.Lock()

        self._floor_ms = float(min_interval_ms)
        self._interval_ms = float(min_interval_ms)
        self._last_request_at: Optional[float] = None
        self._rate_limited_until = 0.0
        self._strikes = 0
        self._safe_mode = False

    @classmethod
    def from_settings(
        cls,
        name: str,
        settings: Settings,
        min_interval_ms: float,
        clock: Optional[Clock] = None,
        sleeper: Optional[Sleeper] = None,
    ) -> "AdaptiveRateController":
        return cls(
            name=name,
            min_interval_ms=min_interval_ms,
            rate_limit_base_ms=settings.rate_limit_base_ms,
            rate_limit_max_ms=settings.rate_limit_max_ms,
            max_interval_ms=settings.max_interval_ms,
            widen_factor=settings.interval_widen_factor,
            relax_factor=settings.interval_relax_factor,
            strike_cap=settings.strike_cap,
            safe_mode_strikes=settings.safe_mode_strikes,
            clock=clock,
            sleeper=sleeper,
        )

    @property
    def safe_mode(self) -> bool:
        return self._safe_mode

    @property
    def strikes(self) -> int:
        return self._strikes

    @property
    def min_interval_ms(self) -> float:
        return self._interval_ms

    @property
    def floor_interval_ms(self) -> float:
        return self._floor_ms

    @property
    def rate_limited_until(self) -> float:
        return self._rate_limited_until

    async def acquire(self) -> None:
        """Wait until one outbound call may be issued"""
        async with self._lock:
            while True:
                now = self._clock()
                # Cooldown may have been extended while we slept, so check it every pass
                if now < self._rate_limited_until:
                    await self._sleep(self._rate_limited_until - now)
                    continue
                if self._last_request_at is not None:
                    wait = self._last_request_at + self._interval_ms / 1000 - now
                    if wait > 0:
                        await self._sleep(wait)
                        continue
                break
            self._last_request_at = self._clock()

    def record_rate_limit(self, retry_after_ms: Optional[int] = None) -> float:
        """Register a 429 and return the cooldown applied, in milliseconds"""
        self._strikes = min(self._strikes + 1, self.strike_cap)
        cooldown_ms = min(
            self.rate_limit_max_ms,
            max(self.rate_limit_base_ms * (2 ** (self._strikes - 1)), retry_after_ms or 0),
        )
        now = self._clock()
        self._rate_limited_until = max(self._rate_limited_until, now + cooldown_ms / 1000)
        self._interval_ms = min(
            self.max_interval_ms,
            max(self._interval_ms, self._floor_ms) * self.widen_factor,
        )

        if not self._safe_mode and self._strikes >= self.safe_mode_strikes:
            self._safe_mode = True
            log.warning(
                "Rate controller entered safe mode",
                controller=self.name,
                strikes=self._strikes,
            )
        log.debug(
            "Rate limited",
            controller=self.name,
            strikes=self._strikes,
            cooldown_ms=cooldown_ms,
            min_interval_ms=round(self._interval_ms),
        )
        return cooldown_ms

    def record_success(self) -> None:
        self._strikes = max(0, self._strikes - 1)
        self._interval_ms = max(self._floor_ms, self._interval_ms * self.relax_factor)

    def raise_floor(self, min_interval_ms: float) -> None:
        """Raise the spacing floor (never lowers it)"""
        if min_interval_ms <= self._floor_ms:
            return
        self._floor_ms = float(min_interval_ms)
        self.max_interval_ms = max(self.max_interval_ms, self._floor_ms)
        self._interval_ms = max(self._interval_ms, self._floor_ms)
        log.info("Rate controller floor raised", controller=self.name, floor_ms=self._floor_ms)

    def snapshot(self) -> RateControllerSnapshot:
        return RateControllerSnapshot(
            name=self.name,
            min_interval_ms=self._interval_ms,
            floor_interval_ms=self._floor_ms,
            strikes=self._strikes,
            safe_mode=self._safe_mode,
            cooldown_remaining_ms=max(0.0, (self._rate_limited_until - self._clock()) * 1000),
        )


class RateControllers(BaseModel):
    """One controller per upstream host class"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    search: AdaptiveRateController
    detail: AdaptiveRateController
    thumbnail: AdaptiveRateController

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Optional[Clock] = None,
        sleeper: Optional[Sleeper] = None,
    ) -> "RateControllers":
        return cls(
            search=AdaptiveRateController.from_settings(
                "search", settings, settings.search_min_interval_ms, clock, sleeper
            ),
            detail=AdaptiveRateController.from_settings(
                "detail", settings, settings.detail_min_interval_ms, clock, sleeper
            ),
            thumbnail=AdaptiveRateController.from_settings(
                "thumbnail", settings, settings.thumbnail_min_interval_ms, clock, sleeper
            ),
        )
