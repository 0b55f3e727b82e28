"""
Live tokens-per-second badge.

Drives a rate estimator from chat updates and renders either the live rate
while streaming or the finalized average once the response completes.
"""

from typing import Callable, Optional

from token_telemetry.core.rate_estimator import (
    EstimatorState,
    FinalStats,
    RateTicker,
    StreamingRateEstimator,
)

from .preferences import TelemetryPreference


class StreamingStats:
    """Rate badge for the message slot currently being generated.

    With ``auto_tick`` the widget samples on an asyncio ticker that runs only
    while the estimator is streaming; ``update`` must then be called from
    within a running event loop. Without it the owner calls ``tick``.
    """

    def __init__(
        self,
        preference: TelemetryPreference,
        estimator: Optional[StreamingRateEstimator] = None,
        auto_tick: bool = False,
    ):
        self.preference = preference
        self.estimator = estimator or StreamingRateEstimator()
        self.visible = preference.value
        self.auto_tick = auto_tick
        self.ticker = RateTicker(self.estimator)
        self._is_submitting = False
        self._is_latest = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    def mount(self) -> None:
        self.visible = self.preference.value
        if self._unsubscribe is None:
            self._unsubscribe = self.preference.subscribe(self._on_preference)

    def unmount(self) -> None:
        self.ticker.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_preference(self, value: bool) -> None:
        self.visible = value

    def update(
        self,
        text: str,
        is_submitting: bool,
        is_latest: bool,
        message_id: Optional[str] = None,
    ) -> Optional[FinalStats]:
        """Feed the latest buffer and flags; returns stats if this update finalized."""
        self._is_submitting = is_submitting
        self._is_latest = is_latest
        published = self.estimator.observe(text, is_submitting, is_latest, message_id)

        if self.estimator.state is EstimatorState.STREAMING and is_submitting:
            if self.auto_tick:
                self.ticker.start()
        else:
            self.ticker.stop()
        return published

    def finish(self) -> Optional[FinalStats]:
        """Explicit completion signal."""
        self._is_submitting = False
        self.ticker.stop()
        return self.estimator.finish()

    def tick(self) -> int:
        return self.estimator.tick()

    def render(self) -> Optional[str]:
        """Badge text, or None when hidden or there is nothing meaningful to show."""
        if not self.visible:
            return None

        streaming = self.estimator.state is EstimatorState.STREAMING
        if streaming and self._is_submitting and self.estimator.live_rate > 0:
            return f"{self.estimator.live_rate} tokens/s"

        stats = self.estimator.final_stats
        if stats is not None and self._is_latest and not self._is_submitting:
            return (
                f"~{stats.total_tokens:,} tokens @ {stats.rate} tokens/s "
                f"({stats.duration:.1f}s)"
            )
        return None
