"""
Live token-rate estimation.

Converts an intermittently growing response buffer into a smoothed
tokens-per-second figure, and into a finalized average once generation ends.

States: IDLE -> STREAMING -> (finalize) -> IDLE. One estimator tracks one
message slot; it is not shared between concurrent generations.
"""

import asyncio
import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Optional

from .token_counter import CHARS_PER_TOKEN, estimate_tokens

logger = logging.getLogger(__name__)

SAMPLE_INTERVAL_MS = 200
WINDOW_MS = 2000
MIN_FINAL_DURATION = 0.5


class EstimatorState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"


@dataclass(frozen=True)
class RateSample:
    """Estimated cumulative tokens at one instant."""
    timestamp_ms: float
    tokens: int


@dataclass(frozen=True)
class FinalStats:
    """Average rate of a completed generation."""
    rate: int
    total_tokens: int
    duration: float


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class StreamingRateEstimator:
    """Sliding-window tokens/second estimator for one streamed message."""

    def __init__(
        self,
        window_ms: int = WINDOW_MS,
        sample_interval_ms: int = SAMPLE_INTERVAL_MS,
        chars_per_token: int = CHARS_PER_TOKEN,
        min_final_duration: float = MIN_FINAL_DURATION,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize an idle estimator.

        Args:
            window_ms: Horizon of the sliding window
            sample_interval_ms: Expected tick cadence, sizes the window buffer
            chars_per_token: Heuristic characters per token
            min_final_duration: Seconds a generation must last to be finalized
            clock: Millisecond clock, monotonic by default
        """
        self.window_ms = window_ms
        self.sample_interval_ms = sample_interval_ms
        self.chars_per_token = chars_per_token
        self.min_final_duration = min_final_duration
        self._clock = clock or _monotonic_ms

        capacity = math.ceil(window_ms / max(sample_interval_ms, 1)) + 2
        self._samples: Deque[RateSample] = deque(maxlen=capacity)
        self._stream_start: Optional[float] = None
        self._text = ""
        self._prev_length = 0
        self._was_submitting = False
        self._message_id: Optional[str] = None

        self.live_rate = 0
        self.final_stats: Optional[FinalStats] = None

    @property
    def state(self) -> EstimatorState:
        if self._stream_start is None:
            return EstimatorState.IDLE
        return EstimatorState.STREAMING

    @property
    def samples(self):
        return tuple(self._samples)

    def observe(
        self,
        text: str,
        is_submitting: bool,
        is_latest: bool,
        message_id: Optional[str] = None,
    ) -> Optional[FinalStats]:
        """Feed the current buffer and chat flags.

        Starts streaming on growth of the latest, submitting message, and
        finalizes when submission stops. Returns the stats published by this
        call, if any.
        """
        if message_id != self._message_id:
            if self._message_id is not None:
                self.reset()
            self._message_id = message_id

        text = text or ""
        self._text = text

        if not is_latest and self.state is EstimatorState.STREAMING:
            self._clear_window()

        if (
            is_submitting
            and is_latest
            and len(text) > self._prev_length
            and self.state is EstimatorState.IDLE
        ):
            self._start()
        self._prev_length = len(text)

        published = None
        if self._was_submitting and not is_submitting:
            published = self.finish()
        self._was_submitting = is_submitting
        return published

    def tick(self) -> int:
        """Take one sample and return the instantaneous rate (0 while idle)."""
        if self.state is not EstimatorState.STREAMING:
            return 0

        now = self._clock()
        self._samples.append(
            RateSample(now, estimate_tokens(self._text, self.chars_per_token))
        )
        cutoff = now - self.window_ms
        while self._samples and self._samples[0].timestamp_ms <= cutoff:
            self._samples.popleft()

        self.live_rate = self._window_rate()
        return self.live_rate

    def finish(self) -> Optional[FinalStats]:
        """Finalize the current generation and return to idle.

        Publishes stats only when the run lasted longer than
        ``min_final_duration`` and produced tokens.
        """
        if self.state is not EstimatorState.STREAMING or not self._text:
            return None

        duration = (self._clock() - self._stream_start) / 1000.0
        total_tokens = estimate_tokens(self._text, self.chars_per_token)

        published = None
        if duration > self.min_final_duration and total_tokens > 0:
            published = FinalStats(
                rate=round_half_up(total_tokens / duration),
                total_tokens=total_tokens,
                duration=duration,
            )
            self.final_stats = published
            logger.debug(
                "Finalized %s: %d tokens in %.2fs", self._message_id, total_tokens, duration
            )
        self._clear_window()
        return published

    def reset(self) -> None:
        """Drop all state, including published stats, without finalizing."""
        self._clear_window()
        self._text = ""
        self._prev_length = 0
        self._was_submitting = False
        self.final_stats = None

    def _start(self) -> None:
        self._stream_start = self._clock()
        self._samples.clear()
        self.live_rate = 0
        self.final_stats = None

    def _clear_window(self) -> None:
        self._stream_start = None
        self._samples.clear()
        self.live_rate = 0

    def _window_rate(self) -> int:
        if len(self._samples) < 2:
            return 0
        oldest = self._samples[0]
        newest = self._samples[-1]
        seconds = (newest.timestamp_ms - oldest.timestamp_ms) / 1000.0
        if seconds <= 0:
            return 0
        rate = (newest.tokens - oldest.tokens) / seconds
        if not math.isfinite(rate) or rate < 0:
            return 0
        return round_half_up(rate)


class RateTicker:
    """Cooperative asyncio timer that samples an estimator at a fixed cadence."""

    def __init__(
        self,
        estimator: StreamingRateEstimator,
        on_rate: Optional[Callable[[int], None]] = None,
        interval_ms: Optional[int] = None,
    ):
        self.estimator = estimator
        self.on_rate = on_rate
        self.interval_ms = interval_ms or estimator.sample_interval_ms
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule ticking on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_done)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Rate ticker stopped", exc_info=error)

    async def _run(self) -> None:
        interval = self.interval_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            if self.estimator.state is not EstimatorState.STREAMING:
                return
            rate = self.estimator.tick()
            if self.on_rate is not None:
                self.on_rate(rate)
