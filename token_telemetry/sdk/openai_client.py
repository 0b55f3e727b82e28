"""
Streaming OpenAI chat with live token-rate telemetry.

Feeds every streamed delta into a StreamingStats widget so the caller can
show tokens/second while the response is generated.
"""

import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from openai import AsyncOpenAI

from ..core.rate_estimator import FinalStats
from ..display.preferences import TelemetryPreference
from ..display.streaming_stats import StreamingStats


@dataclass(frozen=True)
class StreamResult:
    """Completed response text and its finalized rate, if one was published."""
    message_id: str
    text: str
    final_stats: Optional[FinalStats]


class TelemetryOpenAI:
    """OpenAI chat client that tracks the live token rate of each response.

    One instance tracks one message slot at a time; each call to ``stream``
    starts a new tracked message.
    """

    def __init__(
        self,
        model: str,
        stats: Optional[StreamingStats] = None,
        client: Optional[AsyncOpenAI] = None,
        on_update: Optional[Callable[[str, Optional[str]], None]] = None,
    ):
        """Initialize the client.

        Args:
            model: OpenAI model name (required)
            stats: Rate widget to drive; a mounted, auto-ticking one by default
            client: AsyncOpenAI instance (created from the environment if omitted)
            on_update: Called with (text so far, badge text) after every delta

        Raises:
            ValueError: If model is missing/empty
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")

        self.model = model
        if stats is None:
            stats = StreamingStats(TelemetryPreference(), auto_tick=True)
            stats.mount()
        self.stats = stats
        self.client = client or AsyncOpenAI()
        self.on_update = on_update
        self.last_result: Optional[StreamResult] = None

    async def stream(
        self,
        messages: List[Dict[str, str]],
        message_id: Optional[str] = None,
        **kwargs: Any
    ) -> AsyncIterator[str]:
        """Stream a chat completion, yielding text deltas.

        The finished result is kept in ``last_result``. API errors propagate
        unchanged; the tracked generation is abandoned without finalizing.

        Raises:
            ValueError: If messages is empty
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")

        message_id = message_id or uuid.uuid4().hex
        text = ""
        self.stats.update(text, is_submitting=True, is_latest=True, message_id=message_id)

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            stream=True,
            **kwargs
        )
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if not delta:
                    continue
                text += delta
                self.stats.update(
                    text, is_submitting=True, is_latest=True, message_id=message_id
                )
                if self.on_update is not None:
                    self.on_update(text, self.stats.render())
                yield delta
        except BaseException:
            self.stats.ticker.stop()
            self.stats.estimator.reset()
            raise

        final_stats = self.stats.update(
            text, is_submitting=False, is_latest=True, message_id=message_id
        )
        if self.on_update is not None:
            self.on_update(text, self.stats.render())
        self.last_result = StreamResult(message_id, text, final_stats)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        message_id: Optional[str] = None,
        **kwargs: Any
    ) -> StreamResult:
        """Stream a completion to the end and return the full result."""
        async for _ in self.stream(messages, message_id=message_id, **kwargs):
            pass
        return self.last_result
