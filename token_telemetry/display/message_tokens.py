"""
Per-message token badge.

Shows the message's own token count and the conversation total up to it.
"""

from typing import Any, Callable, Iterable, Optional

from token_telemetry.core.messages import cumulative_tokens

from .preferences import TelemetryPreference


class MessageTokens:
    """Token count badge for one rendered message."""

    def __init__(self, preference: TelemetryPreference):
        self.preference = preference
        self.visible = preference.value
        self._unsubscribe: Optional[Callable[[], None]] = None

    def mount(self) -> None:
        self.visible = self.preference.value
        if self._unsubscribe is None:
            self._unsubscribe = self.preference.subscribe(self._on_preference)

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_preference(self, value: bool) -> None:
        self.visible = value

    def render(
        self,
        token_count: Optional[int],
        message_id: Optional[str] = None,
        messages: Optional[Iterable[Any]] = None,
    ) -> Optional[str]:
        """``"1,200 / 5,400"`` style text, or None when hidden or empty."""
        message_tokens = token_count or 0
        if messages is None or message_id is None:
            total = message_tokens
        else:
            total = cumulative_tokens(messages, message_id)

        if not self.visible or (not message_tokens and not total):
            return None
        if message_tokens > 0:
            return f"{message_tokens:,} / {total:,}"
        return f"{total:,}"
