"""
Text renderings of token telemetry for chat messages.
"""

from .message_tokens import MessageTokens
from .preferences import PreferenceStore, TelemetryPreference
from .streaming_stats import StreamingStats

__all__ = ["MessageTokens", "PreferenceStore", "StreamingStats", "TelemetryPreference"]
