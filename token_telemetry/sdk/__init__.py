"""
SDK for token telemetry.

Streams chat completions with live tokens/second tracking.
"""

from .openai_client import StreamResult, TelemetryOpenAI

__all__ = ["StreamResult", "TelemetryOpenAI"]
