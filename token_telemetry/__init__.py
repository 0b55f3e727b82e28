"""
Token usage telemetry for chat applications.

Ledger summaries over historical usage and live tokens/second estimation.
"""

__version__ = "0.1.0"
