"""
HTTP API for per-user transaction history and usage summaries.
"""

from .app import create_app

__all__ = ["create_app"]
