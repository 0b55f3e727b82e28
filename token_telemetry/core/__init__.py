"""
Core modules for token telemetry.

This package contains usage summary aggregation, reporting periods,
the token heuristic, message tree traversal and live rate estimation.
"""
