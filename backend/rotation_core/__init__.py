"""Core logic for indicators, sector ranking, risk sizing and signal decisions.

This package contains pure business logic with no I/O dependencies
(no database, Redis, or network access). The service layer in
rotation_app/ loads inputs, calls into this package, and persists results.
"""
