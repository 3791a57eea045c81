"""Root of every expected, recoverable business outcome.

Callers (the web layer) catch ``DomainError`` subclasses and turn them into
user-facing messages.  Infrastructure failures and invariant violations are
deliberately *not* part of this hierarchy.
"""

from __future__ import annotations


class DomainError(Exception):
    """A business rule rejected the requested operation."""
