"""Errors raised by the compaction engine."""

from __future__ import annotations


class CompactionError(Exception):
    """Base class for compaction failures."""


class StaleInvocation(CompactionError):
    """The engine was invoked with a tab that is no longer active."""


class ClassificationUncertain(CompactionError):
    """Fallback classification hit a group that could not be resolved."""
