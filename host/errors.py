"""Errors raised at the host tab/group API seam."""

from __future__ import annotations


class HostError(Exception):
    """Base class for failures reported by the host browser."""


class QueryFailed(HostError):
    """A host list/get call failed or referenced an unknown entity."""


class MutationFailed(HostError):
    """A collapse/move/group call was rejected (typically mid-drag)."""


class MessagingFailed(HostError):
    """No content script answered a message sent to a tab."""
