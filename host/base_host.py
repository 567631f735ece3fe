"""Base interface for the host browser's tab, group and window primitives."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from host.types import Tab, TabGroup


class BaseTabHost(ABC):
    """Abstract capability surface the compaction engine drives.

    Query methods raise ``QueryFailed`` and mutation methods raise
    ``MutationFailed``; ``send_message`` raises ``MessagingFailed`` when no
    content script is listening in the target tab.
    """

    @abstractmethod
    async def list_window_ids(self) -> list[int]:
        """Return ids of all open normal windows."""
        pass

    @abstractmethod
    async def query_tabs(
        self,
        *,
        window_id: int | None = None,
        group_id: int | None = None,
    ) -> list[Tab]:
        """Return matching tabs in left-to-right strip order."""
        pass

    @abstractmethod
    async def get_tab(self, tab_id: int) -> Tab:
        """Return a single tab."""
        pass

    @abstractmethod
    async def query_groups(
        self,
        *,
        window_id: int,
        collapsed: bool | None = None,
    ) -> list[TabGroup]:
        """Return the groups of a window, optionally filtered by collapsed state."""
        pass

    @abstractmethod
    async def get_group(self, group_id: int) -> TabGroup:
        """Return a single tab group."""
        pass

    @abstractmethod
    async def update_group(self, group_id: int, *, collapsed: bool) -> TabGroup:
        """Collapse or expand a group."""
        pass

    @abstractmethod
    async def move_group(self, group_id: int, index: int) -> TabGroup:
        """Move a group so its first tab lands at ``index``.

        ``index`` is computed with the group's own tabs removed from the strip;
        -1 means the end of the strip.
        """
        pass

    @abstractmethod
    async def move_tab(self, tab_id: int, index: int) -> Tab:
        """Move a tab to ``index`` (-1 for the end of the strip)."""
        pass

    @abstractmethod
    async def group_tabs(self, tab_ids: list[int], group_id: int) -> int:
        """Add tabs to an existing group and return the group id."""
        pass

    @abstractmethod
    async def send_message(self, tab_id: int, message: dict[str, Any]) -> dict[str, Any]:
        """Send a message to the content script of a tab and return its reply."""
        pass
