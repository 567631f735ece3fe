"""Host entity models for tabs and tab groups."""

from __future__ import annotations

from pydantic import BaseModel

TAB_GROUP_ID_NONE = -1

# Move destination meaning "after the last tab in the strip".
INDEX_END = -1


class Tab(BaseModel):
    """Browser tab as seen by the engine."""

    id: int
    window_id: int
    index: int
    group_id: int = TAB_GROUP_ID_NONE
    active: bool = False
    title: str = ""

    @property
    def grouped(self) -> bool:
        return self.group_id != TAB_GROUP_ID_NONE


class TabGroup(BaseModel):
    """Tab group with its display attributes."""

    id: int
    window_id: int
    collapsed: bool = False
    title: str = ""
    color: str = "grey"
