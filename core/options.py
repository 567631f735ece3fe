"""User options controlling compaction behavior."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from host.types import INDEX_END

logger = logging.getLogger("tgp.options")

# Numeric encoding used by older saved settings.
_LEGACY_ALIGN_VALUES = {0: "left", -1: "right", 666: "disabled"}


class AlignMode(str, Enum):
    """Edge of the tab strip the active group is pulled to."""

    LEFT = "left"
    RIGHT = "right"
    DISABLED = "disabled"

    @property
    def tab_index(self) -> int | None:
        if self is AlignMode.LEFT:
            return 0
        if self is AlignMode.RIGHT:
            return INDEX_END
        return None


class CompactionOptions(BaseModel):
    """Live-updatable options; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    compact_on_activate_ungrouped_tab: bool = True
    # False keeps the previously active group open when an ungrouped tab is activated.
    collapse_previous_group_on_ungrouped_tab: bool = True
    align_active_tab_group: AlignMode = AlignMode.LEFT
    delay_on_enter_content_area_ms: int = Field(default=2000, ge=0)
    delay_on_activate_uninjected_tab_ms: int = Field(default=4000, ge=0)
    auto_group_new_tabs: bool = True
    recollapse_when_group_unchanged: bool = True
    check_grouping_delay_on_create_tab_ms: int = Field(default=250, ge=0)
    listen_delay_on_browser_startup_ms: int = Field(default=5000, ge=0)

    @field_validator("align_active_tab_group", mode="before")
    @classmethod
    def _accept_legacy_align(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            if value not in _LEGACY_ALIGN_VALUES:
                raise ValueError(f"Unknown alignment value: {value}")
            return _LEGACY_ALIGN_VALUES[value]
        if isinstance(value, str):
            return value.lower()
        return value

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> CompactionOptions:
        """Build options from the ``options`` section of the effective config."""
        section = config.get("options") or {}
        if not isinstance(section, dict):
            raise ValueError("The 'options' config section must be a mapping.")
        return cls.model_validate(section)

    def apply_changes(self, changes: dict[str, Any]) -> list[str]:
        """Apply a change notification in place and return the updated keys.

        A ``None`` value means the key was removed from storage and the default
        is restored. The change set is validated as a whole first, so an
        invalid value raises ``ValidationError`` with nothing applied.
        """
        fields = type(self).model_fields
        cleaned: dict[str, Any] = {}
        for key, value in changes.items():
            if key not in fields:
                logger.debug("Ignoring unknown option %s", key)
                continue
            if value is None:
                value = fields[key].get_default(call_default_factory=True)
            cleaned[key] = value

        candidate = type(self).model_validate({**self.model_dump(), **cleaned})
        updated = list(cleaned)
        for key in updated:
            setattr(self, key, getattr(candidate, key))
        if updated:
            logger.info("Options updated: %s", ", ".join(updated))
        return updated
