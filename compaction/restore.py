"""Position arithmetic for returning a displaced group to its old slot."""

from __future__ import annotations

from collections.abc import Sequence

from compaction.group_order import OrderedGroup


def compute_restore_index(
    group: OrderedGroup,
    target_slot: int,
    current_order: Sequence[OrderedGroup],
) -> int | None:
    """Tab index to pass to a group move so ``group`` lands before ``current_order[target_slot]``.

    Returns ``None`` when no group occupies ``target_slot``. Moves interpret the
    index with the moved group's own tabs taken out of the strip, so a
    rightward move is shifted left by the group's width.
    """
    if target_slot < 0 or target_slot >= len(current_order):
        return None
    index = current_order[target_slot].first_index
    if index > group.first_index:
        index -= group.tab_count
    return index


def restore_target_slot(prev_slot: int, current_slot: int) -> int:
    """Slot in the current order whose occupant the restored group goes before.

    While the group sits left of its old slot, every group from there up to
    the old slot is shifted one place right in the current order.
    """
    if current_slot <= prev_slot:
        return prev_slot + 1
    return prev_slot
