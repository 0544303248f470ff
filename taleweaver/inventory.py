"""Inventory and quest reconciliation.

Inventory is a set kept as an ordered list (first-acquired first). Quests
are not merged: the story generator returns the complete quest log every
turn and the engine takes it wholesale. A generator that silently drops a
completed quest cannot be repaired here; it is only logged.
"""

from __future__ import annotations

import logging

from taleweaver.models import Quest

logger = logging.getLogger(__name__)


def apply_inventory_delta(current: list[str], add: list[str], remove: list[str]) -> list[str]:
    """Return (current ∪ add) minus remove.

    Union happens before subtraction, so an item both added and removed in
    the same turn ends up absent.
    """
    removed = set(remove)
    result: list[str] = []
    for item in [*current, *add]:
        if item not in removed and item not in result:
            result.append(item)
    return result


def dropped_completed_quests(current: list[Quest], new: list[Quest]) -> list[Quest]:
    """Completed quests from current that are missing in the new snapshot."""
    kept = {q.text for q in new}
    return [q for q in current if q.completed and q.text not in kept]


def replace_quests(current: list[Quest], new: list[Quest]) -> list[Quest]:
    for quest in dropped_completed_quests(current, new):
        logger.warning("Completed quest dropped by story generator: %r", quest.text)
    return [q.model_copy() for q in new]
