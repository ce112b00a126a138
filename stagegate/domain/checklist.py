"""Checklist completion gate.

Pure functions with no external dependencies. The completion map is keyed by
checklist item id; only a stored True counts as complete.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from stagegate.domain.stages import ChecklistItem


@dataclass
class ChecklistCheck:
    """Result of checking required checklist items."""

    can_advance: bool
    missing_required: list[ChecklistItem] = field(default_factory=list)


@dataclass
class ChecklistAdvancement:
    """Checklist check rendered into display lines."""

    valid: bool
    errors: list[str] = field(default_factory=list)


def is_complete(item: ChecklistItem, completion: Mapping[str, bool]) -> bool:
    """Missing keys, False and None all read as incomplete."""
    if item.id not in completion:
        return False
    return completion[item.id] is True


def can_advance(items: Sequence[ChecklistItem], completion: Mapping[str, bool]) -> ChecklistCheck:
    """Check that every required item is complete.

    Args:
        items: Checklist items of the stage, in display order
        completion: Item id -> completed flag

    Returns:
        ChecklistCheck with missing required items in their given order
    """
    missing = [item for item in items if item.required and not is_complete(item, completion)]
    return ChecklistCheck(can_advance=not missing, missing_required=missing)


def completion_percentage(items: Sequence[ChecklistItem], completion: Mapping[str, bool]) -> int:
    """Percentage (0-100) of items complete. An empty checklist is 100% complete."""
    if not items:
        return 100

    completed = sum(1 for item in items if is_complete(item, completion))
    # Half-up rounding: 1 of 8 items is 13%, not 12%
    return math.floor(100 * completed / len(items) + 0.5)


def missing_required_count(items: Sequence[ChecklistItem], completion: Mapping[str, bool]) -> int:
    return sum(1 for item in items if item.required and not is_complete(item, completion))


def validate_stage_advancement(
    items: Sequence[ChecklistItem],
    completion: Mapping[str, bool],
) -> ChecklistAdvancement:
    """Render the checklist check as a summary line followed by one line per missing item."""
    check = can_advance(items, completion)
    if check.can_advance:
        return ChecklistAdvancement(valid=True)

    errors = [f"{len(check.missing_required)} required item(s) pending"]
    errors.extend(f"• {item.title}" for item in check.missing_required)
    return ChecklistAdvancement(valid=False, errors=errors)
