"""Work-in-progress capacity gate.

Pure function over a caller-supplied occupancy snapshot; it performs no counting.
"""

from dataclasses import dataclass

from stagegate.domain.stages import Stage


@dataclass
class WipCheck:
    """Result of checking a stage's WIP limit."""

    valid: bool
    message: str | None = None


def validate_wip_limit(target_stage: Stage, current_occupancy: int) -> WipCheck:
    """Check whether one more record fits into the target stage.

    Args:
        target_stage: Stage the record would move into
        current_occupancy: Records currently in that stage

    Returns:
        WipCheck, invalid iff current_occupancy >= wip_limit.
        A stage without wip_limit is always valid; wip_limit=0 admits nothing.
    """
    if target_stage.wip_limit is None:
        return WipCheck(valid=True)

    if current_occupancy >= target_stage.wip_limit:
        return WipCheck(
            valid=False,
            message=f'Stage "{target_stage.name}" has reached its limit of {target_stage.wip_limit} records',
        )

    return WipCheck(valid=True)
