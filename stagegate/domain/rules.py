"""Rule evaluation and criterion classification.

Pure domain functions over the RuleConfig tree. No I/O, fully deterministic.

Everything here fails closed: missing data, incomparable values and malformed
configs never make a rule pass, and classify() never raises.
"""

import operator
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import StrEnum
from typing import Any

import structlog

from stagegate.core.exceptions import RuleConfigError
from stagegate.domain.stages import as_utc
from stagegate.schemas.rules import (
    CompositeRule,
    LeafRule,
    RuleLogic,
    RuleOperator,
    parse_rule_config,
)

logger = structlog.get_logger(__name__)


class CriterionKind(StrEnum):
    """What a criterion's rule reads from the record context."""

    RECORD_FIELD = "record_field"
    ACTIVITY_METRIC = "activity_metric"
    ELAPSED_TIME = "elapsed_time"
    RELATIONSHIP_AGGREGATE = "relationship_aggregate"
    COMPOSITE = "composite"


class CriteriaStatus(StrEnum):
    """Outcome of classifying one criterion against a record."""

    PENDING = "pending"
    SATISFIED = "satisfied"
    NOT_APPLICABLE = "not_applicable"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Criterion:
    """A named rule attached to a stage.

    `rule` is either a parsed tree or the raw mapping loaded from storage;
    raw mappings are validated during classification.
    """

    id: str
    stage_id: str
    name: str
    kind: CriterionKind
    rule: LeafRule | CompositeRule | Mapping[str, Any] | None
    required: bool = False
    order: int = 0
    active: bool = True


@dataclass(frozen=True)
class RecordContext:
    """Flattened field map for a record plus input readiness flags."""

    fields: Mapping[str, Any] = field(default_factory=dict)
    activity_metrics_ready: bool = True
    elapsed_time_ready: bool = True
    has_relationships: bool = True


@dataclass
class CriteriaResult:
    """Result of classifying a single criterion."""

    criterion_id: str
    status: CriteriaStatus
    message: str
    required: bool = False

    @property
    def blocks(self) -> bool:
        """Blocked results always block; pending ones only when required."""
        if self.status == CriteriaStatus.BLOCKED:
            return True
        return self.status == CriteriaStatus.PENDING and self.required


@dataclass
class CriteriaEvaluation:
    """Aggregated classification of a stage's active criteria."""

    can_advance: bool
    blockers: list[CriteriaResult] = field(default_factory=list)
    pending: list[CriteriaResult] = field(default_factory=list)
    passed: list[CriteriaResult] = field(default_factory=list)
    not_applicable: list[CriteriaResult] = field(default_factory=list)


def build_record_context(
    record_fields: Mapping[str, Any],
    *,
    entered_stage_at: datetime | None = None,
    now: datetime | None = None,
    activity_metrics: Mapping[str, Any] | None = None,
    relationships: Mapping[str, Any] | None = None,
) -> RecordContext:
    """Flatten record data, computed metrics and aggregates into one context.

    Args:
        record_fields: The record's own fields
        entered_stage_at: When the record entered its current stage (None if unknown)
        now: Current time (injectable for testing, defaults to datetime.now(timezone.utc))
        activity_metrics: Computed activity metrics, None if not computed yet
        relationships: Relationship aggregates, empty or None if the record has none

    Returns:
        RecordContext; `days_in_stage` is added when entered_stage_at is known
    """
    fields: dict[str, Any] = dict(record_fields)
    if activity_metrics is not None:
        fields.update(activity_metrics)
    if relationships:
        fields.update(relationships)
    if entered_stage_at is not None:
        if now is None:
            now = datetime.now(timezone.utc)
        fields["days_in_stage"] = (as_utc(now) - as_utc(entered_stage_at)).days

    return RecordContext(
        fields=fields,
        activity_metrics_ready=activity_metrics is not None,
        elapsed_time_ready=entered_stage_at is not None,
        has_relationships=bool(relationships),
    )


def _as_context(context: RecordContext | Mapping[str, Any] | None) -> RecordContext:
    if isinstance(context, RecordContext):
        return context
    return RecordContext(fields=context or {})


# ──────────────────────────────────────────────────────────────────────────────
# Evaluation
# ──────────────────────────────────────────────────────────────────────────────

_COMPARATORS = {
    RuleOperator.GT: operator.gt,
    RuleOperator.LT: operator.lt,
    RuleOperator.GTE: operator.ge,
    RuleOperator.LTE: operator.le,
}


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    return not (isinstance(value, str) and value == "")


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None
    return as_utc(dt)


def _compare(actual: Any, op: RuleOperator, expected: Any) -> bool:
    left, right = _as_number(actual), _as_number(expected)
    if left is None or right is None:
        left, right = _as_datetime(actual), _as_datetime(expected)
        if left is None or right is None:
            return False
    try:
        return _COMPARATORS[op](left, right)
    except TypeError:
        return False


def _equals(actual: Any, expected: Any) -> bool:
    # True == 1 in Python; a boolean only ever equals a boolean
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return expected is not None and str(expected).lower() in actual.lower()
    if isinstance(actual, (list, tuple, set, frozenset)):
        # Scan instead of `in` so unhashable values work against sets
        return any(_equals(item, expected) for item in actual)
    return False


def _evaluate_leaf(rule: LeafRule, fields: Mapping[str, Any]) -> bool:
    if not rule.field:
        return False

    actual = fields.get(rule.field)
    op = rule.operator

    if op == RuleOperator.EXISTS:
        return _is_present(actual)
    if op == RuleOperator.NOT_EXISTS:
        return not _is_present(actual)

    # Absent field never passes a comparison
    if actual is None:
        return False

    if op == RuleOperator.EQ:
        return _equals(actual, rule.value)
    if op == RuleOperator.NEQ:
        return not _equals(actual, rule.value)
    if op == RuleOperator.CONTAINS:
        return _contains(actual, rule.value)
    if op in _COMPARATORS:
        return _compare(actual, op, rule.value)
    return False


def _evaluate_composite(rule: CompositeRule, fields: Mapping[str, Any]) -> bool:
    if not rule.children:
        return False

    results = [evaluate(child, fields) for child in rule.children]

    if rule.logic == RuleLogic.AND:
        return all(results)
    if rule.logic == RuleLogic.OR:
        return any(results)
    return False


def evaluate(
    rule: LeafRule | CompositeRule | Mapping[str, Any],
    context: RecordContext | Mapping[str, Any],
) -> bool:
    """Evaluate a rule tree against a record context.

    Pure function -- no side effects.

    Args:
        rule: Parsed rule tree, or a raw mapping in the tagged wire form
        context: RecordContext or a flat field mapping

    Returns:
        True if the rule holds. Malformed rules return False.
    """
    fields = context.fields if isinstance(context, RecordContext) else (context or {})

    if isinstance(rule, Mapping):
        try:
            rule = parse_rule_config(rule)
        except RuleConfigError:
            return False

    if isinstance(rule, LeafRule):
        return _evaluate_leaf(rule, fields)
    if isinstance(rule, CompositeRule):
        return _evaluate_composite(rule, fields)
    return False


# ──────────────────────────────────────────────────────────────────────────────
# Classification
# ──────────────────────────────────────────────────────────────────────────────


def _result(criterion: Criterion, status: CriteriaStatus, message: str) -> CriteriaResult:
    return CriteriaResult(
        criterion_id=criterion.id,
        status=status,
        message=message,
        required=criterion.required,
    )


def classify(criterion: Criterion, context: RecordContext | Mapping[str, Any] | None) -> CriteriaResult:
    """Classify one criterion against a record.

    Never raises: configuration faults come back as BLOCKED with a diagnostic.

    Rules:
        - Inactive criterion: NOT_APPLICABLE
        - Missing or malformed rule, unknown kind: BLOCKED
        - Relationship aggregate on a record without relationships: NOT_APPLICABLE
        - Activity metrics not computed / stage entry time unknown: PENDING
        - Rule holds: SATISFIED
        - Rule fails: BLOCKED if required, else PENDING
    """
    ctx = _as_context(context)
    name = criterion.name

    if not criterion.active:
        return _result(criterion, CriteriaStatus.NOT_APPLICABLE, f"{name}: inactive")

    try:
        kind = CriterionKind(criterion.kind)
    except ValueError:
        logger.warning("criterion_kind_unknown", criterion_id=criterion.id, kind=str(criterion.kind))
        return _result(criterion, CriteriaStatus.BLOCKED, f"{name}: unknown criterion kind '{criterion.kind}'")

    if criterion.rule is None:
        return _result(criterion, CriteriaStatus.BLOCKED, f"{name}: no rule configured")

    try:
        rule = parse_rule_config(criterion.rule)
    except RuleConfigError as e:
        logger.warning("criterion_config_invalid", criterion_id=criterion.id, error=str(e))
        return _result(criterion, CriteriaStatus.BLOCKED, f"{name}: invalid rule configuration ({e})")

    if kind == CriterionKind.RELATIONSHIP_AGGREGATE and not ctx.has_relationships:
        return _result(criterion, CriteriaStatus.NOT_APPLICABLE, f"{name}: not applicable to this record")
    if kind == CriterionKind.ACTIVITY_METRIC and not ctx.activity_metrics_ready:
        return _result(criterion, CriteriaStatus.PENDING, f"{name}: waiting for activity metrics")
    if kind == CriterionKind.ELAPSED_TIME and not ctx.elapsed_time_ready:
        return _result(criterion, CriteriaStatus.PENDING, f"{name}: waiting for stage entry date")

    if evaluate(rule, ctx.fields):
        return _result(criterion, CriteriaStatus.SATISFIED, f"{name}: met")
    if criterion.required:
        return _result(criterion, CriteriaStatus.BLOCKED, f"{name}: not met")
    return _result(criterion, CriteriaStatus.PENDING, f"{name}: not yet met (optional)")


def validate_stage_criteria(
    criteria: Iterable[Criterion],
    context: RecordContext | Mapping[str, Any] | None,
) -> CriteriaEvaluation:
    """Classify every active criterion, in order, and aggregate the results.

    Args:
        criteria: Criteria attached to the target stage
        context: Record context the rules read from

    Returns:
        CriteriaEvaluation; can_advance is True iff nothing blocks
    """
    ctx = _as_context(context)
    evaluation = CriteriaEvaluation(can_advance=True)

    for criterion in sorted((c for c in criteria if c.active), key=lambda c: c.order):
        result = classify(criterion, ctx)
        if result.blocks:
            evaluation.blockers.append(result)
        elif result.status == CriteriaStatus.SATISFIED:
            evaluation.passed.append(result)
        elif result.status == CriteriaStatus.PENDING:
            evaluation.pending.append(result)
        else:
            evaluation.not_applicable.append(result)

    evaluation.can_advance = not evaluation.blockers
    return evaluation
