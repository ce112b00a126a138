"""RuleConfig Pydantic schemas for the tagged leaf/composite condition tree.

Wire form:
    leaf:      {"type": "leaf", "field": "score", "operator": ">=", "value": 60}
    composite: {"type": "composite", "logic": "AND", "children": [...]}

Configs are validated once, when a rule is defined or loaded from storage.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from stagegate.core.exceptions import RuleConfigError


class RuleOperator(StrEnum):
    """Leaf comparison operators."""

    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "=="
    NEQ = "!="
    CONTAINS = "contains"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


EXISTENCE_OPERATORS = frozenset({RuleOperator.EXISTS, RuleOperator.NOT_EXISTS})


class RuleLogic(StrEnum):
    """Composite node logic."""

    AND = "AND"
    OR = "OR"


class LeafRule(BaseModel):
    """A single comparison against one field of the record context."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["leaf"] = "leaf"
    field: str | None = None
    operator: RuleOperator
    value: Any = None

    @model_validator(mode="after")
    def require_field_for_comparisons(self) -> "LeafRule":
        """Only existence checks may omit the field."""
        if not self.field and self.operator not in EXISTENCE_OPERATORS:
            raise ValueError(f"operator '{self.operator}' requires a field")
        return self


class CompositeRule(BaseModel):
    """AND/OR over child rules. An empty child list never passes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["composite"] = "composite"
    logic: RuleLogic
    children: list["RuleConfig"] = Field(default_factory=list)


RuleConfig = Annotated[Union[LeafRule, CompositeRule], Field(discriminator="type")]

CompositeRule.model_rebuild()

_RULE_ADAPTER: TypeAdapter = TypeAdapter(RuleConfig)


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_rule_config(data: Any) -> LeafRule | CompositeRule:
    """Validate a raw rule config into a typed tree.

    Args:
        data: Mapping in the tagged wire form, or an already-parsed rule

    Returns:
        LeafRule or CompositeRule

    Raises:
        RuleConfigError: unknown node type, operator or logic, or a leaf
            comparison without a field
    """
    if isinstance(data, (LeafRule, CompositeRule)):
        return data
    try:
        return _RULE_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise RuleConfigError(f"Invalid rule config: {_describe_errors(e)}") from e


def dump_rule_config(rule: LeafRule | CompositeRule) -> dict[str, Any]:
    """Serialize a rule tree back to its tagged wire form."""
    return _RULE_ADAPTER.dump_python(rule, mode="json")


def leaf(field: str | None, operator: str, value: Any = None) -> LeafRule:
    return LeafRule(field=field, operator=RuleOperator(operator), value=value)


def all_of(*children: LeafRule | CompositeRule) -> CompositeRule:
    return CompositeRule(logic=RuleLogic.AND, children=list(children))


def any_of(*children: LeafRule | CompositeRule) -> CompositeRule:
    return CompositeRule(logic=RuleLogic.OR, children=list(children))
