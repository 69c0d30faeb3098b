"""
Qualifier types.

A qualifier is a boolean predicate evaluated against a context object. Every
qualifier also reports a ``specificity`` which the rule model uses as the
secondary ranking key: boolean constants are the least specific (-1), simple
comparisons count as 0 and compounds count their sub-qualifiers.
"""

import fnmatch
import re
from enum import Enum
from typing import Any, Iterable, List, Protocol, Tuple, runtime_checkable

from ..keypath import value_for_key_path


@runtime_checkable
class Qualifier(Protocol):
    """Capability consumed by rules and the rule model."""

    def matches(self, context: Any) -> bool:
        ...

    def specificity(self) -> int:
        ...


class ComparisonOperator(str, Enum):
    """Comparison operators supported by key qualifiers."""
    EQUAL_TO = "="
    NOT_EQUAL_TO = "!="
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN_OR_EQUAL = ">="
    LIKE = "LIKE"
    CASE_INSENSITIVE_LIKE = "caseInsensitiveLike:"
    CONTAINS = "IN"


_OPERATOR_ALIASES = {
    "=": ComparisonOperator.EQUAL_TO,
    "==": ComparisonOperator.EQUAL_TO,
    "!=": ComparisonOperator.NOT_EQUAL_TO,
    "<>": ComparisonOperator.NOT_EQUAL_TO,
    "><": ComparisonOperator.NOT_EQUAL_TO,
    "<": ComparisonOperator.LESS_THAN,
    ">": ComparisonOperator.GREATER_THAN,
    "<=": ComparisonOperator.LESS_THAN_OR_EQUAL,
    "=<": ComparisonOperator.LESS_THAN_OR_EQUAL,
    ">=": ComparisonOperator.GREATER_THAN_OR_EQUAL,
    "like": ComparisonOperator.LIKE,
    "ilike": ComparisonOperator.CASE_INSENSITIVE_LIKE,
    "caseinsensitivelike": ComparisonOperator.CASE_INSENSITIVE_LIKE,
    "caseinsensitivelike:": ComparisonOperator.CASE_INSENSITIVE_LIKE,
    "in": ComparisonOperator.CONTAINS,
}


def operator_for_string(text: str) -> ComparisonOperator:
    """Map operator text to a ComparisonOperator, raising KeyError if unknown."""
    if text in _OPERATOR_ALIASES:
        return _OPERATOR_ALIASES[text]
    return _OPERATOR_ALIASES[text.lower()]


def _like(value: Any, pattern: Any, ignore_case: bool) -> bool:
    if value is None or pattern is None:
        return False
    value, pattern = str(value), str(pattern)
    flags = re.IGNORECASE if ignore_case else 0
    # fnmatch also treats [] as a character class, which LIKE patterns do not
    regex = fnmatch.translate(pattern.replace("[", "[[]"))
    return re.match(regex, value, flags) is not None


def compare(operator: ComparisonOperator, lhs: Any, rhs: Any) -> bool:
    """Evaluate ``lhs <operator> rhs``; ordering with None or mixed types is False."""
    if operator is ComparisonOperator.EQUAL_TO:
        return lhs == rhs
    if operator is ComparisonOperator.NOT_EQUAL_TO:
        return lhs != rhs
    if operator is ComparisonOperator.LIKE:
        return _like(lhs, rhs, ignore_case=False)
    if operator is ComparisonOperator.CASE_INSENSITIVE_LIKE:
        return _like(lhs, rhs, ignore_case=True)
    if operator is ComparisonOperator.CONTAINS:
        if rhs is None or isinstance(rhs, (str, bytes)):
            return rhs is not None and lhs is not None and str(lhs) in rhs
        try:
            return lhs in rhs
        except TypeError:
            return False

    if lhs is None or rhs is None:
        return False
    try:
        if operator is ComparisonOperator.LESS_THAN:
            return lhs < rhs
        if operator is ComparisonOperator.GREATER_THAN:
            return lhs > rhs
        if operator is ComparisonOperator.LESS_THAN_OR_EQUAL:
            return lhs <= rhs
        if operator is ComparisonOperator.GREATER_THAN_OR_EQUAL:
            return lhs >= rhs
    except TypeError:
        return False
    return False


def format_constant(value: Any) -> str:
    """Render a constant the way the qualifier parser reads it back."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class BooleanQualifier:
    """Constant qualifier, written as ``*true*`` or ``*false*``."""

    def __init__(self, value: bool):
        self.value = value

    def matches(self, context: Any) -> bool:
        return self.value

    def specificity(self) -> int:
        return -1

    def string_representation(self) -> str:
        return "*true*" if self.value else "*false*"

    def __repr__(self) -> str:
        return f"BooleanQualifier({self.value!r})"


TRUE_QUALIFIER = BooleanQualifier(True)
FALSE_QUALIFIER = BooleanQualifier(False)


class KeyValueQualifier:
    """Compares the value at a keypath with a constant."""

    def __init__(self, key: str, operator: ComparisonOperator, value: Any):
        self.key = key
        self.operator = operator
        self.value = value

    def matches(self, context: Any) -> bool:
        return compare(self.operator, value_for_key_path(context, self.key), self.value)

    def specificity(self) -> int:
        return 0

    def string_representation(self) -> str:
        if self.value is None and self.operator is ComparisonOperator.EQUAL_TO:
            return f"{self.key} IS NULL"
        return f"{self.key} {self.operator.value} {format_constant(self.value)}"

    def __repr__(self) -> str:
        return f"KeyValueQualifier({self.string_representation()!r})"


class KeyComparisonQualifier:
    """Compares the values at two keypaths."""

    def __init__(self, left_key: str, operator: ComparisonOperator, right_key: str):
        self.left_key = left_key
        self.operator = operator
        self.right_key = right_key

    def matches(self, context: Any) -> bool:
        return compare(
            self.operator,
            value_for_key_path(context, self.left_key),
            value_for_key_path(context, self.right_key),
        )

    def specificity(self) -> int:
        return 0

    def string_representation(self) -> str:
        return f"{self.left_key} {self.operator.value} {self.right_key}"

    def __repr__(self) -> str:
        return f"KeyComparisonQualifier({self.string_representation()!r})"


class NotQualifier:
    """Negates a sub-qualifier."""

    def __init__(self, qualifier: Qualifier):
        self.qualifier = qualifier

    def matches(self, context: Any) -> bool:
        return not self.qualifier.matches(context)

    def specificity(self) -> int:
        return 0

    def string_representation(self) -> str:
        inner = self.qualifier
        if isinstance(inner, KeyValueQualifier) and inner.value is None \
                and inner.operator is ComparisonOperator.EQUAL_TO:
            return f"{inner.key} IS NOT NULL"
        return f"NOT ({_representation(inner)})"

    def __repr__(self) -> str:
        return f"NotQualifier({self.qualifier!r})"


class CompoundQualifier:
    """Base for AND/OR qualifiers; specificity is the number of sub-qualifiers."""

    operator_name = ""

    def __init__(self, qualifiers: Iterable[Qualifier]):
        self.qualifiers: Tuple[Qualifier, ...] = tuple(qualifiers)

    def specificity(self) -> int:
        return len(self.qualifiers)

    def string_representation(self) -> str:
        parts: List[str] = []
        for qualifier in self.qualifiers:
            text = _representation(qualifier)
            if isinstance(qualifier, CompoundQualifier):
                text = f"({text})"
            parts.append(text)
        return f" {self.operator_name} ".join(parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.qualifiers)!r})"


class AndQualifier(CompoundQualifier):
    operator_name = "AND"

    def matches(self, context: Any) -> bool:
        return all(q.matches(context) for q in self.qualifiers)


class OrQualifier(CompoundQualifier):
    operator_name = "OR"

    def matches(self, context: Any) -> bool:
        return any(q.matches(context) for q in self.qualifiers)


def _representation(qualifier: Any) -> str:
    render = getattr(qualifier, "string_representation", None)
    return render() if callable(render) else str(qualifier)


def specificity_of(qualifier: Any) -> int:
    """Ranking specificity of a (possibly missing) qualifier."""
    if qualifier is None:
        return -1
    signal = getattr(qualifier, "specificity", None)
    if not callable(signal):
        return 0
    return signal()


def qualifier_representation(qualifier: Any) -> str:
    """Canonical text of a (possibly missing) qualifier."""
    if qualifier is None:
        return "null"
    return _representation(qualifier)
