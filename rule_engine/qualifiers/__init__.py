"""
Qualifier package.

Qualifiers are the left-hand side of rules: boolean predicates evaluated
against a rule context, plus a specificity signal used to rank rules of
equal priority.

Modules of interest:
- base: Qualifier protocol, constant/key/compound qualifier types.
- parser: Qualifier expression language used in rule files.
"""

from .base import (
    AndQualifier,
    BooleanQualifier,
    ComparisonOperator,
    CompoundQualifier,
    FALSE_QUALIFIER,
    KeyComparisonQualifier,
    KeyValueQualifier,
    NotQualifier,
    OrQualifier,
    Qualifier,
    TRUE_QUALIFIER,
    qualifier_representation,
    specificity_of,
)
from .parser import QualifierParser, parse_qualifier

__all__ = [
    "AndQualifier",
    "BooleanQualifier",
    "ComparisonOperator",
    "CompoundQualifier",
    "FALSE_QUALIFIER",
    "KeyComparisonQualifier",
    "KeyValueQualifier",
    "NotQualifier",
    "OrQualifier",
    "Qualifier",
    "QualifierParser",
    "TRUE_QUALIFIER",
    "parse_qualifier",
    "qualifier_representation",
    "specificity_of",
]
