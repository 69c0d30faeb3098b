"""
Rule engine package.

A small forward-inference engine resolving a requested key ("pageName",
"bannerColor") to a value by matching declarative qualifier => value rules
against a run-time context. It provides:

- rules: Rule/action data model, model ranking, context inference, the
  textual rule parser and the XML model loader.
- qualifiers: Predicates evaluated against a context and their expression
  language.
- keypath: Dotted keypath access used by qualifiers and key assignments.
- plist: Structured literal parser for rule values.
- bootstrap: Config-driven construction of a ready rule context.

Guidelines:
- Rule evaluation is synchronous and side-effect free.
- Nothing is cached; every query recomputes the ranking.
"""

from .rules import (
    Assignment,
    CompoundAction,
    KeyAssignment,
    Rule,
    RuleContext,
    RuleModel,
    RuleModelLoader,
    RuleParser,
    RulePriority,
)

__all__ = [
    "Assignment",
    "CompoundAction",
    "KeyAssignment",
    "Rule",
    "RuleContext",
    "RuleModel",
    "RuleModelLoader",
    "RuleParser",
    "RulePriority",
]
