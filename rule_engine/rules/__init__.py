"""
Rules package.

Defines the rule model and the inference engine. A rule context resolves a
requested key by ranking the candidate rules of a shared model and firing
the first one whose qualifier matches the context.

Modules of interest:
- models: Rule, priorities and the action variants.
- engine: RuleModel ranking and RuleContext inference.
- parser: Textual rule grammar.
- loader: XML rule model loader.

Models are built at setup time and treated as immutable while contexts
evaluate them; contexts are cheap and not thread-safe.
"""

from .engine import RuleContext, RuleModel
from .loader import RuleModelLoader
from .models import Assignment, CompoundAction, KeyAssignment, Rule, RuleAction, RulePriority
from .parser import RuleParser, parse_priority, parse_rule

__all__ = [
    "Assignment",
    "CompoundAction",
    "KeyAssignment",
    "Rule",
    "RuleAction",
    "RuleContext",
    "RuleModel",
    "RuleModelLoader",
    "RuleParser",
    "RulePriority",
    "parse_priority",
    "parse_rule",
]
