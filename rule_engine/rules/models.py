"""
Rule data models.

A rule is a (qualifier, action, priority) triple. The qualifier decides
whether the rule applies to a context, the action produces the value when
the rule is selected, and the priority ranks rules competing for the same
key. Actions do not modify the context, they only *return* a value:

    user.role = 'Manager' => bannerColor = 'red' ; high

Action variants:
- Assignment: returns a constant.
- KeyAssignment: returns the value of another keypath on the context, which
  may itself be inferred by rules.
- CompoundAction: fires several actions, returns the last result.
- Rule: a nested rule delegates to its own action.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, List, Optional, Sequence, Union

from shared.logging import get_logger

from ..plist import format_property_list
from ..qualifiers.base import qualifier_representation

logger = get_logger("rules.models")


class RulePriority(IntEnum):
    """Named rule priorities; higher values win."""
    IMPORTANT = 1000
    VERY_HIGH = 200
    HIGH = 150
    NORMAL = 100
    LOW = 50
    VERY_LOW = 5
    FALLBACK = 0


@dataclass(eq=False)
class Assignment:
    """Action returning a constant value for one key."""
    key_path: str
    value: Any = None

    def is_candidate_for_key(self, key: Optional[str]) -> bool:
        if not key:
            return True
        # exact match only, "a.b" is not a candidate for "a"
        return key == self.key_path

    def fire_in_context(self, context: Any) -> Any:
        logger.debug("Fire value", key_path=self.key_path, value=self.value)
        return self.value

    def value_string_representation(self) -> str:
        """
        Value as written in a rule file. Strings are quoted, otherwise they
        would be read back as a KeyAssignment; lists and mappings are
        written as property lists.
        """
        if self.value is None:
            return "null"
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        if isinstance(self.value, (int, float)):
            return str(self.value)
        if isinstance(self.value, (dict, list, tuple)):
            return format_property_list(self.value)
        escaped = str(self.value).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    def string_representation(self) -> str:
        return f"{self.key_path} = {self.value_string_representation()}"

    def __str__(self) -> str:
        return self.string_representation()


@dataclass(eq=False)
class KeyAssignment(Assignment):
    """
    Action returning the value of another keypath, looked up on the context.

    ``*true* => bannerColor = defaultColor`` asks the context for
    ``defaultColor``, which may trigger another round of inference.
    """

    def fire_in_context(self, context: Any) -> Any:
        if context is None or self.value is None:
            return None
        return context.value_for_key_path(str(self.value))

    def value_string_representation(self) -> str:
        return str(self.value)


@dataclass(eq=False)
class CompoundAction:
    """Fires every action in order and returns the result of the last one."""
    actions: List[Any] = field(default_factory=list)

    @classmethod
    def for_actions(cls, actions: Sequence[Any]) -> Optional[Any]:
        """Collapse a list of actions: None, the single action, or a compound."""
        actions = [a for a in actions if a is not None]
        if not actions:
            return None
        if len(actions) == 1:
            return actions[0]
        return cls(actions)

    def is_candidate_for_key(self, key: Optional[str]) -> bool:
        if not key:
            return True
        return any(action.is_candidate_for_key(key) for action in self.actions)

    def fire_in_context(self, context: Any) -> Any:
        result = None
        for action in self.actions:
            result = action.fire_in_context(context)
        return result

    def string_representation(self) -> str:
        return ", ".join(_action_representation(a) for a in self.actions)

    def __str__(self) -> str:
        return self.string_representation()


@dataclass(eq=False)
class Rule:
    """
    A qualifier, an action and a priority.

    Attributes are plain and mutable so that editing tools can change a rule;
    rules must not be changed while contexts evaluate the owning model.
    """
    qualifier: Any = None
    action: Optional["RuleAction"] = None
    priority: int = RulePriority.NORMAL

    def is_candidate_for_key(self, key: Optional[str]) -> bool:
        if not key:
            return True
        if self.action is None:
            return False
        check = getattr(self.action, "is_candidate_for_key", None)
        return bool(check(key)) if callable(check) else False

    def fire_in_context(self, context: Any) -> Any:
        if self.action is None:
            return None
        fire = getattr(self.action, "fire_in_context", None)
        return fire(context) if callable(fire) else None

    def string_representation(self) -> str:
        """Canonical text: ``<qualifier> => <action> ; <priority>``."""
        return (
            f"{qualifier_representation(self.qualifier)} => "
            f"{_action_representation(self.action)} ; {int(self.priority)}"
        )

    def __str__(self) -> str:
        return self.string_representation()


RuleAction = Union[Assignment, KeyAssignment, CompoundAction, Rule]


def _action_representation(action: Any) -> str:
    if action is None:
        return "null"
    render = getattr(action, "string_representation", None)
    return render() if callable(render) else str(action)
