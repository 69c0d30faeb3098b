"""
Rule model and rule context.

RuleModel holds the rules and ranks the candidates for a requested key.
RuleContext is the entry point for queries: it holds explicitly stored
values and infers everything else from the model.

    context = RuleContext(model)
    context.take_stored_value_for_key("Main", "pageName")
    color = context.value_for_key("color")

Thread safety: a RuleContext is not thread-safe, give each thread its own
``clone()``. A RuleModel may be shared by many contexts as long as nobody
adds rules while queries are running.
"""

from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from shared.errors import CyclicRuleReferenceError
from shared.logging import get_logger, rule_key_var

from ..keypath import take_value_for_key_path, value_for_key_path
from ..qualifiers.base import specificity_of
from .models import Rule


def _ranking_key(rule: Rule):
    # priority first, then qualifier specificity, both descending
    return (-int(rule.priority), -specificity_of(rule.qualifier))


class RuleModel:
    """Container for a set of rules; selects and ranks candidates per key."""

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self.logger = get_logger("rules.model")
        self._rules: List[Rule] = [r for r in (rules or []) if r is not None]

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    def set_rules(self, rules: Optional[Iterable[Rule]]) -> None:
        self._rules = [r for r in (rules or []) if r is not None]

    def add_rule(self, rule: Optional[Rule]) -> None:
        """Append a rule. Setup time only, not safe while contexts query."""
        if rule is None:
            return
        self._rules.append(rule)

    def add_rules(self, rules: Optional[Iterable[Rule]]) -> None:
        """Append several rules. Setup time only, not safe while contexts query."""
        if not rules:
            return
        self._rules.extend(r for r in rules if r is not None)

    def candidate_rules_for_key(self, key: Optional[str]) -> Optional[List[Rule]]:
        """
        Return the rules whose action is relevant for key, best first.

        Returns None (not an empty list) when there are no candidates. The
        ranking is recomputed on every call; remaining ties keep insertion
        order.
        """
        if not self._rules:
            return None

        candidates = [rule for rule in self._rules if rule.is_candidate_for_key(key)]
        if not candidates:
            return None

        return sorted(candidates, key=_ranking_key)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules))

    def __repr__(self) -> str:
        return f"RuleModel(rules={len(self._rules)})"


class RuleContext:
    """Evaluation session: stored values shadow rule inference."""

    def __init__(self, model: Optional[RuleModel] = None,
                 stored_values: Optional[Mapping[str, Any]] = None):
        self.logger = get_logger("rules.context")
        self.model = model
        self._stored_values: Dict[str, Any] = {}
        self._resolving: List[str] = []

        for key, value in (stored_values or {}).items():
            self.take_stored_value_for_key(value, key)

    # stored values

    @property
    def stored_values(self) -> Mapping[str, Any]:
        return MappingProxyType(self._stored_values)

    def take_stored_value_for_key(self, value: Any, key: Optional[str]) -> None:
        """Install an override for key; None removes it and resumes inference."""
        if not key:
            return
        if value is None:
            self._stored_values.pop(key, None)
            return
        self._stored_values[key] = value

    def stored_value_for_key(self, key: Optional[str]) -> Any:
        if not key:
            return None
        return self._stored_values.get(key)

    def reset(self) -> None:
        """Drop all stored values, returning to pure inference."""
        self._stored_values.clear()

    # key value access

    def take_value_for_key(self, value: Any, key: Optional[str]) -> None:
        self.take_stored_value_for_key(value, key)

    def take_value_for_key_path(self, value: Any, key_path: Optional[str]) -> None:
        take_value_for_key_path(self, value, key_path)

    def value_for_key(self, key: Optional[str]) -> Any:
        if not key:
            return None

        value = self._stored_values.get(key)
        if value is not None:
            return value

        return self.inferred_value_for_key(key)

    def value_for_key_path(self, key_path: Optional[str]) -> Any:
        return value_for_key_path(self, key_path)

    # inference

    def inferred_value_for_key(self, key: Optional[str]) -> Any:
        """Fire the best ranked rule whose qualifier matches this context."""
        if not key:
            self.logger.warning("Got no key to infer")
            return None
        if self.model is None:
            self.logger.debug("Cannot infer value without model", key=key)
            return None

        rules = self.model.candidate_rules_for_key(key)
        if rules is None:
            self.logger.debug("No candidates for key", key=key)
            return None

        with self._resolving_key(key):
            for rule in rules:
                if not self._qualifier_matches(rule):
                    continue

                self.logger.debug("Qualifier matched, firing rule", key=key, rule=str(rule))
                return rule.fire_in_context(self)

        self.logger.debug("No rule qualifier matched", key=key)
        return None

    def all_possible_values_for_key(self, key: Optional[str]) -> Optional[List[Any]]:
        """Fire every matching rule for key, in rank order, and collect the values."""
        if not key:
            self.logger.warning("Got no key to infer")
            return None
        if self.model is None:
            self.logger.debug("Cannot infer values without model", key=key)
            return None

        rules = self.model.candidate_rules_for_key(key)
        if rules is None:
            self.logger.debug("No candidates for key", key=key)
            return None

        values: List[Any] = []
        with self._resolving_key(key):
            for rule in rules:
                if self._qualifier_matches(rule):
                    values.append(rule.fire_in_context(self))

        self.logger.debug("Rules matched", key=key, count=len(values))
        return values

    def values_for_key_path_while_taking_successive_values(
        self, key_path: str, values: Sequence[Any], value_key_path: str
    ) -> List[Any]:
        """
        For each value, store it at value_key_path and evaluate key_path.

        The last value stays stored afterwards.
        """
        results = []
        for value in values:
            self.take_value_for_key_path(value, value_key_path)
            results.append(self.value_for_key_path(key_path))
        return results

    def _qualifier_matches(self, rule: Rule) -> bool:
        qualifier = rule.qualifier
        matches = getattr(qualifier, "matches", None)
        if not callable(matches):
            self.logger.warning("Rule qualifier does not support evaluation", rule=str(rule))
            return False
        return bool(matches(self))

    @contextmanager
    def _resolving_key(self, key: str):
        if key in self._resolving:
            chain = self._resolving[self._resolving.index(key):] + [key]
            raise CyclicRuleReferenceError(chain)

        self._resolving.append(key)
        token = rule_key_var.set(key)
        try:
            yield
        finally:
            rule_key_var.reset(token)
            self._resolving.pop()

    # cloning

    def clone(self) -> "RuleContext":
        """Copy stored values into a new context sharing the same model."""
        return RuleContext(self.model, self._stored_values)

    __copy__ = clone

    def __repr__(self) -> str:
        return f"RuleContext(model={self.model!r}, values={self._stored_values!r})"
