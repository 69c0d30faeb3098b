"""
Textual rule grammar.

    <qualifier> => <keypath> = <value> [; <priority>]

Examples:

    *true* => color = 'yellow' ; fallback
    pageName = 'Main' => color = 'green'
    user.role = 'Manager' => bannerColor = defaultColor ; high
    *true* => (Assignment) title = Welcome

Values that are quoted, numeric, boolean, null or a property list produce an
Assignment; anything else is a keypath and produces a KeyAssignment. An
optional ``(ClassName)`` prefix forces the action class and keeps the value
text unparsed.

Parse failures are logged and reported as None so that one broken line does
not abort loading a whole rule file.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from shared.errors import (
    PropertyListParseError,
    QualifierParseError,
    RuleEngineException,
    RuleParseError,
)
from shared.logging import get_logger

from ..plist import parse_property_list
from ..qualifiers.base import FALSE_QUALIFIER, TRUE_QUALIFIER, Qualifier
from ..qualifiers.parser import parse_qualifier
from .models import Assignment, KeyAssignment, Rule, RulePriority

QUOTE_CHARS = "\"'"
ESCAPE_CHAR = "\\"

PRIORITY_NAMES: Dict[str, int] = {
    "important": RulePriority.IMPORTANT,
    "very high": RulePriority.VERY_HIGH,
    "high": RulePriority.HIGH,
    "normal": RulePriority.NORMAL,
    "default": RulePriority.NORMAL,
    "low": RulePriority.LOW,
    "very low": RulePriority.VERY_LOW,
    "fallback": RulePriority.FALLBACK,
}

ACTION_CLASSES: Dict[str, Type[Assignment]] = {
    "Assignment": Assignment,
    "RuleAssignment": Assignment,
    "KeyAssignment": KeyAssignment,
    "RuleKeyAssignment": KeyAssignment,
}

_NO_VALUE = object()
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

logger = get_logger("rules.parser")


def index_skipping_quotes(text: str, token: str, quotes: str = QUOTE_CHARS,
                          escape: str = ESCAPE_CHAR, nested: bool = False) -> int:
    """
    Index of the first occurrence of token outside quoted substrings, or -1.

    Scans left to right; an escape character skips the next character. With
    ``nested`` the token is also ignored inside () and {} groups, so property
    list values like ``{ a = 1; }`` keep their separators.
    """
    return _scan(text, token, quotes, escape, nested)[0]


def _scan(text: str, token: str, quotes: str, escape: str, nested: bool) -> Tuple[int, int]:
    """Return the match index (or -1) and the group depth where scanning stopped."""
    quote: Optional[str] = None
    depth = 0
    i = 0
    while i < len(text):
        c = text[i]
        if c == escape:
            i += 2
            continue
        if quote is not None:
            if c == quote:
                quote = None
        elif c in quotes:
            quote = c
        elif nested and c in "({":
            depth += 1
        elif nested and c in ")}":
            depth = max(depth - 1, 0)
        elif depth == 0 and text.startswith(token, i):
            return i, depth
        i += 1
    return -1, depth


def priority_separator_index(text: str) -> int:
    """
    Index of the ';' separating an action from its priority, or -1.

    Separators inside quotes and () or {} groups belong to the value. When a
    group is never closed the first unquoted ';' is used instead.
    """
    idx, depth = _scan(text, ";", QUOTE_CHARS, ESCAPE_CHAR, True)
    if idx == -1 and depth > 0:
        idx = index_skipping_quotes(text, ";")
        if idx != -1:
            logger.warning("Unclosed bracket in rule action", action=text)
    return idx


def parse_priority(text: Optional[str]) -> int:
    """
    Parse priority text: a signed integer or one of the priority names.

    Unknown names log a warning and yield NORMAL.
    """
    text = (text or "").strip()
    if not text:
        return RulePriority.NORMAL

    if text[0].isdigit() or text[0] == "-":
        try:
            return int(text)
        except ValueError:
            logger.warning("Invalid numeric rule priority", priority=text)
            return RulePriority.NORMAL

    if text in PRIORITY_NAMES:
        return PRIORITY_NAMES[text]

    logger.warning("Unknown rule priority", priority=text)
    return RulePriority.NORMAL


class RuleParser:
    """Parses rule lines into Rule objects."""

    def __init__(self, action_classes: Optional[Dict[str, Type[Assignment]]] = None):
        self.logger = logger
        self.action_classes: Dict[str, Type[Assignment]] = dict(ACTION_CLASSES)
        if action_classes:
            self.action_classes.update(action_classes)

    def parse_rule(self, text: Optional[str]) -> Optional[Rule]:
        """Parse one rule line, returning None (logged) when it is malformed."""
        try:
            return self._parse_rule(text or "")
        except RuleEngineException as e:
            self.logger.info("Could not parse rule", rule=text, code=e.code, error=e.message)
            return None

    def parse_rules(self, lines: Iterable[str]) -> List[Rule]:
        """Parse many lines, skipping blanks, comments and broken rules."""
        rules = []
        for line in lines:
            stripped = (line or "").strip()
            if not stripped or stripped.startswith("#") or stripped.startswith("//"):
                continue
            rule = self.parse_rule(stripped)
            if rule is not None:
                rules.append(rule)
        return rules

    def parse_qualifier(self, text: Optional[str]) -> Optional[Qualifier]:
        """Parse qualifier text, mapping ``*true*``/``*false*`` to constants."""
        text = (text or "").strip()
        if not text:
            return None
        if text == "*true*":
            return TRUE_QUALIFIER
        if text == "*false*":
            return FALSE_QUALIFIER
        try:
            return parse_qualifier(text)
        except QualifierParseError as e:
            self.logger.info("Could not parse qualifier", qualifier=text, error=e.message)
            return None

    def parse_action(self, text: Optional[str], force_class_name: Optional[str] = None) -> Optional[Assignment]:
        """Parse ``keypath = value`` into an Assignment or KeyAssignment."""
        try:
            return self._parse_action(text or "", force_class_name)
        except RuleEngineException as e:
            self.logger.info("Could not parse action", action=text, code=e.code, error=e.message)
            return None

    # implementation

    def _parse_rule(self, text: str) -> Rule:
        if not text.strip():
            raise RuleParseError("Empty rule", {"rule": text})

        idx = index_skipping_quotes(text, "=>")
        if idx < 1 or not text[:idx].strip():
            raise RuleParseError("Missing '=>' between qualifier and action", {"rule": text})

        qualifier = self.parse_qualifier(text[:idx])
        if qualifier is None:
            raise RuleParseError("Could not parse qualifier of rule", {"rule": text})

        remainder = text[idx + 2:]
        idx = priority_separator_index(remainder)
        if idx == -1:
            action_text, priority = remainder, RulePriority.NORMAL
        else:
            action_text = remainder[:idx]
            priority = parse_priority(remainder[idx + 1:])

        action = self._parse_action(action_text, None)
        return Rule(qualifier, action, priority)

    def _parse_action(self, text: str, force_class_name: Optional[str]) -> Assignment:
        text = text.strip()
        if not text:
            raise RuleParseError("Empty action")

        forced_class = None
        if text.startswith("("):
            end = text.find(")")
            if end == -1:
                raise RuleParseError("Action type cast is not closed", {"action": text})
            forced_class = self._lookup_action_class(text[1:end].strip())
            text = text[end + 1:].strip()
        elif force_class_name:
            forced_class = self._lookup_action_class(force_class_name)

        idx = index_skipping_quotes(text, "=")
        if idx < 1:
            raise RuleParseError("Could not parse assignment", {"action": text})

        key_path = text[:idx].strip()
        value_text = text[idx + 1:].strip()
        if not key_path:
            raise RuleParseError("Assignment has no key", {"action": text})

        if forced_class is not None:
            return forced_class(key_path, value_text)

        value = self._parse_value(value_text)
        if value is _NO_VALUE:
            return KeyAssignment(key_path, value_text)
        return Assignment(key_path, value)

    def _lookup_action_class(self, name: str) -> Type[Assignment]:
        cls = self.action_classes.get(name)
        if cls is None:
            raise RuleParseError(f"Unknown action class {name!r}", {"class": name})
        return cls

    def _parse_value(self, text: str) -> Any:
        """Classify value text; returns _NO_VALUE for keypath references."""
        if not text:
            return _NO_VALUE

        c0 = text[0]
        if c0 in QUOTE_CHARS:
            if not _is_closed_quote(text):
                self.logger.error("String value of assignment misses a closing quote", value=text)
                return _ESCAPE_RE.sub(r"\1", text[1:])
            return _ESCAPE_RE.sub(r"\1", text[1:-1])

        if c0.isdigit() or c0 == "-":
            return self._parse_number(text)

        if c0 in "{(":
            try:
                return parse_property_list(text)
            except PropertyListParseError as e:
                self.logger.error("Could not parse property list of assignment", value=text, error=e.message)
                raise

        if text in ("true", "YES"):
            return True
        if text in ("false", "NO"):
            return False
        if text in ("null", "nil"):
            return None

        return _NO_VALUE

    def _parse_number(self, text: str) -> Any:
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            raise RuleParseError("Invalid number in assignment", {"value": text}) from None


def _is_closed_quote(text: str) -> bool:
    if len(text) < 2 or text[-1] != text[0]:
        return False
    body = text[:-1]
    # an odd run of escapes before the last quote escapes it
    return (len(body) - len(body.rstrip(ESCAPE_CHAR))) % 2 == 0


def parse_rule(text: str) -> Optional[Rule]:
    """Parse one rule line with a default parser."""
    return RuleParser().parse_rule(text)
