"""
Qualifier expression parser.

Turns text like ``pageName = 'Main' AND NOT (user.role = 'guest')`` into
qualifier objects. Supported forms:

- comparisons: ``key <op> constant`` or ``key <op> otherKey``
- ``key IS NULL`` / ``key IS NOT NULL``
- a bare key, meaning ``key = true``
- ``NOT``, ``AND``, ``OR`` and parenthesized groups
- the constants ``*true*`` / ``*false*``

When the compound operator changes mid-sequence, what was parsed so far is
folded into one compound: ``a AND b OR c`` reads as ``(a AND b) OR c``.
"""

import re
from typing import Any, List, Optional

from shared.errors import QualifierParseError

from .base import (
    AndQualifier,
    ComparisonOperator,
    FALSE_QUALIFIER,
    KeyComparisonQualifier,
    KeyValueQualifier,
    NotQualifier,
    OrQualifier,
    Qualifier,
    TRUE_QUALIFIER,
    operator_for_string,
)

_BREAK_CHARS = frozenset(" \t\r\n(),=!<>'\"")
_OPERATOR_CHARS = frozenset("=!<>")
_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?([eE][-+]?\d+)?")

_CONSTANT_WORDS = {
    "true": True,
    "false": False,
    "YES": True,
    "NO": False,
    "null": None,
    "NULL": None,
    "nil": None,
}


class QualifierParser:
    """Single-use recursive descent parser over one qualifier string."""

    def __init__(self, text: str):
        self.text = text or ""
        self.pos = 0

    def parse(self) -> Qualifier:
        if not self._skip_spaces():
            raise self._error("empty qualifier")

        qualifier = self._parse_compound()
        if self._skip_spaces():
            raise self._error("unexpected text after qualifier")
        return qualifier

    # compounds

    def _parse_compound(self) -> Qualifier:
        qualifiers: List[Qualifier] = []
        last_operator: Optional[str] = None

        while True:
            qualifiers.append(self._parse_one())

            if not self._skip_spaces() or self._peek() == ")":
                break

            operator = self._parse_identifier()
            if operator is None or operator.upper() not in ("AND", "OR"):
                raise self._error("expected AND or OR")
            operator = operator.upper()

            if not self._skip_spaces():
                raise self._error(f"expected another qualifier after {operator}")

            if last_operator is not None and operator != last_operator:
                qualifiers = [self._build_compound(last_operator, qualifiers)]
            last_operator = operator

        return self._build_compound(last_operator, qualifiers)

    @staticmethod
    def _build_compound(operator: Optional[str], qualifiers: List[Qualifier]) -> Qualifier:
        if len(qualifiers) == 1:
            return qualifiers[0]
        if operator == "AND":
            return AndQualifier(qualifiers)
        return OrQualifier(qualifiers)

    def _parse_one(self) -> Qualifier:
        if not self._skip_spaces():
            raise self._error("expected qualifier")

        if self._peek() == "(":
            self.pos += 1
            qualifier = self._parse_compound()
            self._skip_spaces()
            if self._peek() != ")":
                raise self._error("missing closing parenthesis")
            self.pos += 1
            return qualifier

        if self._match_word("NOT"):
            self.pos += 3
            return NotQualifier(self._parse_one())

        if self.text.startswith("*true*", self.pos):
            self.pos += 6
            return TRUE_QUALIFIER
        if self.text.startswith("*false*", self.pos):
            self.pos += 7
            return FALSE_QUALIFIER

        return self._parse_key_based()

    # comparisons

    def _parse_key_based(self) -> Qualifier:
        key = self._parse_identifier()
        if key is None:
            raise self._error("expected key")

        # a bare key is a boolean test, eg "isArchived AND code > 10"
        if not self._skip_spaces() or self._peek() == ")" or self._next_is_compound_operator():
            return KeyValueQualifier(key, ComparisonOperator.EQUAL_TO, True)

        operation = self._parse_operation()
        if operation is None:
            raise self._error(f"expected operator after {key!r}")

        if operation.upper() == "IS":
            return self._parse_null_test(key)

        try:
            operator = operator_for_string(operation)
        except KeyError:
            raise self._error(f"unknown operator {operation!r}") from None

        if not self._skip_spaces():
            raise self._error(f"expected value after {key!r} {operation}")

        if operator is ComparisonOperator.CONTAINS and self._peek() == "(":
            return KeyValueQualifier(key, operator, self._parse_constant_list())

        if self._at_constant():
            return KeyValueQualifier(key, operator, self._parse_constant())

        other_key = self._parse_identifier()
        if other_key is None:
            raise self._error(f"expected value after {key!r} {operation}")
        return KeyComparisonQualifier(key, operator, other_key)

    def _parse_null_test(self, key: str) -> Qualifier:
        self._skip_spaces()
        negate = False
        if self._match_word("NOT"):
            self.pos += 3
            negate = True
            self._skip_spaces()
        if not self._match_word("NULL"):
            raise self._error("expected NULL after IS")
        self.pos += 4

        qualifier = KeyValueQualifier(key, ComparisonOperator.EQUAL_TO, None)
        return NotQualifier(qualifier) if negate else qualifier

    def _parse_operation(self) -> Optional[str]:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in _OPERATOR_CHARS:
            self.pos += 1
        if self.pos > start:
            return self.text[start:self.pos]
        return self._parse_identifier()

    # constants

    def _at_constant(self) -> bool:
        c = self._peek()
        if c in ("'", '"'):
            return True
        if _NUMBER_RE.match(self.text, self.pos):
            return True
        word = self._peek_identifier()
        return word in _CONSTANT_WORDS

    def _parse_constant(self) -> Any:
        c = self._peek()
        if c in ("'", '"'):
            return self._parse_quoted()

        number = _NUMBER_RE.match(self.text, self.pos)
        if number:
            self.pos = number.end()
            text = number.group(0)
            if number.group(1) or number.group(2):
                return float(text)
            return int(text)

        word = self._parse_identifier()
        return _CONSTANT_WORDS[word]

    def _parse_constant_list(self) -> tuple:
        self.pos += 1  # (
        values = []
        while True:
            if not self._skip_spaces():
                raise self._error("unterminated value list")
            if self._peek() == ")":
                self.pos += 1
                return tuple(values)
            if not self._at_constant():
                raise self._error("value lists may only contain constants")
            values.append(self._parse_constant())
            self._skip_spaces()
            if self._peek() == ",":
                self.pos += 1

    def _parse_quoted(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        chars = []
        while self.pos < len(self.text):
            c = self.text[self.pos]
            if c == "\\" and self.pos + 1 < len(self.text):
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if c == quote:
                self.pos += 1
                return "".join(chars)
            chars.append(c)
            self.pos += 1
        raise self._error("unterminated string constant")

    # scanning

    def _skip_spaces(self) -> bool:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1
        return self.pos < len(self.text)

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _peek_identifier(self) -> Optional[str]:
        start = self.pos
        word = self._parse_identifier()
        self.pos = start
        return word

    def _parse_identifier(self) -> Optional[str]:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in _BREAK_CHARS:
            self.pos += 1
        if self.pos == start:
            return None
        return self.text[start:self.pos]

    def _match_word(self, word: str) -> bool:
        end = self.pos + len(word)
        if self.text[self.pos:end].upper() != word:
            return False
        return end >= len(self.text) or self.text[end] in _BREAK_CHARS

    def _next_is_compound_operator(self) -> bool:
        word = self._peek_identifier()
        return word is not None and word.upper() in ("AND", "OR")

    def _error(self, reason: str) -> QualifierParseError:
        return QualifierParseError(
            f"Could not parse qualifier: {reason}",
            {"qualifier": self.text, "position": self.pos}
        )


def parse_qualifier(text: str) -> Qualifier:
    """Parse a qualifier expression, raising QualifierParseError on bad input."""
    return QualifierParser(text).parse()
