"""
Parser for old-style (ASCII) property lists.

Used for structured rule values such as ``{ color = red; size = 5; }`` or
``(Main, Login, "Edit Page")``. Bare words become strings, bare numbers
become int/float.
"""

import re
from typing import Any, Dict, List

from shared.errors import PropertyListParseError

_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?$")
_WORD_BREAKS = frozenset(" \t\r\n{}()=;,'\"")


class PropertyListParser:
    """Single-use parser over one property list string."""

    def __init__(self, text: str):
        self.text = text or ""
        self.pos = 0

    def parse(self) -> Any:
        if not self._skip_spaces():
            raise self._error("empty property list")
        value = self._parse_value()
        if self._skip_spaces():
            raise self._error("unexpected text after property list")
        return value

    def _parse_value(self) -> Any:
        if not self._skip_spaces():
            raise self._error("unexpected end of property list")

        c = self.text[self.pos]
        if c == "{":
            return self._parse_dict()
        if c == "(":
            return self._parse_array()
        if c in ("'", '"'):
            return self._parse_quoted()
        return self._parse_word()

    def _parse_dict(self) -> Dict[str, Any]:
        self.pos += 1
        result: Dict[str, Any] = {}
        while True:
            if not self._skip_spaces():
                raise self._error("unterminated dictionary")
            if self.text[self.pos] == "}":
                self.pos += 1
                return result

            key = self._parse_value()
            if not isinstance(key, str):
                raise self._error("dictionary keys must be strings")

            self._expect("=")
            result[key] = self._parse_value()

            if not self._skip_spaces():
                raise self._error("unterminated dictionary")
            if self.text[self.pos] == ";":
                self.pos += 1
            elif self.text[self.pos] != "}":
                raise self._error("expected ';' in dictionary")

    def _parse_array(self) -> List[Any]:
        self.pos += 1
        result: List[Any] = []
        while True:
            if not self._skip_spaces():
                raise self._error("unterminated array")
            if self.text[self.pos] == ")":
                self.pos += 1
                return result

            result.append(self._parse_value())

            if not self._skip_spaces():
                raise self._error("unterminated array")
            if self.text[self.pos] == ",":
                self.pos += 1
            elif self.text[self.pos] != ")":
                raise self._error("expected ',' in array")

    def _parse_quoted(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        chars = []
        while self.pos < len(self.text):
            c = self.text[self.pos]
            if c == "\\" and self.pos + 1 < len(self.text):
                escaped = self.text[self.pos + 1]
                chars.append({"n": "\n", "t": "\t", "r": "\r"}.get(escaped, escaped))
                self.pos += 2
                continue
            if c == quote:
                self.pos += 1
                return "".join(chars)
            chars.append(c)
            self.pos += 1
        raise self._error("unterminated string")

    def _parse_word(self) -> Any:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in _WORD_BREAKS:
            self.pos += 1
        if self.pos == start:
            raise self._error(f"unexpected character {self.text[self.pos]!r}")

        word = self.text[start:self.pos]
        match = _NUMBER_RE.match(word)
        if match:
            return float(word) if match.group(1) else int(word)
        return word

    def _expect(self, char: str) -> None:
        if not self._skip_spaces() or self.text[self.pos] != char:
            raise self._error(f"expected {char!r}")
        self.pos += 1

    def _skip_spaces(self) -> bool:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1
        return self.pos < len(self.text)

    def _error(self, reason: str) -> PropertyListParseError:
        return PropertyListParseError(
            f"Could not parse property list: {reason}",
            {"text": self.text, "position": self.pos}
        )


def parse_property_list(text: str) -> Any:
    """Parse a property list string, raising PropertyListParseError on bad input."""
    return PropertyListParser(text).parse()


_BARE_WORD_RE = re.compile(r"[A-Za-z_][\w.\-]*$")


def format_property_list(value: Any) -> str:
    """
    Render a value as property list text that parse_property_list reads back.

    Lists become ``(a, b)`` and mappings ``{ k = v; }``. Strings stay bare
    when they are plain words, otherwise they are double-quoted.
    """
    if isinstance(value, dict):
        if not value:
            return "{}"
        items = " ".join(f"{format_property_list(str(k))} = {format_property_list(v)};" for k, v in value.items())
        return f"{{ {items} }}"
    if isinstance(value, (list, tuple)):
        return "(" + ", ".join(format_property_list(v) for v in value) + ")"
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)

    text = "" if value is None else str(value)
    if _BARE_WORD_RE.match(text):
        return text
    escaped = (
        text.replace("\\", "\\\\").replace('"', '\\"')
        .replace("\n", "\\n").replace("\t", "\\t").replace("\r", "\\r")
    )
    return f'"{escaped}"'
