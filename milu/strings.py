"""Parsing of double-quoted string literals with escape sequences.

A string literal is enclosed in double quotes and may contain:

- any character except ``\\`` and ``"`` as-is;
- the escapes ``\\n``, ``\\r``, ``\\t``, ``\\b``, ``\\f``, ``\\\\``, ``\\/`` and ``\\"``;
- code points written as ``\\u{XXXX}`` with one to six hexadecimal digits;
- a backslash followed by whitespace, which drops all of that whitespace.

Every parser takes the text and a start offset and returns the parsed result
together with the offset just past it, raising :class:`StringParseError`
when the text at the offset does not match.
"""

from __future__ import annotations

import re

__all__ = [
    "StringParseError",
    "parse_unicode",
    "parse_escaped_whitespace",
    "parse_escaped_char",
    "parse_string",
]

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "\\": "\\",
    "/": "/",
    '"': '"',
}
_WHITESPACE = " \t\r\n"
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_MAX_HEX_DIGITS = 6
_LITERAL = re.compile(r'[^"\\]+')


class StringParseError(ValueError):
    """Raised when the text at a given offset is not a valid string fragment."""

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at offset {position}")
        self.message = message
        self.position = position


def _expect(text: str, pos: int, expected: str) -> int:
    if pos >= len(text) or text[pos] != expected:
        raise StringParseError(f"expected {expected!r}", pos)
    return pos + 1


def parse_unicode(text: str, pos: int = 0) -> tuple[str, int]:
    """Parse ``u{XXXX}`` (1 to 6 hex digits) into the character it names."""
    pos = _expect(text, pos, "u")
    start = _expect(text, pos, "{")
    end = start
    while (
        end < len(text)
        and end - start < _MAX_HEX_DIGITS
        and text[end] in _HEX_DIGITS
    ):
        end += 1
    if end == start:
        raise StringParseError("expected hexadecimal digits", start)
    digits = text[start:end]
    after = _expect(text, end, "}")
    code = int(digits, 16)
    if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
        raise StringParseError(f"invalid code point: {digits}", start)
    return chr(code), after


def parse_escaped_whitespace(text: str, pos: int = 0) -> int:
    """Parse a backslash followed by one or more whitespace characters.

    Returns the offset after the whitespace.
    """
    start = _expect(text, pos, "\\")
    end = start
    while end < len(text) and text[end] in _WHITESPACE:
        end += 1
    if end == start:
        raise StringParseError("expected whitespace after backslash", start)
    return end


def parse_escaped_char(text: str, pos: int = 0, extra: str = "") -> tuple[str, int]:
    """Parse an escape such as ``\\n`` or ``\\u{00AC}``.

    Characters in ``extra`` are additionally accepted as escaping themselves.
    """
    start = pos
    pos = _expect(text, pos, "\\")
    try:
        return parse_unicode(text, pos)
    except StringParseError:
        pass
    if pos < len(text):
        ch = text[pos]
        if ch in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[ch], pos + 1
        if ch in extra:
            return ch, pos + 1
    raise StringParseError("invalid escape sequence", start)


def parse_string(text: str, pos: int = 0) -> tuple[str, int]:
    """Parse a double-quoted string literal and return its decoded content."""
    pos = _expect(text, pos, '"')
    parts: list[str] = []
    while True:
        if pos >= len(text):
            raise StringParseError("unterminated string", pos)
        ch = text[pos]
        if ch == '"':
            return "".join(parts), pos + 1
        if ch == "\\":
            try:
                decoded, pos = parse_escaped_char(text, pos)
            except StringParseError:
                try:
                    pos = parse_escaped_whitespace(text, pos)
                except StringParseError:
                    raise StringParseError("invalid escape sequence", pos) from None
            else:
                parts.append(decoded)
            continue
        match = _LITERAL.match(text, pos)
        parts.append(match.group())
        pos = match.end()