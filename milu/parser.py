"""Parser turning expression source text into a tree of script values.

The grammar, from the loosest binding to the tightest:

- ``if c then a else b``, ``c ? a : b`` and ``let x=1; y=2 in expr``;
- ``||``/``or``, ``&&``/``and``, ``|``, ``^``, ``&``;
- ``==``, ``!=``, ``=~``, ``!~``, ``_:`` (member of), then ``>`` and ``<``;
- ``<<`` and ``>>``, then ``+``/``-`` and ``*``/``/``/``%``;
- unary ``!``, ``~`` and ``-``;
- postfix indexing ``a[i]``, member access ``a.b`` and calls ``f(x, y)``;
- literals: strings, template strings, booleans, integers, identifiers,
  arrays and tuples.

Whitespace, ``# line`` comments and ``/* block */`` comments may precede any
token. A whole input may end with ``;;``.
"""

from __future__ import annotations

import re
from typing import Callable as _Fn
from typing import Optional

from .script import (
    Array,
    Boolean,
    Call,
    Identifier,
    Integer,
    ScriptError,
    String,
    Tuple,
    Value,
)
from .stdlib import (
    Access,
    And,
    BitAnd,
    BitNot,
    BitOr,
    BitXor,
    Divide,
    Equal,
    Greater,
    GreaterOrEqual,
    If,
    Index,
    IsMemberOf,
    Lesser,
    LesserOrEqual,
    Like,
    Minus,
    Mod,
    Multiply,
    Negative,
    Not,
    NotEqual,
    NotLike,
    Or,
    Plus,
    Scope,
    ShiftLeft,
    ShiftRight,
    ShiftRightUnsigned,
    StringConcat,
    Xor,
)
from .strings import (
    StringParseError,
    parse_escaped_char,
    parse_escaped_whitespace,
    parse_string,
)

__all__ = ["ScriptSyntaxError", "parse"]

_MULTISPACE = " \t\r\n"
_LINE_END = "\r\n"
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_TEMPLATE_LITERAL = re.compile(r"[^`$\\]+")
_INTEGER_FORMS = (
    (re.compile(r"0[bB]([01][01_]*)"), 2),
    (re.compile(r"0[oO]([0-7][0-7_]*)"), 8),
    (re.compile(r"0[xX]([0-9a-fA-F][0-9a-fA-F_]*)"), 16),
    (re.compile(r"([0-9][0-9_]*)"), 10),
)
_I64_MAX = (1 << 63) - 1

_UNARY = {"!": Not, "~": BitNot, "-": Negative}

_BINARY = {
    "*": Multiply,
    "/": Divide,
    "%": Mod,
    "+": Plus,
    "-": Minus,
    "<<": ShiftLeft,
    ">>": ShiftRight,
    ">>>": ShiftRightUnsigned,
    ">": Greater,
    ">=": GreaterOrEqual,
    "<": Lesser,
    "<=": LesserOrEqual,
    "==": Equal,
    "!=": NotEqual,
    "=~": Like,
    "!~": NotLike,
    "_:": IsMemberOf,
    "&": BitAnd,
    "^": BitXor,
    "|": BitOr,
    "&&": And,
    "and": And,
    "^^": Xor,
    "xor": Xor,
    "||": Or,
    "or": Or,
}

# Binary operator levels, loosest first. Within a level the first matching
# operator is taken, so a longer operator listed after its prefix never wins.
_LEVELS = (
    (("||", False), ("or", True)),
    (("&&", False), ("and", True)),
    (("|", False),),
    (("^", False),),
    (("&", False),),
    (("==", False), ("!=", False), ("=~", False), ("!~", False), ("_:", False)),
    ((">", False), (">=", False), ("<", False), ("<=", False)),
    (("<<", False), (">>", False), (">>>", False)),
    (("+", False), ("-", False)),
    (("*", False), ("/", False), ("%", False)),
)


class ScriptSyntaxError(ScriptError):
    """Raised when the source text is not a valid expression."""

    def __init__(self, message: str, position: int, line: int, column: int):
        super().__init__(message)
        self.message = message
        self.position = position
        self.line = line
        self.column = column

    def __str__(self) -> str:
        return f"SyntaxError: {self.message}"


class _NoMatch(Exception):
    """A rule did not match at the current position; alternatives may be tried."""


_FAILED = object()


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self._furthest = -1
        self._expected = "expression"
        self._op0_memo: dict = {}
        self._op1_memo: dict = {}

    # -- primitives ---------------------------------------------------------

    def _fail(self, pos: int, expected: str):
        if pos > self._furthest:
            self._furthest = pos
            self._expected = expected
        raise _NoMatch()

    def _blank(self, pos: int) -> int:
        text = self.text
        size = len(text)
        while pos < size:
            ch = text[pos]
            if ch in _MULTISPACE:
                pos += 1
            elif ch == "#" and pos + 1 < size and text[pos + 1] not in _LINE_END:
                pos += 1
                while pos < size and text[pos] not in _LINE_END:
                    pos += 1
            elif text.startswith("/*", pos):
                end = text.find("*/", pos + 2)
                if end < 0:
                    break
                pos = end + 2
            else:
                break
        return pos

    def _tag(self, pos: int, literal: str, nocase: bool = False) -> int:
        end = pos + len(literal)
        chunk = self.text[pos:end]
        if (chunk.lower() if nocase else chunk) == literal:
            return end
        self._fail(pos, repr(literal))

    def _ws_tag(self, pos: int, literal: str) -> int:
        return self._tag(self._blank(pos), literal)

    def _alt(self, pos: int, *rules: _Fn):
        for rule in rules:
            try:
                return rule(pos)
            except _NoMatch:
                continue
        self._fail(pos, "expression")

    def _memo(self, table: dict, pos: int, rule: _Fn):
        hit = table.get(pos)
        if hit is None:
            try:
                hit = rule(pos)
            except _NoMatch:
                hit = _FAILED
            table[pos] = hit
        if hit is _FAILED:
            raise _NoMatch()
        return hit

    def _separated(self, pos: int, separator: str, rule: _Fn):
        items = []
        try:
            item, pos = rule(pos)
        except _NoMatch:
            return items, pos
        items.append(item)
        while True:
            try:
                after = self._ws_tag(pos, separator)
                item, after = rule(after)
            except _NoMatch:
                return items, pos
            items.append(item)
            pos = after

    # -- literals -----------------------------------------------------------

    def _string(self, pos: int):
        pos = self._blank(pos)
        try:
            content, end = parse_string(self.text, pos)
        except StringParseError as exc:
            self._fail(max(exc.position, pos), "string")
        return String(content), end

    def _template(self, pos: int):
        text = self.text
        pos = self._tag(self._blank(pos), "`")
        parts = []
        while pos < len(text):
            ch = text[pos]
            if ch == "\\":
                try:
                    decoded, pos = parse_escaped_char(text, pos, "$")
                    parts.append(String(decoded))
                    continue
                except StringParseError:
                    pass
                try:
                    pos = parse_escaped_whitespace(text, pos)
                    continue
                except StringParseError:
                    break
            elif ch == "$":
                try:
                    inner = self._tag(pos + 1, "{")
                    element, inner = self._op_0(inner)
                    pos = self._tag(inner, "}")
                except _NoMatch:
                    break
                parts.append(element)
            elif ch == "`":
                break
            else:
                match = _TEMPLATE_LITERAL.match(text, pos)
                parts.append(String(match.group()))
                pos = match.end()
        pos = self._tag(pos, "`")
        return StringConcat.make_call(Array(tuple(parts))), pos

    def _boolean(self, pos: int):
        pos = self._blank(pos)
        for literal, flag in (("true", True), ("false", False)):
            if self.text.startswith(literal, pos):
                return Boolean(flag), pos + len(literal)
        self._fail(pos, "boolean")

    def _integer(self, pos: int):
        pos = self._blank(pos)
        for pattern, radix in _INTEGER_FORMS:
            match = pattern.match(self.text, pos)
            if match is None:
                continue
            digits = match.group(1)
            if "_" in digits:
                continue
            number = int(digits, radix)
            if number > _I64_MAX:
                continue
            return Integer(number), match.end()
        self._fail(pos, "integer")

    def _identifier(self, pos: int):
        pos = self._blank(pos)
        match = _IDENTIFIER.match(self.text, pos)
        if match is None:
            self._fail(pos, "identifier")
        return Identifier(match.group()), match.end()

    def _array(self, pos: int):
        pos = self._tag(self._blank(pos), "[")
        items, pos = self._separated(pos, ",", self._op_0)
        try:
            pos = self._ws_tag(pos, ",")
        except _NoMatch:
            pass
        pos = self._ws_tag(pos, "]")
        return Array(tuple(items)), pos

    def _tuple(self, pos: int):
        start = self._blank(pos)
        pos = self._tag(start, "(")
        items = []
        while True:
            try:
                item, after = self._op_0(pos)
                after = self._ws_tag(after, ",")
            except _NoMatch:
                break
            items.append(item)
            pos = after
        last: Optional[Value] = None
        try:
            last, pos = self._op_0(pos)
        except _NoMatch:
            pass
        if last is not None:
            if not items:
                self._fail(start, "tuple")
            items.append(last)
        pos = self._ws_tag(pos, ")")
        return Tuple(tuple(items)), pos

    def _value(self, pos: int):
        return self._alt(
            pos,
            self._string,
            self._template,
            self._boolean,
            self._integer,
            self._identifier,
            self._array,
            self._tuple,
        )

    # -- operators ----------------------------------------------------------

    def _parenthesized(self, rule: _Fn) -> _Fn:
        def parse_inner(pos: int):
            pos = self._tag(pos, "(")
            value, pos = rule(pos)
            return value, self._ws_tag(pos, ")")

        return parse_inner

    def _op_value(self, pos: int):
        pos = self._blank(pos)
        return self._alt(
            pos,
            self._parenthesized(self._op_0),
            self._parenthesized(self._value),
            self._value,
        )

    def _suffix_index(self, pos: int, target: Value):
        pos = self._tag(self._blank(pos), "[")
        index, pos = self._op_0(pos)
        pos = self._ws_tag(pos, "]")
        return Index.make_call(target, index), pos

    def _suffix_access(self, pos: int, target: Value):
        pos = self._tag(self._blank(pos), ".")
        member, pos = self._alt(pos, self._identifier, self._integer)
        return Access.make_call(target, member), pos

    def _suffix_call(self, pos: int, target: Value):
        pos = self._tag(self._blank(pos), "(")
        args, pos = self._separated(pos, ",", self._op_0)
        pos = self._ws_tag(pos, ")")
        return Call.from_items([target, *args]), pos

    def _op_8(self, pos: int):
        value, pos = self._op_value(self._blank(pos))
        suffixes = (self._suffix_index, self._suffix_access, self._suffix_call)
        while True:
            for suffix in suffixes:
                try:
                    value, pos = suffix(pos, value)
                    break
                except _NoMatch:
                    continue
            else:
                return value, pos

    def _op_7(self, pos: int):
        pos = self._blank(pos)
        for symbol, function in _UNARY.items():
            if self.text.startswith(symbol, pos):
                try:
                    operand, end = self._op_7(pos + len(symbol))
                except _NoMatch:
                    break
                return function.make_call(operand), end
        return self._op_8(pos)

    def _operator(self, pos: int, tags: tuple):
        for literal, nocase in tags:
            end = pos + len(literal)
            chunk = self.text[pos:end]
            if (chunk.lower() if nocase else chunk) == literal:
                return literal, end
        self._fail(pos, "operator")

    def _level(self, pos: int, depth: int):
        if depth == len(_LEVELS):
            return self._op_7(pos)
        pos = self._blank(pos)
        left, pos = self._level(pos, depth + 1)
        while True:
            try:
                symbol, after = self._operator(self._blank(pos), _LEVELS[depth])
                right, after = self._level(after, depth + 1)
            except _NoMatch:
                return left, pos
            left = _BINARY[symbol].make_call(left, right)
            pos = after

    def _op_1(self, pos: int):
        return self._memo(self._op1_memo, pos, lambda p: self._level(p, 0))

    def _if_then_else(self, pos: int):
        pos = self._tag(pos, "if")
        cond, pos = self._op_0(pos)
        pos = self._ws_tag(pos, "then")
        yes, pos = self._op_0(pos)
        pos = self._ws_tag(pos, "else")
        no, pos = self._op_0(pos)
        return If.make_call(cond, yes, no), pos

    def _ternary(self, pos: int):
        cond, pos = self._op_1(pos)
        pos = self._ws_tag(pos, "?")
        yes, pos = self._op_0(pos)
        pos = self._ws_tag(pos, ":")
        no, pos = self._op_0(pos)
        return If.make_call(cond, yes, no), pos

    def _op_if(self, pos: int):
        pos = self._blank(pos)
        return self._alt(pos, self._if_then_else, self._ternary)

    def _op_assign(self, pos: int):
        name, pos = self._identifier(self._blank(pos))
        pos = self._ws_tag(pos, "=")
        value, pos = self._op_0(pos)
        return Tuple((name, value)), pos

    def _op_let(self, pos: int):
        pos = self._tag(self._blank(pos), "let")
        bindings, pos = self._separated(pos, ";", self._op_assign)
        try:
            pos = self._ws_tag(pos, ";")
        except _NoMatch:
            pass
        pos = self._ws_tag(pos, "in")
        expr, pos = self._op_0(pos)
        return Scope.make_call(Array(tuple(bindings)), expr), pos

    def _op_0(self, pos: int):
        return self._memo(
            self._op0_memo,
            pos,
            lambda p: self._alt(self._blank(p), self._op_if, self._op_let, self._op_1),
        )

    # -- entry point --------------------------------------------------------

    def _skip_multispace(self, pos: int) -> int:
        while pos < len(self.text) and self.text[pos] in _MULTISPACE:
            pos += 1
        return pos

    def parse_root(self) -> Value:
        try:
            value, pos = self._op_0(0)
            pos = self._skip_multispace(pos)
            if self.text.startswith(";;", pos):
                pos = self._skip_multispace(pos + 2)
            if pos != len(self.text):
                self._fail(pos, "end of input")
        except _NoMatch:
            raise self._syntax_error() from None
        return value

    def _syntax_error(self) -> ScriptSyntaxError:
        text = self.text
        pos = max(self._furthest, 0)
        line = text.count("\n", 0, pos) + 1
        line_start = text.rfind("\n", 0, pos) + 1
        line_end = text.find("\n", pos)
        if line_end < 0:
            line_end = len(text)
        column = pos - line_start + 1
        snippet = text[line_start:line_end].rstrip("\r")
        message = (
            f"at line {line}, column {column}: expected {self._expected}\n"
            f"{snippet}\n{' ' * (column - 1)}^"
        )
        return ScriptSyntaxError(message, pos, line, column)


def parse(source: str) -> Value:
    """Parse ``source`` into an expression tree, raising ScriptSyntaxError on failure."""
    return _Parser(source).parse_root()