"""
A small JSONPath evaluator for the in-memory document tree.

Supported syntax:

  $                       root
  .name  ['name']         child member
  .*  [*]                 every child
  [0]  [-1]               array index
  ..name  ..*  ..[...]    recursive descent
  [?(<expr>)]  [?<expr>]  filter over the children of the current node

Filter expressions compare operands with == != < <= > >=, combine them with
&& || ! and parentheses, and test existence with a bare path. Operands are
relative paths (@.a.b), absolute paths ($.x) or literals: numbers,
'single' or "double" quoted strings, true, false, null.

Strings that both look like ISO-8601 timestamps are compared as datetimes.
"""

from __future__ import annotations

import enum
import functools
import operator
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterator

Location = tuple[Any, ...]


class JsonPathError(Exception):
    """Base error for path evaluation."""


class JsonPathSyntaxError(JsonPathError):
    def __init__(self, message: str, path: str = "", position: int = -1):
        self.path = path
        self.position = position
        if position >= 0 and path:
            message = f"{message}\n  {path}\n  {' ' * position}^"
        super().__init__(message)


class MultipleMatchesError(JsonPathError):
    """Raised when a single-result selection matches more than one node."""


@dataclass(frozen=True)
class Match:
    location: Location
    value: Any


# --- tokenizer ----------------------------------------------------------


class TokType(enum.Enum):
    ROOT = "$"
    CURRENT = "@"
    DOT = "."
    DOTDOT = ".."
    LBRACKET = "["
    RBRACKET = "]"
    LPAREN = "("
    RPAREN = ")"
    QUESTION = "?"
    STAR = "*"
    NOT = "!"
    AND = "&&"
    OR = "||"
    EQ = "=="
    NEQ = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    NAME = "NAME"
    NUMBER = "NUMBER"
    STRING = "STRING"
    EOF = "EOF"


@dataclass
class Tok:
    type: TokType
    value: Any
    pos: int


# Two-character operators are matched before single characters.
_TWO_CHAR = {
    "..": TokType.DOTDOT,
    "&&": TokType.AND,
    "||": TokType.OR,
    "==": TokType.EQ,
    "!=": TokType.NEQ,
    "<=": TokType.LTE,
    ">=": TokType.GTE,
}

_ONE_CHAR = {
    "$": TokType.ROOT,
    "@": TokType.CURRENT,
    ".": TokType.DOT,
    "[": TokType.LBRACKET,
    "]": TokType.RBRACKET,
    "(": TokType.LPAREN,
    ")": TokType.RPAREN,
    "?": TokType.QUESTION,
    "*": TokType.STAR,
    "!": TokType.NOT,
    "<": TokType.LT,
    ">": TokType.GT,
}

_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?([eE][-+]?\d+)?")


def _tokenize(path: str) -> list[Tok]:
    tokens: list[Tok] = []
    i = 0
    n = len(path)

    while i < n:
        ch = path[i]
        if ch.isspace():
            i += 1
            continue

        if ch in ("'", '"'):
            start = i
            i += 1
            parts: list[str] = []
            while i < n and path[i] != ch:
                if path[i] == "\\" and i + 1 < n:
                    i += 1
                parts.append(path[i])
                i += 1
            if i >= n:
                raise JsonPathSyntaxError("unterminated string literal", path, start)
            i += 1
            tokens.append(Tok(TokType.STRING, "".join(parts), start))
            continue

        if ch.isdigit() or (ch == "-" and i + 1 < n and path[i + 1].isdigit()):
            m = _NUMBER_RE.match(path, i)
            if m is None:
                raise JsonPathSyntaxError("malformed number", path, i)
            text = m.group(0)
            value: Any = float(text) if (m.group(1) or m.group(2)) else int(text)
            tokens.append(Tok(TokType.NUMBER, value, i))
            i = m.end()
            continue

        two = path[i : i + 2]
        if two in _TWO_CHAR:
            tokens.append(Tok(_TWO_CHAR[two], two, i))
            i += 2
            continue

        if ch in _ONE_CHAR:
            tokens.append(Tok(_ONE_CHAR[ch], ch, i))
            i += 1
            continue

        if ch.isalpha() or ch == "_":
            start = i
            while i < n and (path[i].isalnum() or path[i] == "_"):
                i += 1
            tokens.append(Tok(TokType.NAME, path[start:i], start))
            continue

        raise JsonPathSyntaxError(f"unexpected character {ch!r}", path, i)

    tokens.append(Tok(TokType.EOF, None, n))
    return tokens


# --- selectors and filter expressions -----------------------------------

Nodes = list[Match]


def _children(node: Match) -> Iterator[Match]:
    if isinstance(node.value, dict):
        for key, value in node.value.items():
            yield Match(node.location + (key,), value)
    elif isinstance(node.value, list):
        for idx, value in enumerate(node.value):
            yield Match(node.location + (idx,), value)


def _descendants(node: Match) -> Iterator[Match]:
    yield node
    for child in _children(node):
        yield from _descendants(child)


@dataclass(frozen=True)
class _Member:
    name: str

    def select(self, node: Match, root: Any) -> Iterator[Match]:
        if isinstance(node.value, dict) and self.name in node.value:
            yield Match(node.location + (self.name,), node.value[self.name])


@dataclass(frozen=True)
class _Index:
    index: int

    def select(self, node: Match, root: Any) -> Iterator[Match]:
        if isinstance(node.value, list):
            idx = self.index + len(node.value) if self.index < 0 else self.index
            if 0 <= idx < len(node.value):
                yield Match(node.location + (idx,), node.value[idx])


@dataclass(frozen=True)
class _Wildcard:
    def select(self, node: Match, root: Any) -> Iterator[Match]:
        yield from _children(node)


@dataclass(frozen=True)
class _Filter:
    expr: "_Expr"

    def select(self, node: Match, root: Any) -> Iterator[Match]:
        for child in _children(node):
            if self.expr.test(child.value, root):
                yield child


@dataclass(frozen=True)
class _Descend:
    inner: Any

    def select(self, node: Match, root: Any) -> Iterator[Match]:
        for desc in _descendants(node):
            yield from self.inner.select(desc, root)


def _walk(selectors: tuple[Any, ...], start: Match, root: Any) -> Nodes:
    nodes = [start]
    for selector in selectors:
        nodes = [found for node in nodes for found in selector.select(node, root)]
        if not nodes:
            break
    return nodes


class _Expr:
    def test(self, current: Any, root: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class _PathOperand(_Expr):
    relative: bool
    selectors: tuple[Any, ...]

    def values(self, current: Any, root: Any) -> list[Any]:
        start = Match((), current if self.relative else root)
        return [m.value for m in _walk(self.selectors, start, root)]

    def test(self, current: Any, root: Any) -> bool:
        return bool(self.values(current, root))


@dataclass(frozen=True)
class _Literal(_Expr):
    value: Any

    def values(self, current: Any, root: Any) -> list[Any]:
        return [self.value]

    def test(self, current: Any, root: Any) -> bool:
        return bool(self.value)


# A bare date reads as midnight, so date fields compare with rendered datetimes.
_ISO_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})(?:[T ](\d{2}:\d{2}(?::\d{2})?)(?:\.(\d+))?(Z|[+-]\d{2}:?\d{2})?)?$"
)


def _as_datetime(text: str) -> datetime | None:
    m = _ISO_RE.match(text)
    if m is None:
        return None
    day, clock, fraction, offset = m.groups()
    normalized = f"{day}T{clock or '00:00'}"
    if fraction:
        normalized += "." + fraction[:6].ljust(6, "0")
    if offset:
        normalized += "+00:00" if offset == "Z" else offset
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_pair(a: Any, b: Any) -> tuple[Any, Any] | None:
    """
    Return a comparable pair, or None when the operands have unrelated types.
    """
    if _is_number(a) and _is_number(b):
        return a, b
    if isinstance(a, str) and isinstance(b, str):
        da, db = _as_datetime(a), _as_datetime(b)
        if da is not None and db is not None:
            return da, db
        return a, b
    if isinstance(a, bool) and isinstance(b, bool):
        return a, b
    if a is None and b is None:
        return a, b
    if type(a) is type(b) and isinstance(a, (dict, list)):
        return a, b
    return None


def _equal(a: Any, b: Any) -> bool:
    pair = _coerce_pair(a, b)
    if pair is None:
        return False
    try:
        return pair[0] == pair[1]
    except TypeError:
        return False


def _ordered(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(a: Any, b: Any) -> bool:
        pair = _coerce_pair(a, b)
        if pair is None or isinstance(pair[0], (bool, dict, list)) or pair[0] is None:
            return False
        try:
            return op(pair[0], pair[1])
        except TypeError:
            # naive vs aware datetimes
            return False

    return compare


_COMPARATORS: dict[TokType, Callable[[Any, Any], bool]] = {
    TokType.EQ: _equal,
    TokType.NEQ: lambda a, b: not _equal(a, b),
    TokType.LT: _ordered(operator.lt),
    TokType.LTE: _ordered(operator.le),
    TokType.GT: _ordered(operator.gt),
    TokType.GTE: _ordered(operator.ge),
}


@dataclass(frozen=True)
class _Compare(_Expr):
    left: Any
    op: TokType
    right: Any

    def test(self, current: Any, root: Any) -> bool:
        compare = _COMPARATORS[self.op]
        lefts = self.left.values(current, root)
        rights = self.right.values(current, root)
        # A path operand that selects nothing never satisfies a comparison.
        return any(compare(a, b) for a in lefts for b in rights)


@dataclass(frozen=True)
class _And(_Expr):
    left: _Expr
    right: _Expr

    def test(self, current: Any, root: Any) -> bool:
        return self.left.test(current, root) and self.right.test(current, root)


@dataclass(frozen=True)
class _Or(_Expr):
    left: _Expr
    right: _Expr

    def test(self, current: Any, root: Any) -> bool:
        return self.left.test(current, root) or self.right.test(current, root)


@dataclass(frozen=True)
class _Not(_Expr):
    inner: _Expr

    def test(self, current: Any, root: Any) -> bool:
        return not self.inner.test(current, root)


# --- parser -------------------------------------------------------------

_LITERAL_NAMES = {"true": True, "false": False, "null": None}


class _Parser:
    """
    Recursive-descent parser.

    path     := '$' segment*
    segment  := '.' (NAME | '*') | '..' (NAME | '*' | bracket) | bracket
    bracket  := '[' ('*' | NUMBER | STRING | '?' filter) ']'
    filter   := '(' expr ')' | expr
    expr     := and ('||' and)*
    and      := unary ('&&' unary)*
    unary    := '!' unary | '(' expr ')' | operand (cmp operand)?
    operand  := ('@' | '$') segment* | NUMBER | STRING | true | false | null
    """

    def __init__(self, path: str):
        self._path = path
        self._tokens = _tokenize(path)
        self._pos = 0

    def _peek(self) -> Tok:
        return self._tokens[self._pos]

    def _advance(self) -> Tok:
        tok = self._tokens[self._pos]
        if tok.type is not TokType.EOF:
            self._pos += 1
        return tok

    def _at(self, *types: TokType) -> bool:
        return self._peek().type in types

    def _expect(self, tt: TokType) -> Tok:
        tok = self._peek()
        if tok.type is not tt:
            raise JsonPathSyntaxError(f"expected {tt.value!r}, found {tok.value!r}", self._path, tok.pos)
        return self._advance()

    def parse(self) -> tuple[Any, ...]:
        self._expect(TokType.ROOT)
        selectors = self._segments()
        tok = self._peek()
        if tok.type is not TokType.EOF:
            raise JsonPathSyntaxError(f"unexpected {tok.value!r}", self._path, tok.pos)
        return selectors

    def _segments(self) -> tuple[Any, ...]:
        selectors: list[Any] = []
        while self._at(TokType.DOT, TokType.DOTDOT, TokType.LBRACKET):
            tok = self._advance()
            if tok.type is TokType.DOT:
                selectors.append(self._dot_member())
            elif tok.type is TokType.DOTDOT:
                if self._at(TokType.LBRACKET):
                    self._advance()
                    selectors.append(_Descend(self._bracket()))
                else:
                    selectors.append(_Descend(self._dot_member()))
            else:
                selectors.append(self._bracket())
        return tuple(selectors)

    def _dot_member(self) -> Any:
        tok = self._advance()
        if tok.type is TokType.STAR:
            return _Wildcard()
        if tok.type is TokType.NAME:
            return _Member(tok.value)
        raise JsonPathSyntaxError("expected a member name", self._path, tok.pos)

    def _bracket(self) -> Any:
        # the opening '[' has been consumed
        tok = self._advance()
        if tok.type is TokType.STAR:
            selector: Any = _Wildcard()
        elif tok.type is TokType.NUMBER and isinstance(tok.value, int):
            selector = _Index(tok.value)
        elif tok.type is TokType.STRING:
            selector = _Member(tok.value)
        elif tok.type is TokType.QUESTION:
            selector = _Filter(self._expr())
        else:
            raise JsonPathSyntaxError(f"unexpected {tok.value!r} in brackets", self._path, tok.pos)
        self._expect(TokType.RBRACKET)
        return selector

    def _expr(self) -> _Expr:
        left = self._and()
        while self._at(TokType.OR):
            self._advance()
            left = _Or(left, self._and())
        return left

    def _and(self) -> _Expr:
        left = self._unary()
        while self._at(TokType.AND):
            self._advance()
            left = _And(left, self._unary())
        return left

    def _unary(self) -> _Expr:
        if self._at(TokType.NOT):
            self._advance()
            return _Not(self._unary())
        if self._at(TokType.LPAREN):
            self._advance()
            inner = self._expr()
            self._expect(TokType.RPAREN)
            return inner

        left = self._operand()
        if self._peek().type in _COMPARATORS:
            op = self._advance().type
            return _Compare(left, op, self._operand())
        return left

    def _operand(self) -> Any:
        tok = self._advance()
        if tok.type in (TokType.CURRENT, TokType.ROOT):
            return _PathOperand(tok.type is TokType.CURRENT, self._segments())
        if tok.type in (TokType.NUMBER, TokType.STRING):
            return _Literal(tok.value)
        if tok.type is TokType.NAME and tok.value in _LITERAL_NAMES:
            return _Literal(_LITERAL_NAMES[tok.value])
        raise JsonPathSyntaxError(f"unexpected {tok.value!r} in filter", self._path, tok.pos)


# --- public API ---------------------------------------------------------


class JsonPath:
    def __init__(self, path: str):
        self.path = path
        self._selectors = _Parser(path).parse()

    def __repr__(self) -> str:
        return f"JsonPath({self.path!r})"

    def find(self, root: Any) -> list[Match]:
        return _walk(self._selectors, Match((), root), root)


@functools.lru_cache(maxsize=256)
def compile_path(path: str) -> JsonPath:
    return JsonPath(path)


def select_tokens(root: Any, path: str) -> list[Match]:
    """
    Return every node matched by `path`, in document order.
    """
    return compile_path(path).find(root)


def select_token(root: Any, path: str) -> Match | None:
    """
    Return the single node matched by `path`, or None.

    Raises MultipleMatchesError when more than one node matches.
    """
    matches = select_tokens(root, path)
    if len(matches) > 1:
        raise MultipleMatchesError(f"path returned {len(matches)} matches: {path}")
    return matches[0] if matches else None
