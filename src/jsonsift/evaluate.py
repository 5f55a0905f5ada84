"""Query expressions evaluated against ingested data.

A compiled expression is an *evaluator*: a callable ``(data, helpers) -> value``
where *helpers* maps names to plain Python functions (see
:mod:`jsonsift.helpers`).  Anything with that signature can stand in for the
built-in language.

The built-in language is a small jq-flavoured subset::

    .                       the input itself (also: data)
    .name  ."odd key"       field access; missing keys give null
    .items[0]  .items[-1]   list index
    .["key"]                computed key
    .items[].id             [] maps the rest of the path over every element
    a | b                   feed the result of a into b
    name(arg, ...)          call a helper; args are evaluated against the input
    name()                  call a helper with the input as its only argument
    map(expr)               evaluate expr once per element of the input list
    [a, b]  {k: a, "x": b}  construct arrays and objects ({k} means {k: .k})
    1  "s"  true  null      JSON literals

Examples::

    .Items | map({id: .id.S, updatedAt: .updatedAt.N})
    group_by(., "name") | keys()
    stats(.data[].value)
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from typing import Any, NamedTuple

from jsonsift.helpers import builtin_helpers

Helpers = Mapping[str, Callable[..., Any]]
Evaluator = Callable[[Any, Helpers], Any]

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<punct>[.|,:()\[\]{}])
    """,
    re.VERBOSE,
)

_KEYWORDS = {"true": True, "false": False, "null": None}


class ExpressionError(ValueError):
    """An expression failed to compile or to evaluate."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        self.offset = offset
        super().__init__(message if offset is None else f"{message} at offset {offset}")


class Token(NamedTuple):
    kind: str
    text: str
    offset: int


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise ExpressionError(f"unexpected character {source[pos]!r}", pos)
        kind = match.lastgroup
        assert kind is not None
        if kind != "ws":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(Token("end", "", len(source)))
    return tokens


# ---------------------------------------------------------------------------
# Runtime operations
# ---------------------------------------------------------------------------


def _identity(data: Any, helpers: Helpers) -> Any:
    return data


def _index(value: Any, key: Any, offset: int) -> Any:
    if value is None:
        return None
    if isinstance(value, dict):
        if not isinstance(key, str):
            raise ExpressionError(f"cannot index object with {json.dumps(key)}", offset)
        return value.get(key)
    if isinstance(value, list):
        if isinstance(key, bool) or not isinstance(key, int):
            raise ExpressionError(f"cannot index array with {json.dumps(key)}", offset)
        return value[key] if -len(value) <= key < len(value) else None
    raise ExpressionError(f"cannot index {type(value).__name__} with {json.dumps(key)}", offset)


def _elements(value: Any, offset: int) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.values())
    raise ExpressionError(f"cannot iterate over {type(value).__name__}", offset)


def _invoke(name: str, helpers: Helpers, args: list[Any], offset: int) -> Any:
    func = helpers.get(name)
    if func is None:
        raise ExpressionError(f"unknown helper {name!r}", offset)
    try:
        return func(*args)
    except ExpressionError:
        raise
    except Exception as exc:
        raise ExpressionError(f"{name}() failed: {exc}", offset) from exc


# ---------------------------------------------------------------------------
# Parser — recursive descent straight to closures
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, source: str) -> None:
        self.tokens = tokenize(source)
        self.pos = 0

    @property
    def tok(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _at(self, text: str) -> bool:
        return self.tok.kind == "punct" and self.tok.text == text

    def _expect(self, text: str) -> Token:
        if not self._at(text):
            found = self.tok.text or "end of expression"
            raise ExpressionError(f"expected {text!r}, found {found!r}", self.tok.offset)
        return self._advance()

    def parse(self) -> Evaluator:
        node = self.pipeline()
        if self.tok.kind != "end":
            raise ExpressionError(f"unexpected {self.tok.text!r}", self.tok.offset)
        return node

    def pipeline(self) -> Evaluator:
        stages = [self.postfix()]
        while self._at("|"):
            self._advance()
            stages.append(self.postfix())
        if len(stages) == 1:
            return stages[0]

        def run(data: Any, helpers: Helpers) -> Any:
            for stage in stages:
                data = stage(data, helpers)
            return data

        return run

    def postfix(self) -> Evaluator:
        if self._at("."):
            self._advance()
            base: Evaluator = _identity
            if self.tok.kind in ("name", "string"):
                base = self._field(base, self._advance())
        else:
            base = self.primary()
        return self._suffixes(base)

    def _field(self, base: Evaluator, tok: Token) -> Evaluator:
        key = json.loads(tok.text) if tok.kind == "string" else tok.text
        return lambda data, helpers: _index(base(data, helpers), key, tok.offset)

    def _suffixes(self, base: Evaluator) -> Evaluator:
        """Parse ``.name`` / ``[i]`` / ``[]`` suffixes applied to *base*."""
        steps: list[Callable[[Any, Any, Helpers], Any]] = []
        while True:
            if self._at("."):
                self._advance()
                tok = self.tok
                if tok.kind not in ("name", "string"):
                    raise ExpressionError("expected a field name after '.'", tok.offset)
                self._advance()
                key = json.loads(tok.text) if tok.kind == "string" else tok.text
                steps.append(lambda v, root, h, key=key, off=tok.offset: _index(v, key, off))
            elif self._at("["):
                bracket = self._advance()
                if self._at("]"):
                    self._advance()
                    rest = self._suffixes(_identity)
                    steps.append(
                        lambda v, root, h, rest=rest, off=bracket.offset: [
                            rest(item, h) for item in _elements(v, off)
                        ]
                    )
                    break
                key_expr = self.pipeline()
                self._expect("]")
                steps.append(
                    lambda v, root, h, key_expr=key_expr, off=bracket.offset: _index(
                        v, key_expr(root, h), off
                    )
                )
            else:
                break
        if not steps:
            return base

        def run(data: Any, helpers: Helpers) -> Any:
            value = base(data, helpers)
            for step in steps:
                value = step(value, data, helpers)
            return value

        return run

    def primary(self) -> Evaluator:
        tok = self.tok
        if tok.kind == "number":
            self._advance()
            number = json.loads(tok.text)
            return lambda data, helpers: number
        if tok.kind == "string":
            self._advance()
            text = json.loads(tok.text)
            return lambda data, helpers: text
        if tok.kind == "name":
            self._advance()
            if self._at("("):
                return self._call(tok)
            if tok.text in _KEYWORDS:
                literal = _KEYWORDS[tok.text]
                return lambda data, helpers: literal
            if tok.text == "data":
                return _identity
            raise ExpressionError(f"unknown name {tok.text!r}", tok.offset)
        if self._at("("):
            self._advance()
            inner = self.pipeline()
            self._expect(")")
            return inner
        if self._at("["):
            return self._array()
        if self._at("{"):
            return self._object()
        found = tok.text or "end of expression"
        raise ExpressionError(f"unexpected {found!r}", tok.offset)

    def _arguments(self, close: str) -> list[Evaluator]:
        items: list[Evaluator] = []
        if not self._at(close):
            items.append(self.pipeline())
            while self._at(","):
                self._advance()
                items.append(self.pipeline())
        self._expect(close)
        return items

    def _call(self, name_tok: Token) -> Evaluator:
        self._expect("(")
        args = self._arguments(")")
        name = name_tok.text
        offset = name_tok.offset

        if name == "map":
            if len(args) != 1:
                raise ExpressionError("map() takes exactly one expression", offset)
            (body,) = args
            return lambda data, helpers: [body(item, helpers) for item in _elements(data, offset)]

        def run(data: Any, helpers: Helpers) -> Any:
            values = [arg(data, helpers) for arg in args] if args else [data]
            return _invoke(name, helpers, values, offset)

        return run

    def _array(self) -> Evaluator:
        self._expect("[")
        items = self._arguments("]")
        return lambda data, helpers: [item(data, helpers) for item in items]

    def _object(self) -> Evaluator:
        self._expect("{")
        entries: list[tuple[str, Evaluator]] = []
        while not self._at("}"):
            tok = self.tok
            if tok.kind not in ("name", "string"):
                raise ExpressionError("expected an object key", tok.offset)
            self._advance()
            key = json.loads(tok.text) if tok.kind == "string" else tok.text
            if self._at(":"):
                self._advance()
                value = self.pipeline()
            else:
                value = self._field(_identity, tok)
            entries.append((key, value))
            if not self._at(","):
                break
            self._advance()
        self._expect("}")
        return lambda data, helpers: {key: value(data, helpers) for key, value in entries}


def compile_expression(source: str) -> Evaluator:
    """Compile *source* into an evaluator.

    An empty expression is the identity.

    Raises:
        ExpressionError: on a syntax error, with the offending offset.
    """
    if not source.strip():
        source = "."
    return _Parser(source).parse()


def evaluate(source: str, data: Any, helpers: Helpers | None = None) -> Any:
    """Compile *source* and run it against *data* in one step."""
    if helpers is None:
        helpers = builtin_helpers()
    return compile_expression(source)(data, helpers)
