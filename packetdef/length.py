"""Arithmetic length expressions over packet fields and constants."""

from __future__ import annotations

import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from packetdef.types import PacketDefinitionError

__all__ = ["LengthExpression", "parse_length_expr"]

_ERROR_MSG = (
    "Only field names, constants, integers, basic arithmetic expressions "
    '(+ - * / %) and parentheses are allowed in the "length" attribute'
)
_MEMBER_MSG = "Field name must be a member of the struct and not the field itself"

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>[0-9][0-9A-Za-z_.]*)"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<punct>\S))"
)
_INT_RE = re.compile(
    r"(?:0x(?P<hex>[0-9a-fA-F_]+)|0o(?P<oct>[0-7_]+)|0b(?P<bin>[01_]+)"
    r"|(?P<dec>[0-9][0-9_]*))"
    r"(?:[ui](?:8|16|32|64|128|size))?"
)
_OPERATORS = "+-*/%"


def _checked_sub(left: int, right: int) -> int:
    result = left - right
    if result < 0:
        raise ValueError(f"length expression underflowed: {left} - {right}")
    return result


_BINARY: dict[str, Callable[[int, int], int]] = {
    "+": operator.add,
    "-": _checked_sub,
    "*": operator.mul,
    "/": operator.floordiv,
    "%": operator.mod,
}


@dataclass(frozen=True)
class _Literal:
    value: int

    def evaluate(self, packet: Any) -> int:
        return self.value


@dataclass(frozen=True)
class _FieldRef:
    name: str

    def evaluate(self, packet: Any) -> int:
        if isinstance(packet, Mapping):
            value = packet[self.name]
        else:
            value = getattr(packet, self.name)
        return operator.index(value)


@dataclass(frozen=True)
class _Binary:
    op: str
    left: "_Node"
    right: "_Node"

    def evaluate(self, packet: Any) -> int:
        return _BINARY[self.op](self.left.evaluate(packet), self.right.evaluate(packet))


_Node = Union[_Literal, _FieldRef, _Binary]


@dataclass(frozen=True)
class LengthExpression:
    """A parsed length expression; ``fields`` names the fields it reads."""

    source: str
    fields: tuple[str, ...]
    _root: _Node = field(repr=False, compare=False)

    def evaluate(self, packet: Any) -> int:
        """Compute the length in bytes, reading fields from ``packet``.

        ``packet`` is a mapping of field names to values or an object with
        the fields as attributes.
        """
        return self._root.evaluate(packet)

    def __str__(self) -> str:
        return self.source


def _parse_int(text: str) -> int:
    match = _INT_RE.fullmatch(text)
    if match is None:
        raise PacketDefinitionError(_ERROR_MSG)
    for group, base in (("hex", 16), ("oct", 8), ("bin", 2), ("dec", 10)):
        digits = match.group(group)
        if digits is not None:
            digits = digits.replace("_", "")
            if not digits:
                raise PacketDefinitionError(_ERROR_MSG)
            return int(digits, base)
    raise PacketDefinitionError(_ERROR_MSG)


def _tokenize(expr: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    text = expr.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise PacketDefinitionError(_ERROR_MSG)
        pos = match.end()
        if match.group("number") is not None:
            tokens.append(("number", match.group("number")))
        elif match.group("ident") is not None:
            tokens.append(("ident", match.group("ident")))
        else:
            char = match.group("punct")
            if char in _OPERATORS:
                tokens.append(("op", char))
            elif char in "()":
                tokens.append((char, char))
            else:
                raise PacketDefinitionError(_ERROR_MSG)
    return tokens


def _check_balanced(tokens: Iterable[tuple[str, str]]) -> None:
    depth = 0
    for kind, _ in tokens:
        if kind == "(":
            depth += 1
        elif kind == ")":
            if depth == 0:
                raise PacketDefinitionError("unexpected closing delimiter: )")
            depth -= 1
    if depth:
        raise PacketDefinitionError("this expression contains an unclosed delimiter")


def _is_field_like(name: str) -> bool:
    return any(c.islower() for c in name)


def _validate(tokens: Iterable[tuple[str, str]], field_names: frozenset[str]) -> None:
    """Check literals and the field/constant rule, one parenthesis level at a time."""
    frames: list[list[Optional[str] | bool]] = [[None, False]]

    def close(frame: list) -> None:
        needs_constant, has_constant = frame
        if needs_constant is not None and not has_constant:
            raise PacketDefinitionError(_MEMBER_MSG)

    for kind, text in tokens:
        if kind == "ident":
            if _is_field_like(text):
                if text not in field_names and frames[-1][0] is None:
                    frames[-1][0] = text
            else:
                frames[-1][1] = True
        elif kind == "number":
            _parse_int(text)
        elif kind == "(":
            frames.append([None, False])
        elif kind == ")":
            close(frames.pop())
    close(frames[-1])


class _Parser:
    def __init__(
        self,
        source: str,
        tokens: list[tuple[str, str]],
        field_names: frozenset[str],
        constants: Mapping[str, int],
    ) -> None:
        self._source = source
        self._tokens = tokens
        self._pos = 0
        self._field_names = field_names
        self._constants = constants
        self.fields: list[str] = []

    def _error(self) -> PacketDefinitionError:
        return PacketDefinitionError(f"invalid length expression: {self._source!r}")

    def _peek(self) -> Optional[tuple[str, str]]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> tuple[str, str]:
        token = self._peek()
        if token is None:
            raise self._error()
        self._pos += 1
        return token

    def parse(self) -> _Node:
        node = self._expr()
        if self._peek() is not None:
            raise self._error()
        return node

    def _binary_level(self, ops: str, operand: Callable[[], _Node]) -> _Node:
        node = operand()
        while True:
            token = self._peek()
            if token is None or token[0] != "op" or token[1] not in ops:
                return node
            self._pos += 1
            node = _Binary(token[1], node, operand())

    def _expr(self) -> _Node:
        return self._binary_level("+-", self._term)

    def _term(self) -> _Node:
        return self._binary_level("*/%", self._factor)

    def _factor(self) -> _Node:
        kind, text = self._next()
        if kind == "number":
            return _Literal(_parse_int(text))
        if kind == "ident":
            return self._resolve(text)
        if kind == "(":
            node = self._expr()
            if self._next()[0] != ")":
                raise self._error()
            return node
        raise self._error()

    def _resolve(self, name: str) -> _Node:
        if _is_field_like(name) and name in self._field_names:
            if name not in self.fields:
                self.fields.append(name)
            return _FieldRef(name)
        if name in self._constants:
            return _Literal(operator.index(self._constants[name]))
        raise PacketDefinitionError(f"unknown constant in length expression: {name}")


def parse_length_expr(
    expr: str,
    field_names: Iterable[str],
    constants: Optional[Mapping[str, int]] = None,
) -> LengthExpression:
    """Parse a ``length`` attribute expression.

    Names containing a lower-case letter refer to the fields in
    ``field_names``; other names are constants looked up in ``constants``.
    Only integers, ``+ - * / %`` and parentheses are allowed besides.
    """
    names = frozenset(field_names)
    tokens = _tokenize(expr)
    _check_balanced(tokens)
    _validate(tokens, names)
    parser = _Parser(expr, tokens, names, constants or {})
    root = parser.parse()
    return LengthExpression(source=expr, fields=tuple(parser.fields), _root=root)