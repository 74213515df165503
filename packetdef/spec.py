"""Packet definitions: declared fields, validated into a packet specification."""

from __future__ import annotations

import operator
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Union

from packetdef.length import LengthExpression, parse_length_expr
from packetdef.types import (
    FieldType,
    MiscType,
    PacketDefinitionError,
    PrimitiveType,
    VectorType,
    make_type,
)

__all__ = ["FieldSpec", "Field", "PacketSpec", "make_packet"]

LengthFunction = Callable[[Any], int]
LengthSource = Union[LengthExpression, LengthFunction]

_CONSTRUCT_WITH_FORM = (
    "#[construct_with] should be of the form #[construct_with(<primitive types>)]"
)
_NOT_PRIMITIVE = "arguments to #[construct_with] must be primitives"


@dataclass(frozen=True)
class FieldSpec:
    """A field as declared: its name, type name and attributes."""

    name: Optional[str]
    ty: str
    payload: bool = False
    length: Optional[str] = None
    length_fn: Optional[LengthFunction] = None
    construct_with: Optional[Sequence[str]] = None


@dataclass(frozen=True)
class Field:
    """A validated field of a packet.

    ``length`` gives the field's size in bytes as read from a packet, either
    a parsed expression or a function of the packet. ``struct_length_factor``
    is set for vector fields: the size of a record's value is its number of
    elements times this factor.
    """

    name: str
    ty: FieldType
    is_payload: bool = False
    length: Optional[LengthSource] = None
    construct_with: Optional[tuple[PrimitiveType, ...]] = None
    struct_length_factor: Optional[int] = None

    def length_of(self, packet: Any) -> Optional[int]:
        """The field's length in bytes for ``packet``, or None if it has no length."""
        if self.length is None:
            return None
        if isinstance(self.length, LengthExpression):
            return self.length.evaluate(packet)
        return operator.index(self.length(packet))


@dataclass(frozen=True)
class PacketSpec:
    """A validated packet definition."""

    base_name: str
    fields: tuple[Field, ...]
    constants: Mapping[str, int] = field(default_factory=dict)

    def packet_name(self) -> str:
        """Name of the read-only packet view."""
        return f"{self.base_name}Packet"

    def mutable_packet_name(self) -> str:
        """Name of the writable packet view."""
        return f"Mutable{self.base_name}Packet"

    @property
    def payload(self) -> Field:
        """The field marked as payload."""
        return next(f for f in self.fields if f.is_payload)


def _construct_with(spec: FieldSpec) -> Optional[tuple[FieldType, ...]]:
    if spec.construct_with is None:
        return None
    if isinstance(spec.construct_with, str):
        raise PacketDefinitionError(_CONSTRUCT_WITH_FORM)
    types = []
    for arg in spec.construct_with:
        if not isinstance(arg, str) or not arg.isidentifier():
            raise PacketDefinitionError(_CONSTRUCT_WITH_FORM)
        types.append(make_type(arg, False))
    if not types:
        raise PacketDefinitionError(
            "#[construct_with] must have at least one argument"
        )
    return tuple(types)


def _primitives(types: tuple[FieldType, ...]) -> tuple[PrimitiveType, ...]:
    if not all(isinstance(t, PrimitiveType) for t in types):
        raise PacketDefinitionError(_NOT_PRIMITIVE)
    return types  # type: ignore[return-value]


def _length(
    spec: FieldSpec, other_names: list[str], constants: Mapping[str, int]
) -> Optional[LengthSource]:
    if spec.length is not None and spec.length_fn is not None:
        raise PacketDefinitionError(
            f"field {spec.name!r} may not have both #[length] and #[length_fn]"
        )
    if spec.length_fn is not None:
        if not callable(spec.length_fn):
            raise PacketDefinitionError(
                '#[length_fn] should be used as #[length_fn = "name_of_function"]'
            )
        return spec.length_fn
    if spec.length is not None:
        if not isinstance(spec.length, str):
            raise PacketDefinitionError(
                '#[length] should be used as #[length = '
                '"field_name and/or arithmetic expression"]'
            )
        return parse_length_expr(spec.length, other_names, constants)
    return None


def _check_vector_inner(inner: FieldType) -> None:
    if isinstance(inner, VectorType):
        raise PacketDefinitionError("variable length fields may not contain vectors")
    if isinstance(inner, PrimitiveType) and inner.name != "u8" and inner.size % 8:
        raise PacketDefinitionError("unimplemented variable length field")


def make_packet(
    name: str,
    field_specs: Sequence[FieldSpec],
    constants: Optional[Mapping[str, int]] = None,
) -> PacketSpec:
    """Validate declared fields and build the packet specification.

    Raises PacketDefinitionError for any invalid definition.
    """
    constants = dict(constants or {})
    all_names = [spec.name for spec in field_specs if spec.name]
    fields: list[Field] = []
    has_payload = False

    for spec in field_specs:
        if not spec.name:
            raise PacketDefinitionError("all fields in a packet must be named")
        if spec.payload:
            if has_payload:
                raise PacketDefinitionError("packet may not have multiple payloads")
            has_payload = True

        other_names = [n for n in all_names if n != spec.name]
        length = _length(spec, other_names, constants)
        construct_with = _construct_with(spec)
        ty = make_type(spec.ty, True)

        primitives: Optional[tuple[PrimitiveType, ...]] = None
        struct_factor: Optional[int] = None
        if isinstance(ty, VectorType):
            if construct_with is not None:
                primitives = _primitives(construct_with)
                inner_size = sum(p.size for p in primitives)
                if inner_size % 8:
                    raise PacketDefinitionError(
                        "types in #[construct_with] for vec must be add up "
                        "to a multiple of 8 bits"
                    )
                struct_factor = inner_size // 8
            else:
                struct_factor = 1
            if not spec.payload and length is None:
                raise PacketDefinitionError(
                    'variable length field must have #[length = ""] or '
                    '#[length_fn = ""] attribute'
                )
            _check_vector_inner(ty.inner)
        elif isinstance(ty, MiscType):
            if construct_with is None:
                raise PacketDefinitionError(
                    "non-primitive field types must specify #[construct_with]"
                )
            primitives = _primitives(construct_with)
        elif construct_with is not None:
            primitives = _primitives(construct_with)

        fields.append(
            Field(
                name=spec.name,
                ty=ty,
                is_payload=spec.payload,
                length=length,
                construct_with=primitives,
                struct_length_factor=struct_factor,
            )
        )

    if not has_payload:
        raise PacketDefinitionError("#[packet]'s must contain a payload")

    for index, fld in enumerate(fields):
        if fld.is_payload and fld.length is None and index != len(fields) - 1:
            raise PacketDefinitionError(
                "#[payload] must specify a #[length_fn], unless it is the "
                "last field of a packet"
            )

    return PacketSpec(base_name=name, fields=tuple(fields), constants=constants)