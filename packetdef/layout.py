"""Where each field of a packet lives: bit positions, byte offsets and sizes."""

from __future__ import annotations

import operator
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from packetdef.bits import Endianness, GetOperation, operations
from packetdef.mutate import SetOperation, to_little_endian, to_mutator
from packetdef.spec import Field, PacketSpec
from packetdef.types import (
    MiscType,
    PacketDefinitionError,
    PrimitiveType,
    VectorType,
)

__all__ = ["FieldLayout", "PacketLayout", "compute_layout"]

_HOST_LITTLE = sys.byteorder == "little"


def _ops(bit_offset: int, size: int) -> tuple[GetOperation, ...]:
    try:
        return tuple(operations(bit_offset, size))
    except ValueError as exc:
        raise PacketDefinitionError(str(exc)) from exc


@dataclass(frozen=True)
class _Slot:
    """One packed integer: its starting bit and its read and write operations."""

    bit_offset: int
    ops: tuple[GetOperation, ...]
    sops: tuple[SetOperation, ...]

    @classmethod
    def for_primitive(cls, bit_offset: int, prim: PrimitiveType) -> "_Slot":
        ops = _ops(bit_offset % 8, prim.size)
        if prim.endianness is Endianness.LITTLE or (
            _HOST_LITTLE and prim.endianness is Endianness.HOST
        ):
            ops = tuple(to_little_endian(ops))
        return cls(bit_offset, ops, tuple(to_mutator(ops)))

    @classmethod
    def for_element(cls, prim: PrimitiveType) -> "_Slot":
        ops = _ops(0, prim.size)
        return cls(0, ops, tuple(to_mutator(ops)))


@dataclass(frozen=True)
class FieldLayout:
    """Position of one field.

    ``bit_offset`` counts the fixed-size bits before the field and
    ``length_deps`` the indices of earlier variable length fields whose
    lengths add to its byte offset. ``value`` is set for primitive fields,
    ``args`` for fields built from primitives (``construct_with``), and
    ``element`` for vectors of primitives. ``element_size`` is the size in
    bytes of one vector element, or 0.
    """

    field: Field
    index: int
    bit_offset: int
    length_deps: tuple[int, ...]
    value: Optional[_Slot] = None
    args: tuple[_Slot, ...] = ()
    element: Optional[_Slot] = None
    element_size: int = 0


def _attr(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record[name]
    return getattr(record, name)


@dataclass(frozen=True)
class PacketLayout:
    """Layout of every field of a packet."""

    spec: PacketSpec
    fields: tuple[FieldLayout, ...]
    fixed_bits: int
    minimum_packet_size: int
    payload_index: int

    def field_offset(self, packet: Any, index: int) -> int:
        """Byte offset of field ``index`` in ``packet``.

        With ``index`` equal to the number of fields, the offset just past
        all fields is returned: the packet's size as read from its buffer.
        """
        if index == len(self.fields):
            bits = self.fixed_bits
            deps = tuple(i for i, f in enumerate(self.spec.fields) if f.length is not None)
        elif 0 <= index < len(self.fields):
            bits = self.fields[index].bit_offset
            deps = self.fields[index].length_deps
        else:
            raise IndexError(f"packet has no field number {index}")
        return bits // 8 + sum(self.spec.fields[i].length_of(packet) for i in deps)

    def payload_bounds(self, packet: Any) -> tuple[int, int]:
        """Return ``(start, end)`` of the payload in ``packet.buffer``.

        The end is clipped to the buffer; an empty range is returned when
        the buffer ends before the payload starts.
        """
        start = self.field_offset(packet, self.payload_index)
        size = len(packet.buffer)
        if size <= start:
            return start, start
        length = self.spec.fields[self.payload_index].length_of(packet)
        end = size if length is None else min(start + length, size)
        return start, max(start, end)

    def struct_size(self, record: Any) -> int:
        """Size in bytes of ``record`` once written as a packet."""
        return self.fixed_bits // 8 + sum(
            len(_attr(record, f.name)) * f.struct_length_factor
            for f in self.spec.fields
            if f.struct_length_factor is not None
        )


def compute_layout(spec: PacketSpec) -> PacketLayout:
    """Lay out the fields of ``spec`` one after another."""
    bit_offset = 0
    deps: list[int] = []
    layouts: list[FieldLayout] = []
    payload_index = 0

    for index, fld in enumerate(spec.fields):
        start = bit_offset
        value: Optional[_Slot] = None
        args: tuple[_Slot, ...] = ()
        element: Optional[_Slot] = None
        element_size = 0
        ty = fld.ty

        if isinstance(ty, PrimitiveType):
            value = _Slot.for_primitive(bit_offset, ty)
            bit_offset += ty.size
        elif isinstance(ty, MiscType) or (
            isinstance(ty, VectorType)
            and isinstance(ty.inner, MiscType)
            and fld.construct_with is not None
        ):
            slots = []
            for prim in fld.construct_with or ():
                slots.append(_Slot.for_primitive(bit_offset, prim))
                bit_offset += prim.size
            args = tuple(slots)
            if isinstance(ty, VectorType):
                element_size = sum(p.size for p in fld.construct_with or ()) // 8
        elif isinstance(ty, VectorType) and isinstance(ty.inner, PrimitiveType):
            element = _Slot.for_element(ty.inner)
            element_size = ty.inner.size // 8

        if fld.is_payload:
            payload_index = index
        layouts.append(
            FieldLayout(
                field=fld,
                index=index,
                bit_offset=start,
                length_deps=tuple(deps),
                value=value,
                args=args,
                element=element,
                element_size=element_size,
            )
        )
        if fld.length is not None:
            deps.append(index)

    return PacketLayout(
        spec=spec,
        fields=tuple(layouts),
        fixed_bits=bit_offset,
        minimum_packet_size=operator.floordiv(bit_offset + 7, 8),
        payload_index=payload_index,
    )