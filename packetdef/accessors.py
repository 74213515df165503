"""Reading and writing field values of a packet.

A packet object given to these functions provides ``buffer`` (its bytes),
``layout`` (a PacketLayout) and ``resolve_type(name)``, returning the class
for a type name. A class used with ``construct_with`` is called with the
field's primitive values; its instances provide ``to_primitive_values()``.
A class for a vector of packets provides ``iter_packets(buf)``, is built
over a buffer with ``cls(buffer)``, and its instances provide
``from_packet()`` and ``packet_size()``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterable, Optional, Sequence, Union

from packetdef.access import read_value, write_value
from packetdef.layout import FieldLayout
from packetdef.spec import Field
from packetdef.types import MiscType, PrimitiveType, VectorType

__all__ = ["read_field", "read_field_raw", "write_field"]

FieldRef = Union[Field, str]


def _field_layout(packet: Any, field: FieldRef) -> FieldLayout:
    name = field if isinstance(field, str) else field.name
    for fl in packet.layout.fields:
        if fl.field.name == name:
            return fl
    raise KeyError(f"packet has no field named {name!r}")


def _attr(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record[name]
    return getattr(record, name)


def _region(buf: Any, offset: int, length: int) -> memoryview:
    if offset > len(buf):
        raise IndexError(
            f"field at offset {offset} starts past the end of a "
            f"buffer of {len(buf)} bytes"
        )
    return memoryview(buf)[offset : min(offset + length, len(buf))]


def _arg_offsets(fl: FieldLayout, field_offset: int, extra: int) -> list[int]:
    base = field_offset - fl.bit_offset // 8 + extra
    return [base + arg.bit_offset // 8 for arg in fl.args]


def _read_args(buf: Any, fl: FieldLayout, field_offset: int, extra: int) -> list[int]:
    return [
        read_value(buf, offset, arg.ops)
        for arg, offset in zip(fl.args, _arg_offsets(fl, field_offset, extra))
    ]


def _primitive_values(value: Any) -> tuple[int, ...]:
    to_values = getattr(value, "to_primitive_values", None)
    if to_values is not None:
        return tuple(to_values())
    if isinstance(value, tuple):
        return value
    raise TypeError(f"cannot turn {value!r} into primitive values")


def _write_args(
    buf: Any, fl: FieldLayout, field_offset: int, extra: int, value: Any
) -> None:
    values = _primitive_values(value)
    if len(values) != len(fl.args):
        raise ValueError(
            f"field {fl.field.name!r} takes {len(fl.args)} primitive values, "
            f"got {len(values)}"
        )
    for arg, offset, val in zip(fl.args, _arg_offsets(fl, field_offset, extra), values):
        write_value(buf, offset, arg.sops, val)


def read_field(packet: Any, field: FieldRef) -> Any:
    """Return the value of ``field`` (a Field or a field name) in ``packet``.

    Primitive fields give an int, vectors of ``u8`` and payloads give bytes,
    other vectors of primitives a list of ints.
    """
    fl = _field_layout(packet, field)
    fld = fl.field
    layout = packet.layout
    buf = packet.buffer

    if fld.is_payload:
        start, end = layout.payload_bounds(packet)
        return bytes(buf[start:end])

    offset = layout.field_offset(packet, fl.index)
    ty = fld.ty
    if isinstance(ty, PrimitiveType):
        return read_value(buf, offset, fl.value.ops)
    if isinstance(ty, MiscType):
        cls = packet.resolve_type(ty.name)
        return cls(*_read_args(buf, fl, offset, 0))

    assert isinstance(ty, VectorType)
    length = fld.length_of(packet)
    if fl.args:
        cls = packet.resolve_type(ty.inner.name)
        return [
            cls(*_read_args(buf, fl, offset, i * fl.element_size))
            for i in range(length // fl.element_size)
        ]

    region = _region(buf, offset, length)
    if fl.element is not None:
        if ty.inner.name == "u8":
            return bytes(region)
        size = fl.element_size
        return [
            read_value(region, start, fl.element.ops)
            for start in range(0, len(region) - size + 1, size)
        ]

    cls = packet.resolve_type(ty.inner.name)
    return [inner.from_packet() for inner in cls.iter_packets(region)]


def read_field_raw(packet: Any, field: FieldRef) -> memoryview:
    """Return the bytes of a variable length field without copying them."""
    fl = _field_layout(packet, field)
    fld = fl.field
    if not isinstance(fld.ty, VectorType):
        raise TypeError(f"field {fld.name!r} is not a variable length field")
    if fld.is_payload:
        start, end = packet.layout.payload_bounds(packet)
        return memoryview(packet.buffer)[start:end]
    offset = packet.layout.field_offset(packet, fl.index)
    return _region(packet.buffer, offset, fld.length_of(packet))


def _write_elements(
    buf: Any, fl: FieldLayout, offset: int, value: Iterable[int], length: Optional[int]
) -> None:
    values = list(value)
    if length is not None and len(values) > length:
        raise ValueError(
            f"{len(values)} values do not fit in field {fl.field.name!r} "
            f"of length {length}"
        )
    if fl.field.ty.inner.name == "u8":
        end = offset + len(values)
        if end > len(buf):
            raise IndexError(
                f"{len(values)} bytes at offset {offset} do not fit in a "
                f"buffer of {len(buf)} bytes"
            )
        buf[offset:end] = bytes(values)
        return
    for position, val in enumerate(values):
        write_value(buf, offset + position * fl.element_size, fl.element.sops, val)


def _populate(inner: Any, record: Any) -> None:
    for fl in inner.layout.fields:
        write_field(inner, fl.field, _attr(record, fl.field.name))


def _write_packets(
    packet: Any, fl: FieldLayout, offset: int, records: Sequence[Any], length: Optional[int]
) -> None:
    cls = packet.resolve_type(fl.field.ty.inner.name)
    view = memoryview(packet.buffer)
    current = offset
    end = None if length is None else offset + length
    for record in records:
        inner = cls(view[current:])
        _populate(inner, record)
        current += inner.packet_size()
        if end is not None and current > end:
            raise ValueError(
                f"packets written to field {fl.field.name!r} overrun its length"
            )


def write_field(packet: Any, field: FieldRef, value: Any) -> None:
    """Store ``value`` as ``field`` (a Field or a field name) of ``packet``.

    Bits beyond a primitive field's width are dropped. Raises ValueError when
    a vector does not fit the field's length and IndexError when the buffer
    is too short.
    """
    fl = _field_layout(packet, field)
    fld = fl.field
    buf = packet.buffer
    offset = packet.layout.field_offset(packet, fl.index)
    ty = fld.ty

    if isinstance(ty, PrimitiveType):
        write_value(buf, offset, fl.value.sops, value)
        return
    if isinstance(ty, MiscType):
        _write_args(buf, fl, offset, 0, value)
        return

    assert isinstance(ty, VectorType)
    if fl.args:
        for position, item in enumerate(value):
            _write_args(buf, fl, offset, position * fl.element_size, item)
        return
    length = fld.length_of(packet)
    if fl.element is not None:
        _write_elements(buf, fl, offset, value, length)
        return
    _write_packets(packet, fl, offset, list(value), length)