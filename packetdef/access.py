"""Reading and writing packed integer fields in byte buffers."""

from __future__ import annotations

import operator
from typing import Sequence, Union

from packetdef.bits import GetOperation
from packetdef.mutate import SetOperation

__all__ = ["read_value", "write_value"]

Buffer = Union[bytes, bytearray, memoryview]


def _check_span(buf: Buffer, start: int, count: int) -> None:
    if start < 0:
        raise IndexError(f"field start must not be negative, got {start}")
    if start + count > len(buf):
        raise IndexError(
            f"field of {count} bytes at offset {start} does not fit "
            f"in a buffer of {len(buf)} bytes"
        )


def read_value(buf: Buffer, start: int, ops: Sequence[GetOperation]) -> int:
    """Read the integer described by ``ops`` from ``buf`` beginning at byte ``start``.

    Each operation handles one byte; their contributions are combined with OR.
    Raises IndexError when the field does not fit in the buffer.
    """
    _check_span(buf, start, len(ops))
    value = 0
    for op, byte in zip(ops, buf[start : start + len(ops)]):
        value |= op.apply(byte)
    return value


def write_value(
    buf: Union[bytearray, memoryview],
    start: int,
    sops: Sequence[SetOperation],
    value: int,
) -> None:
    """Store ``value`` into ``buf`` at byte ``start`` using the write operations ``sops``.

    Bits of the touched bytes that do not belong to the field are kept.
    Bits of ``value`` beyond the field's width are dropped. Raises IndexError
    when the field does not fit and ValueError for a negative value.
    """
    value = operator.index(value)
    if value < 0:
        raise ValueError(f"field values are unsigned, got {value}")
    _check_span(buf, start, len(sops))
    for index, sop in enumerate(sops, start):
        buf[index] = sop.apply(buf[index], value)