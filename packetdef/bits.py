"""Bit-level read operations for fields packed into a byte buffer."""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = [
    "Endianness",
    "GetOperation",
    "get_mask",
    "get_shiftl",
    "get_shiftr",
    "operations",
]


class Endianness(enum.Enum):
    """Byte order of a multi-byte field."""

    BIG = "big"
    LITTLE = "little"
    HOST = "host"


def _hex(value: int) -> str:
    """Lower-case hexadecimal digits of ``value`` with no prefix; empty for zero."""
    return format(value, "x") if value > 0 else ""


@dataclass(frozen=True)
class GetOperation:
    """How to extract the bits held by one byte of a field.

    The byte is masked with ``mask``, then shifted left by ``shiftl`` and
    right by ``shiftr``.
    """

    mask: int
    shiftl: int
    shiftr: int

    def __str__(self) -> str:
        mask_str = f"({{}} & 0x{_hex(self.mask)})" if self.mask != 0xFF else "{}"
        shift = self.shiftr - self.shiftl
        if shift == 0:
            return mask_str
        if shift < 0:
            return f"{mask_str} << {-shift}"
        return f"{mask_str} >> {shift}"

    def apply(self, byte: int) -> int:
        """Return this byte's contribution to the field value."""
        return ((byte & self.mask) << self.shiftl) >> self.shiftr


def _bits_in_byte(offset: int, bits_remaining: int) -> int:
    if bits_remaining >= 8:
        return 8 - offset
    return min(8 - offset, bits_remaining)


def get_mask(offset: int, bits_remaining: int) -> tuple[int, int]:
    """Return ``(bits consumed, mask)`` for reading from ``offset`` bits into a byte.

    At most the bits up to the end of the byte are covered.
    """
    if not 0 <= offset <= 7:
        raise ValueError(f"bit offset must be in the range 0..7, got {offset}")
    count = _bits_in_byte(offset, bits_remaining)
    mask = 0
    for n in range(count, 0, -1):
        mask |= 0x80 >> (offset + n - 1)
    return count, mask


def get_shiftl(offset: int, size: int, byte_number: int, num_bytes: int) -> int:
    """Left shift for byte ``byte_number`` of a ``size``-bit field spanning ``num_bytes``."""
    if num_bytes == 1 or byte_number + 1 == num_bytes:
        return 0
    base_shift = 8 - ((num_bytes * 8) - offset - size)
    bytes_to_shift = num_bytes - byte_number - 2
    return (base_shift + 8 * bytes_to_shift) & 0xFF


def get_shiftr(offset: int, size: int, byte_number: int, num_bytes: int) -> int:
    """Right shift for byte ``byte_number``; only the last byte is shifted right."""
    if byte_number + 1 == num_bytes:
        return ((num_bytes * 8) - offset - size) & 0xFF
    return 0


def operations(offset: int, size: int) -> list[GetOperation]:
    """Return the per-byte operations needed to read ``size`` bits at bit ``offset``.

    Operations are big endian. ``offset`` must be in 0..7 and ``size`` in 1..64.
    """
    if offset > 7 or offset < 0:
        raise ValueError(f"bit offset must be in the range 0..7, got {offset}")
    if size <= 0 or size > 64:
        raise ValueError(f"field size must be in the range 1..64 bits, got {size}")

    num_bytes = (offset + size - 1) // 8 + 1
    current_offset = offset
    remaining = size
    ops = []
    for byte_number in range(num_bytes):
        consumed, mask = get_mask(current_offset, remaining)
        ops.append(
            GetOperation(
                mask=mask,
                shiftl=get_shiftl(offset, size, byte_number, num_bytes),
                shiftr=get_shiftr(offset, size, byte_number, num_bytes),
            )
        )
        current_offset = 0
        if remaining >= consumed:
            remaining -= consumed
    return ops