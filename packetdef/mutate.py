"""Bit-level write operations for fields packed into a byte buffer."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from packetdef.bits import GetOperation

__all__ = [
    "SetOperation",
    "radix16",
    "mask_high_bits",
    "to_mutator",
    "to_little_endian",
]


def radix16(val: int) -> str:
    """Lower-case hexadecimal digits of ``val`` with no prefix; empty for zero."""
    if val < 0:
        raise ValueError(f"value must not be negative, got {val}")
    return format(val, "x") if val > 0 else ""


@dataclass(frozen=True)
class SetOperation:
    """How to store the bits of a value that belong to one byte of a field.

    ``save_mask`` keeps bits of the old byte, ``value_mask`` selects bits of
    the value, which is then shifted left by ``shiftl`` and right by ``shiftr``.
    """

    save_mask: int
    value_mask: int
    shiftl: int
    shiftr: int

    def _shift_text(self) -> str:
        if self.value_mask != 0xFF:
            mask_str = f"({{val}} & 0x{radix16(self.value_mask)})"
        else:
            mask_str = "{val}"
        shift = self.shiftr - self.shiftl
        if shift == 0:
            return mask_str
        if shift < 0:
            return f"{mask_str} << {-shift}"
        return f"{mask_str} >> {shift}"

    def __str__(self) -> str:
        shift_str = self._shift_text()
        if self.save_mask != 0x00:
            save_str = f"({{packet}} & 0x{radix16(self.save_mask)})"
            return f"{{packet}} = ({save_str} | ({shift_str}) as u8) as u8"
        return f"{{packet}} = ({shift_str}) as u8"

    def apply(self, byte: int, value: int) -> int:
        """Return ``byte`` updated with this operation's share of ``value``."""
        masked = value & self.value_mask
        shift = self.shiftr - self.shiftl
        moved = masked << -shift if shift < 0 else masked >> shift
        return ((byte & self.save_mask) | moved) & 0xFF


def mask_high_bits(bits: int) -> int:
    """Return a mask of the ``bits`` lowest bits, e.g. ``mask_high_bits(2) == 0b11``."""
    if bits < 0:
        raise ValueError(f"bit count must not be negative, got {bits}")
    return (1 << bits) - 1


def to_mutator(ops: Sequence[GetOperation]) -> list[SetOperation]:
    """Turn the operations that read a field into those that write it."""
    return [
        SetOperation(
            save_mask=~op.mask & 0xFF,
            value_mask=mask_high_bits(bin(op.mask).count("1")) << op.shiftl,
            shiftl=op.shiftr,
            shiftr=op.shiftl,
        )
        for op in ops
    ]


def to_little_endian(ops: Sequence[GetOperation]) -> list[GetOperation]:
    """Turn big endian read operations into little endian ones."""
    return [replace(op, shiftl=be_op.shiftl) for op, be_op in zip(ops, reversed(ops))]