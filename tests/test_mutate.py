import pytest

from packetdef.bits import GetOperation, operations
from packetdef.mutate import (
    SetOperation,
    mask_high_bits,
    radix16,
    to_little_endian,
    to_mutator,
)


def G(mask, shiftl, shiftr):
    return GetOperation(mask=mask, shiftl=shiftl, shiftr=shiftr)


def S(save_mask, value_mask, shiftl, shiftr):
    return SetOperation(
        save_mask=save_mask, value_mask=value_mask, shiftl=shiftl, shiftr=shiftr
    )


@pytest.mark.parametrize("value, expected", [(0xAB, "ab"), (0x1C, "1c"), (0, "")])
def test_radix16(value, expected):
    assert radix16(value) == expected


def test_radix16_large_value():
    assert radix16(0x1F0000000) == "1f0000000"


def test_radix16_negative():
    with pytest.raises(ValueError):
        radix16(-1)


@pytest.mark.parametrize(
    "sop, expected",
    [
        (
            S(0b00000011, 0b00001111, 2, 0),
            "{packet} = (({packet} & 0x3) | (({val} & 0xf) << 2) as u8) as u8",
        ),
        (
            S(0b11000000, 0b00001111, 2, 2),
            "{packet} = (({packet} & 0xc0) | (({val} & 0xf)) as u8) as u8",
        ),
        (
            S(0b00011100, 0b00001111, 0, 2),
            "{packet} = (({packet} & 0x1c) | (({val} & 0xf) >> 2) as u8) as u8",
        ),
        (S(0b00000000, 0b11111111, 0, 2), "{packet} = ({val} >> 2) as u8"),
        (
            S(0b00000011, 0b11111111, 3, 1),
            "{packet} = (({packet} & 0x3) | ({val} << 2) as u8) as u8",
        ),
    ],
)
def test_display_set_operation(sop, expected):
    assert str(sop) == expected


@pytest.mark.parametrize(
    "bits, expected", [(0, 0), (1, 0b1), (2, 0b11), (8, 0xFF), (9, 0x1FF)]
)
def test_mask_high_bits(bits, expected):
    assert mask_high_bits(bits) == expected


@pytest.mark.parametrize(
    "ops, expected",
    [
        ([G(0b10000000, 0, 7)], [S(0b01111111, 0b00000001, 7, 0)]),
        ([G(0b11000000, 0, 6)], [S(0b00111111, 0b00000011, 6, 0)]),
        ([G(0b11100000, 0, 5)], [S(0b00011111, 0b00000111, 5, 0)]),
        ([G(0b11110000, 0, 4)], [S(0b00001111, 0b00001111, 4, 0)]),
        ([G(0b11111000, 0, 3)], [S(0b00000111, 0b00011111, 3, 0)]),
        ([G(0b11111100, 0, 2)], [S(0b00000011, 0b00111111, 2, 0)]),
        ([G(0b11111110, 0, 1)], [S(0b00000001, 0b01111111, 1, 0)]),
        ([G(0b11111111, 0, 0)], [S(0b00000000, 0b11111111, 0, 0)]),
        (
            [G(0b11111111, 1, 0), G(0b10000000, 0, 7)],
            [S(0b00000000, 0b111111110, 0, 1), S(0b01111111, 0b00000001, 7, 0)],
        ),
        (
            [G(0b11111111, 2, 0), G(0b11000000, 0, 6)],
            [S(0b00000000, 0b1111111100, 0, 2), S(0b00111111, 0b00000011, 6, 0)],
        ),
        ([G(0b01000000, 0, 6)], [S(0b10111111, 0b00000001, 6, 0)]),
        ([G(0b01100000, 0, 5)], [S(0b10011111, 0b00000011, 5, 0)]),
        ([G(0b01110000, 0, 4)], [S(0b10001111, 0b00000111, 4, 0)]),
        ([G(0b01111000, 0, 3)], [S(0b10000111, 0b00001111, 3, 0)]),
        ([G(0b01111100, 0, 2)], [S(0b10000011, 0b00011111, 2, 0)]),
        ([G(0b01111110, 0, 1)], [S(0b10000001, 0b00111111, 1, 0)]),
        ([G(0b01111111, 0, 0)], [S(0b10000000, 0b01111111, 0, 0)]),
        (
            [G(0b01111111, 1, 0), G(0b10000000, 0, 7)],
            [S(0b10000000, 0b11111110, 0, 1), S(0b01111111, 0b00000001, 7, 0)],
        ),
        (
            [G(0b01111111, 2, 0), G(0b11000000, 0, 6)],
            [S(0b10000000, 0b0111111100, 0, 2), S(0b00111111, 0b00000011, 6, 0)],
        ),
        (
            [
                G(0b00011111, 28, 0),
                G(0b11111111, 20, 0),
                G(0b11111111, 12, 0),
                G(0b11111111, 4, 0),
                G(0b11110000, 0, 4),
            ],
            [
                S(0b11100000, 0x1F0000000, 0, 28),
                S(0b00000000, 0x00FF00000, 0, 20),
                S(0b00000000, 0x0000FF000, 0, 12),
                S(0b00000000, 0x000000FF0, 0, 4),
                S(0b00001111, 0x00000000F, 4, 0),
            ],
        ),
    ],
)
def test_to_mutator(ops, expected):
    assert to_mutator(ops) == expected


def test_to_little_endian_swaps_shifts():
    ops = operations(0, 16)
    assert to_little_endian(ops) == [G(0xFF, 0, 0), G(0xFF, 8, 0)]


def test_to_little_endian_single_byte_unchanged():
    ops = operations(2, 4)
    assert to_little_endian(ops) == ops


def test_to_little_endian_keeps_masks():
    ops = operations(3, 33)
    result = to_little_endian(ops)
    assert [op.mask for op in result] == [op.mask for op in ops]
    assert [op.shiftl for op in result] == [op.shiftl for op in reversed(ops)]


@pytest.mark.parametrize(
    "offset, size, value",
    [(0, 1, 1), (0, 9, 0x155), (1, 9, 0x1AB), (3, 33, 0x1_2345_6789), (6, 6, 0b101101)],
)
def test_write_then_read_round_trip(offset, size, value):
    gops = operations(offset, size)
    sops = to_mutator(gops)
    buf = bytearray(len(gops))
    for i, sop in enumerate(sops):
        buf[i] = sop.apply(buf[i], value)
    read = 0
    for i, op in enumerate(gops):
        read |= op.apply(buf[i])
    assert read == value


def test_apply_preserves_saved_bits():
    sop = S(0b11000000, 0b00001111, 2, 2)
    assert sop.apply(0xFF, 0b0101) == 0b11000101