"""Field type descriptions and parsing of field type names."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional, Union

from packetdef.bits import Endianness

__all__ = [
    "PacketDefinitionError",
    "EndiannessSpecified",
    "PrimitiveType",
    "VectorType",
    "MiscType",
    "FieldType",
    "parse_ty",
    "make_type",
]


class PacketDefinitionError(ValueError):
    """Raised when a packet definition is invalid."""


class EndiannessSpecified(enum.Enum):
    """Whether a primitive type name carried an explicit byte order suffix."""

    NO = "no"
    YES = "yes"


@dataclass(frozen=True)
class PrimitiveType:
    """An unsigned integer of ``size`` bits, such as ``u4`` or ``u16be``."""

    name: str
    size: int
    endianness: Endianness


@dataclass(frozen=True)
class VectorType:
    """A variable length sequence of ``inner`` elements (``Vec<T>``)."""

    inner: "FieldType"


@dataclass(frozen=True)
class MiscType:
    """Any other named type, built from primitive values."""

    name: str


FieldType = Union[PrimitiveType, VectorType, MiscType]

_PRIMITIVE_RE = re.compile(r"u([0-9]+)(be|le|he)?")

_SUFFIXES = {
    "be": Endianness.BIG,
    "le": Endianness.LITTLE,
    "he": Endianness.HOST,
}


def parse_ty(ty: str) -> Optional[tuple[int, Endianness, EndiannessSpecified]]:
    """Parse a name of the form ``u<bits>[be|le|he]``.

    Returns ``(size, endianness, specified)``, or ``None`` when the name is
    not a primitive type. Without a suffix the byte order is big endian.
    """
    match = _PRIMITIVE_RE.fullmatch(ty)
    if match is None:
        return None
    size = int(match.group(1))
    suffix = match.group(2)
    if suffix is None:
        return size, Endianness.BIG, EndiannessSpecified.NO
    return size, _SUFFIXES[suffix], EndiannessSpecified.YES


def make_type(ty_str: str, endianness_important: bool) -> FieldType:
    """Build a field type from its name.

    Raises PacketDefinitionError for multi-byte primitives without a byte
    order (when ``endianness_important``) and for reference types.
    """
    parsed = parse_ty(ty_str)
    if parsed is not None:
        size, endianness, specified = parsed
        if (
            not endianness_important
            or size <= 8
            or specified is EndiannessSpecified.YES
        ):
            return PrimitiveType(ty_str, size, endianness)
        raise PacketDefinitionError(
            "endianness must be specified for types of size >= 8"
        )
    if ty_str.startswith("Vec<"):
        return VectorType(make_type(ty_str[4:-1], endianness_important))
    if ty_str.startswith("&"):
        raise PacketDefinitionError(f"invalid type: {ty_str}")
    return MiscType(ty_str)