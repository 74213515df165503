"""Packet views over byte buffers, built from a packet specification."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Iterator, Optional

from packetdef.accessors import read_field, read_field_raw, write_field
from packetdef.layout import PacketLayout, compute_layout
from packetdef.spec import Field, PacketSpec
from packetdef.types import MiscType, VectorType

__all__ = [
    "PacketTooShortError",
    "Packet",
    "MutablePacket",
    "PacketIterable",
    "build_packet_classes",
]

_REGISTRY: dict[str, type["Packet"]] = {}


class PacketTooShortError(ValueError):
    """Raised when a buffer is shorter than the minimum size of a packet."""


def _attr(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record[name]
    return getattr(record, name)


class Packet:
    """A read-only view of a packet stored in a byte buffer."""

    spec: ClassVar[Optional[PacketSpec]] = None
    layout: ClassVar[Optional[PacketLayout]] = None
    record_type: ClassVar[Optional[type]] = None
    immutable_class: ClassVar[Optional[type["Packet"]]] = None
    _types: ClassVar[Mapping[str, Any]] = {}

    def __init__(self, buffer: Any) -> None:
        cls = type(self)
        minimum = cls.minimum_packet_size()
        if len(buffer) < minimum:
            raise PacketTooShortError(
                f"{cls.__name__} needs at least {minimum} bytes, got {len(buffer)}"
            )
        self.buffer = buffer

    @classmethod
    def _layout(cls) -> PacketLayout:
        if cls.layout is None:
            raise TypeError(f"{cls.__name__} has no packet layout")
        return cls.layout

    @classmethod
    def minimum_packet_size(cls) -> int:
        """Size in bytes of the fixed-size fields."""
        return cls._layout().minimum_packet_size

    @classmethod
    def struct_size(cls, record: Any) -> int:
        """Size in bytes of ``record`` once written as a packet."""
        return cls._layout().struct_size(record)

    @classmethod
    def iter_packets(cls, buf: Any) -> "PacketIterable":
        """Iterate over consecutive packets of this type stored in ``buf``."""
        return PacketIterable(cls, buf)

    def resolve_type(self, name: str) -> Any:
        """Return the class used for the type called ``name``."""
        if name in self._types:
            return self._types[name]
        try:
            return _REGISTRY[name]
        except KeyError:
            raise LookupError(f"unknown type {name!r}") from None

    def packet_size(self) -> int:
        """Size in bytes of this packet as read from its buffer."""
        layout = self._layout()
        return layout.field_offset(self, len(layout.fields))

    def payload(self) -> memoryview:
        """The payload bytes, without copying them."""
        start, end = self._layout().payload_bounds(self)
        return memoryview(self.buffer)[start:end]

    def to_immutable(self) -> "Packet":
        """A read-only view over the same buffer."""
        immutable = type(self).immutable_class
        if immutable is None:
            raise TypeError(f"{type(self).__name__} has no read-only counterpart")
        return immutable(self.buffer)

    def from_packet(self) -> Any:
        """Copy every field into a new record."""
        cls = type(self)
        if cls.spec is None or cls.record_type is None:
            raise TypeError(f"{cls.__name__} has no record type")
        return cls.record_type(**{f.name: read_field(self, f) for f in cls.spec.fields})

    def __getattr__(self, name: str) -> Any:
        layout = type(self).layout
        if layout is not None and not name.startswith("_"):
            for fld in layout.spec.fields:
                if fld.name == name and not fld.is_payload:
                    return read_field(self, fld)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return bytes(self.buffer) == bytes(other.buffer)  # type: ignore[attr-defined]

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        spec = type(self).spec
        fields = "" if spec is None else "".join(
            f"{f.name} : {read_field(self, f)!r}, " for f in spec.fields if not f.is_payload
        )
        return f"{type(self).__name__} {{ {fields} }}"


class MutablePacket(Packet):
    """A writable view of a packet stored in a byte buffer."""

    def __init__(self, buffer: Any) -> None:
        if memoryview(buffer).readonly:
            raise TypeError("a mutable packet needs a writable buffer")
        super().__init__(buffer)

    def populate(self, record: Any) -> None:
        """Write every field of ``record`` into the buffer, in field order."""
        for fld in self._layout().spec.fields:
            write_field(self, fld, _attr(record, fld.name))


@dataclass(frozen=True)
class PacketIterable:
    """Consecutive packets of ``packet_class`` stored in ``buffer``."""

    packet_class: type[Packet]
    buffer: Any

    def __iter__(self) -> Iterator[Packet]:
        buf = memoryview(self.buffer)
        while len(buf) > 0:
            try:
                packet = self.packet_class(buf)
            except PacketTooShortError:
                return
            yield packet
            step = min(packet.packet_size(), len(buf))
            if step == 0:
                return
            buf = buf[step:]


def _getter(fld: Field) -> Callable[[Packet], Any]:
    def get(self: Packet) -> Any:
        return read_field(self, fld)

    get.__name__ = f"get_{fld.name}"
    get.__doc__ = f"Get the value of the {fld.name} field."
    return get


def _raw_getter(fld: Field, suffix: str) -> Callable[[Packet], memoryview]:
    def get_raw(self: Packet) -> memoryview:
        return read_field_raw(self, fld)

    get_raw.__name__ = f"get_{fld.name}_{suffix}"
    get_raw.__doc__ = f"Get the bytes of the {fld.name} field, without copying."
    return get_raw


def _iter_getter(fld: Field) -> Callable[[Packet], PacketIterable]:
    def get_iter(self: Packet) -> PacketIterable:
        inner = self.resolve_type(fld.ty.inner.name)  # type: ignore[union-attr]
        return inner.iter_packets(read_field_raw(self, fld))

    get_iter.__name__ = f"get_{fld.name}_iter"
    get_iter.__doc__ = f"Iterate over the packets of the {fld.name} field."
    return get_iter


def _setter(fld: Field) -> Callable[[MutablePacket, Any], None]:
    def set_(self: MutablePacket, value: Any) -> None:
        write_field(self, fld, value)

    set_.__name__ = f"set_{fld.name}"
    set_.__doc__ = f"Set the value of the {fld.name} field."
    return set_


def build_packet_classes(
    spec: PacketSpec, record_type: type
) -> tuple[type[Packet], type[MutablePacket]]:
    """Create the read-only and writable packet classes for ``spec``.

    Records of ``record_type`` are built by ``from_packet``. Types named by
    fields are looked up in ``record_type.__packet_types__`` when present,
    then among the packet classes built so far.
    """
    common = {
        "spec": spec,
        "layout": compute_layout(spec),
        "record_type": record_type,
        "_types": dict(getattr(record_type, "__packet_types__", {})),
        "__module__": getattr(record_type, "__module__", __name__),
    }
    readers: dict[str, Any] = {}
    writers: dict[str, Any] = {}
    for fld in spec.fields:
        if not fld.is_payload:
            readers[f"get_{fld.name}"] = _getter(fld)
            if isinstance(fld.ty, VectorType):
                readers[f"get_{fld.name}_raw"] = _raw_getter(fld, "raw")
                writers[f"get_{fld.name}_raw_mut"] = _raw_getter(fld, "raw_mut")
                if isinstance(fld.ty.inner, MiscType) and fld.construct_with is None:
                    readers[f"get_{fld.name}_iter"] = _iter_getter(fld)
        writers[f"set_{fld.name}"] = _setter(fld)

    immutable = type(
        spec.packet_name(),
        (Packet,),
        {**common, **readers, "__doc__": f"Read-only view of a {spec.base_name} packet."},
    )
    immutable.immutable_class = immutable
    mutable = type(
        spec.mutable_packet_name(),
        (MutablePacket,),
        {
            **common,
            **readers,
            **writers,
            "immutable_class": immutable,
            "__doc__": f"Writable view of a {spec.base_name} packet.",
        },
    )
    _REGISTRY[spec.base_name] = immutable
    return immutable, mutable  # type: ignore[return-value]