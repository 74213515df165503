from dataclasses import dataclass

import pytest

from packetdef.packet import (
    MutablePacket,
    Packet,
    PacketTooShortError,
    build_packet_classes,
)
from packetdef.spec import FieldSpec, make_packet


@dataclass
class VecRecord:
    v: list
    payload: bytes


@dataclass
class WeirdRecord:
    banana: int
    apple: int
    potato: int
    the_rest: int
    payload: bytes


@dataclass
class KeyRecord:
    banana: int
    payload: bytes


@dataclass
class OptRecord:
    pineapple: int
    length: int
    payload: bytes


def _vec_classes():
    spec = make_packet(
        "Test",
        [
            FieldSpec("v", "Vec<u32be>", length="4"),
            FieldSpec("payload", "Vec<u8>", payload=True, length="0"),
        ],
    )
    return build_packet_classes(spec, VecRecord)


def _weird_classes():
    spec = make_packet(
        "Test",
        [
            FieldSpec("banana", "u2"),
            FieldSpec("apple", "u4"),
            FieldSpec("potato", "u6"),
            FieldSpec("the_rest", "u20be"),
            FieldSpec("payload", "Vec<u8>", payload=True),
        ],
    )
    return build_packet_classes(spec, WeirdRecord)


def _key_classes():
    spec = make_packet(
        "Key",
        [
            FieldSpec("banana", "u8"),
            FieldSpec("payload", "Vec<u8>", payload=True, length="banana"),
        ],
    )
    return build_packet_classes(spec, KeyRecord)


def _opt_classes():
    spec = make_packet(
        "Opt",
        [
            FieldSpec("pineapple", "u8"),
            FieldSpec("length", "u8"),
            FieldSpec("payload", "Vec<u8>", payload=True, length="length - 2"),
        ],
    )
    return build_packet_classes(spec, OptRecord)


def test_vec_primitive():
    packet_cls, _ = _vec_classes()
    res = packet_cls(bytes([0x00, 0x00, 0x00, 0x00]))
    assert res.get_v() == [0]


def test_class_names():
    packet_cls, mutable_cls = _weird_classes()
    assert packet_cls.__name__ == "TestPacket"
    assert mutable_cls.__name__ == "MutableTestPacket"
    assert issubclass(mutable_cls, MutablePacket)
    assert issubclass(packet_cls, Packet)


def test_weird_field_pos():
    packet_cls, mutable_cls = _weird_classes()
    record = WeirdRecord(
        banana=0b10,
        apple=0b1010,
        potato=0b101010,
        the_rest=0b10101010101010101010,
        payload=b"",
    )
    buf = bytearray(packet_cls.struct_size(record))
    packet = mutable_cls(buf)
    packet.populate(record)
    assert packet.get_banana() == record.banana
    assert packet.get_apple() == record.apple
    assert packet.get_potato() == record.potato
    assert packet.get_the_rest() == record.the_rest
    assert bytes(buf) == b"\xaa\xaa\xaa\xaa"


def test_minimum_packet_size():
    packet_cls, _ = _weird_classes()
    assert packet_cls.minimum_packet_size() == 4


def test_too_short_buffer():
    packet_cls, _ = _key_classes()
    with pytest.raises(PacketTooShortError):
        packet_cls(b"")


def test_mutable_needs_writable_buffer():
    _, mutable_cls = _key_classes()
    with pytest.raises(TypeError):
        mutable_cls(b"\x01\x02")


def test_payload_and_size():
    packet_cls, _ = _key_classes()
    packet = packet_cls(bytes([3, 1, 2, 3, 4, 5]))
    assert bytes(packet.payload()) == b"\x01\x02\x03"
    assert packet.packet_size() == 4
    assert packet.banana == 3


def test_payload_is_writable_view_for_mutable():
    _, mutable_cls = _key_classes()
    buf = bytearray([2, 0, 0])
    packet = mutable_cls(buf)
    packet.payload()[0] = 9
    assert bytes(buf) == b"\x02\x09\x00"


def test_from_packet():
    packet_cls, _ = _key_classes()
    record = packet_cls(bytes([2, 7, 8, 9])).from_packet()
    assert record == KeyRecord(banana=2, payload=b"\x07\x08")


def test_populate_and_to_immutable():
    packet_cls, mutable_cls = _key_classes()
    record = KeyRecord(banana=4, payload=b"\x01\x02\x03\x04")
    assert packet_cls.struct_size(record) == 5
    buf = bytearray(5)
    packet = mutable_cls(buf)
    packet.populate(record)
    assert bytes(buf) == bytes([4, 1, 2, 3, 4])
    immutable = packet.to_immutable()
    assert type(immutable) is packet_cls
    assert immutable.from_packet() == record


def test_equality():
    packet_cls, _ = _key_classes()
    assert packet_cls(b"\x01\x05") == packet_cls(b"\x01\x05")
    assert not packet_cls(b"\x01\x05") == packet_cls(b"\x01\x06")


def test_repr():
    packet_cls, _ = _key_classes()
    assert repr(packet_cls(b"\x05\x01")) == "KeyPacket { banana : 5,  }"


def test_iter_packets():
    packet_cls, _ = _opt_classes()
    records = [p.from_packet() for p in packet_cls.iter_packets(bytes([6, 3, 1, 7, 2]))]
    assert records == [
        OptRecord(pineapple=6, length=3, payload=b"\x01"),
        OptRecord(pineapple=7, length=2, payload=b""),
    ]


def test_iter_packets_stops_on_short_tail():
    packet_cls, _ = _opt_classes()
    packets = list(packet_cls.iter_packets(bytes([6, 3, 1, 9])))
    assert len(packets) == 1
    assert packets[0].get_pineapple() == 6


def test_iter_packets_empty():
    packet_cls, _ = _opt_classes()
    assert list(packet_cls.iter_packets(b"")) == []


def test_unknown_attribute():
    packet_cls, _ = _key_classes()
    with pytest.raises(AttributeError):
        packet_cls(b"\x00").tomato