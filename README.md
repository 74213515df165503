# packetdef

Describe the layout of a binary packet once and get readers and writers for
every field, including fields that are not byte-aligned, fields wider than
one byte in big, little or host byte order, variable-length fields and
nested packets.

## Defining a packet

A packet is described by a list of `packetdef.spec.FieldSpec` entries,
checked by `packetdef.spec.make_packet`, and turned into a read-only and a
writable view class by `packetdef.packet.build_packet_classes`:

```python
from dataclasses import dataclass

from packetdef.packet import build_packet_classes
from packetdef.spec import FieldSpec, make_packet


@dataclass
class WithU16:
    length: int
    data: list
    payload: bytes


spec = make_packet(
    "WithU16",
    [
        FieldSpec("length", "u8"),
        FieldSpec("data", "Vec<u16be>", length="length"),
        FieldSpec("payload", "Vec<u8>", payload=True),
    ],
)
WithU16Packet, MutableWithU16Packet = build_packet_classes(spec, WithU16)

buf = bytearray(7)
view = MutableWithU16Packet(buf)
view.set_length(6)
view.set_data([0x0001, 0x1223, 0x3FF4])
assert bytes(buf) == bytes([0x06, 0x00, 0x01, 0x12, 0x23, 0x3F, 0xF4])
assert WithU16Packet(bytes(buf)).get_data() == [0x0001, 0x1223, 0x3FF4]
```

Every packet needs exactly one payload field. A payload that is the last
field takes the rest of the buffer; anywhere else it needs a `length` or
`length_fn`.

Field types:

* `uN`, `uNbe`, `uNle`, `uNhe`: unsigned integers of 1 to 64 bits. Types
  wider than 8 bits must state their byte order.
* `Vec<T>`: variable-length fields. They need `length`, an arithmetic
  expression over other field names, upper-case constants (given to
  `make_packet` as `constants`), integers, `+ - * / %` and parentheses; or
  `length_fn`, a callable taking the packet view and returning a byte count.
  `T` may be a primitive type, another packet's name (a vector of nested
  packets), or a type built with `construct_with`.
* Any other type name must give `construct_with`, a list of primitive type
  names. The class is called with those primitive values when the field is
  read, and its values are written from `to_primitive_values()` (or from a
  plain tuple). Such classes are found in the record type's
  `__packet_types__` mapping, or among packet classes already built.

Mistakes in a definition raise `packetdef.types.PacketDefinitionError`
with a message naming the problem, such as a missing payload, two payloads,
an unstated byte order, an unnamed field or a variable-length field without
a length.

## Reading and writing

The classes returned by `build_packet_classes` wrap a buffer:

* `minimum_packet_size()`: bytes taken by the fixed-size fields;
  constructing a view over a shorter buffer raises
  `packetdef.packet.PacketTooShortError`. The writable view needs a
  writable buffer such as a `bytearray`.
* `get_<field>()` for every field other than the payload (also readable as
  an attribute); `get_<field>_raw()` for variable-length fields, and
  `get_<field>_iter()` for vectors of nested packets.
* On the writable view: `set_<field>(value)`, `get_<field>_raw_mut()` and
  `populate(record)`, which writes every field of a record.
* `payload()`, `packet_size()`, `to_immutable()`, and `from_packet()`,
  which returns a record of the given record type.
* `struct_size(record)`: bytes a record needs once written.
* `iter_packets(buf)`: walks consecutive packets stored in a buffer.

The functions behind these methods are `packetdef.accessors.read_field`,
`read_field_raw` and `write_field`; the field positions come from
`packetdef.layout.compute_layout`.

## Lower-level pieces

* `packetdef.bits.operations(offset, size)`: the per-byte mask and shift
  steps that read a bit field.
* `packetdef.mutate.to_mutator(ops)` and `to_little_endian(ops)`: derive
  the steps that write the field, or read it in little-endian order.
* `packetdef.access.read_value` / `write_value`: apply those steps to a
  buffer.
* `packetdef.length.parse_length_expr`: parse and evaluate length
  expressions.
* `packetdef.types.parse_ty` / `make_type`: parse field type names.

## What it does not do

There is no class decorator or other declarative shorthand: packets are
defined with `FieldSpec` lists and `make_packet` as shown above. The package
has no command-line tool and does not send or capture packets; it only reads
and writes packet bytes in memory.

## Tests

```
pip install -e ".[test]"
pytest
```