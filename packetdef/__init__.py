"""Packet layouts defined from field specifications, with bit-level field access."""

__version__ = "0.1.0"