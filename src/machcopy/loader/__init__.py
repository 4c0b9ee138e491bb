"""Binary loader module for parsing Mach-O containers."""

from machcopy.loader.macho import (
    Command,
    LoadCommand,
    MachOBinary,
    MachOHeader,
    OpaqueCommand,
    SegmentCommand,
)
from machcopy.loader.reader import BinaryReader
from machcopy.loader.segments import Section, Segment

__all__ = [
    "BinaryReader",
    "Command",
    "LoadCommand",
    "MachOBinary",
    "MachOHeader",
    "OpaqueCommand",
    "Section",
    "Segment",
    "SegmentCommand",
]
