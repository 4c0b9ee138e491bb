"""Mach-O container parser for 32 and 64-bit, little and big-endian files."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import BinaryIO

from machcopy.errors import (
    InvalidLoadCommandSizeError,
    InvalidMagicError,
    TruncatedHeaderError,
    TruncatedLoadCommandError,
    TruncatedSectionHeaderError,
    TruncatedSegmentHeaderError,
    UnsupportedFormatError,
)
from machcopy.loader.reader import BinaryReader
from machcopy.loader.segments import Section, Segment

log = logging.getLogger(__name__)


# Mach-O magic numbers, as decoded from the first four bytes in little-endian
MH_MAGIC = 0xFEEDFACE
MH_CIGAM = 0xCEFAEDFE  # Byte-swapped
MH_MAGIC_64 = 0xFEEDFACF
MH_CIGAM_64 = 0xCFFAEDFE  # Byte-swapped

# Fat (Universal) binary magic numbers
FAT_MAGIC = 0xCAFEBABE
FAT_CIGAM = 0xBEBAFECA
FAT_MAGIC_64 = 0xCAFEBABF
FAT_CIGAM_64 = 0xBFBAFECA

# magic -> (is_64bit, struct byte order)
MAGICS = {
    MH_MAGIC: (False, "<"),
    MH_CIGAM: (False, ">"),
    MH_MAGIC_64: (True, "<"),
    MH_CIGAM_64: (True, ">"),
}

# CPU types
CPU_TYPE_ARM64 = 0x0100000C

# File types
MH_EXECUTE = 0x2

LOAD_COMMAND_HEADER = "II"
LOAD_COMMAND_HEADER_SIZE = 8

SEGMENT_FORMAT = "16sIIIIIIII"
SEGMENT_64_FORMAT = "16sQQQQIIII"
SECTION_FORMAT = "16s16sIIIIIIIII"
SECTION_64_FORMAT = "16s16sQQIIIIIIII"


class LoadCommand(IntEnum):
    """Mach-O load command types."""

    LC_SEGMENT = 0x01
    LC_SYMTAB = 0x02
    LC_THREAD = 0x04
    LC_UNIXTHREAD = 0x05
    LC_DYSYMTAB = 0x0B
    LC_LOAD_DYLIB = 0x0C
    LC_ID_DYLIB = 0x0D
    LC_LOAD_DYLINKER = 0x0E
    LC_SEGMENT_64 = 0x19
    LC_UUID = 0x1B
    LC_CODE_SIGNATURE = 0x1D
    LC_DYLD_INFO = 0x22
    LC_FUNCTION_STARTS = 0x26
    LC_DATA_IN_CODE = 0x29
    LC_SOURCE_VERSION = 0x2A
    LC_BUILD_VERSION = 0x32
    LC_LOAD_WEAK_DYLIB = 0x80000018
    LC_DYLD_INFO_ONLY = 0x80000022
    LC_MAIN = 0x80000028


def command_name(cmd: int) -> str:
    try:
        return LoadCommand(cmd).name
    except ValueError:
        return f"{cmd:#x}"


def _cstr(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


@dataclass
class MachOHeader:
    """Mach-O header; ``reserved`` is only present in 64-bit files."""

    magic: int
    cputype: int
    cpusubtype: int
    filetype: int
    ncmds: int
    sizeofcmds: int
    flags: int
    reserved: int = 0

    @classmethod
    def parse(cls, reader: BinaryReader) -> "MachOHeader":
        """Classify the magic, fix the reader's byte order, read the header."""
        raw = reader.read_bytes(4, TruncatedHeaderError, "magic")
        magic = int.from_bytes(raw, "little")

        if magic in (FAT_MAGIC, FAT_CIGAM, FAT_MAGIC_64, FAT_CIGAM_64):
            raise UnsupportedFormatError(
                "multi-architecture containers unsupported"
            )
        if magic not in MAGICS:
            raise InvalidMagicError(f"unrecognized magic 0x{raw.hex()}")

        is_64bit, endian = MAGICS[magic]
        reader.endian = endian

        fmt = "IIIIIII" if is_64bit else "IIIIII"
        fields = reader.read_struct(fmt, TruncatedHeaderError, "mach header")
        header = cls(magic, *fields)

        log.debug(
            "magic %#x: %d-bit %s-endian, %d load commands",
            magic,
            64 if is_64bit else 32,
            "little" if endian == "<" else "big",
            header.ncmds,
        )
        return header

    @property
    def is_64bit(self) -> bool:
        return MAGICS[self.magic][0]

    @property
    def endian(self) -> str:
        """``struct`` byte order prefix for this file."""
        return MAGICS[self.magic][1]

    @property
    def is_little_endian(self) -> bool:
        return self.endian == "<"

    @property
    def size(self) -> int:
        return 32 if self.is_64bit else 28


@dataclass
class SegmentCommand:
    """LC_SEGMENT or LC_SEGMENT_64 with its parsed segment."""

    cmd: int
    cmdsize: int
    segment: Segment


@dataclass
class OpaqueCommand:
    """Any other load command; only its extent is recorded."""

    cmd: int
    cmdsize: int
    offset: int

    @property
    def name(self) -> str:
        return command_name(self.cmd)


Command = SegmentCommand | OpaqueCommand


@dataclass
class MachOBinary:
    """Parsed Mach-O container.

    The binary keeps a reference to the stream it was parsed from, since
    segment and section contents are read lazily. Use it as a context
    manager when it was opened with :meth:`load`.
    """

    path: Path
    header: MachOHeader
    commands: list[Command] = field(default_factory=list)
    _reader: BinaryReader | None = field(default=None, repr=False)
    _stream: BinaryIO | None = field(default=None, repr=False)

    @classmethod
    def load(cls, path: str | Path) -> "MachOBinary":
        """Open and parse a Mach-O binary from disk."""
        path = Path(path)
        stream = open(path, "rb")
        try:
            binary = cls.parse(stream, path)
        except BaseException:
            stream.close()
            raise

        binary._stream = stream
        return binary

    @classmethod
    def parse(cls, stream: BinaryIO, path: Path | None = None) -> "MachOBinary":
        """Parse a Mach-O binary from a seekable stream positioned at its start."""
        reader = BinaryReader(stream)
        header = MachOHeader.parse(reader)

        binary = cls(
            path=path or Path("<memory>"),
            header=header,
            _reader=reader,
        )
        binary._parse_load_commands(reader)
        return binary

    def _parse_load_commands(self, reader: BinaryReader) -> None:
        """Parse all load commands."""
        for index in range(self.header.ncmds):
            start = reader.tell()
            cmd, cmdsize = reader.read_struct(
                LOAD_COMMAND_HEADER,
                TruncatedLoadCommandError,
                f"load command {index}",
            )

            if start + cmdsize > reader.length:
                raise TruncatedLoadCommandError(
                    f"load command {index} at {start:#x} declares {cmdsize:#x} "
                    f"bytes, file is {reader.length:#x} bytes"
                )
            if cmdsize < LOAD_COMMAND_HEADER_SIZE:
                raise InvalidLoadCommandSizeError(
                    f"load command {index} at {start:#x} declares size {cmdsize:#x}"
                )

            body_size = cmdsize - LOAD_COMMAND_HEADER_SIZE
            log.debug("Found %s @ %#x (%#x bytes)", command_name(cmd), start, cmdsize)

            if cmd == LoadCommand.LC_SEGMENT:
                segment = self._parse_segment(reader, body_size, is_64bit=False)
                self.commands.append(SegmentCommand(cmd, cmdsize, segment))
            elif cmd == LoadCommand.LC_SEGMENT_64:
                segment = self._parse_segment(reader, body_size, is_64bit=True)
                self.commands.append(SegmentCommand(cmd, cmdsize, segment))
            else:
                self.commands.append(
                    OpaqueCommand(cmd, cmdsize, start + LOAD_COMMAND_HEADER_SIZE)
                )

            reader.seek(start + cmdsize)

    def _parse_segment(
        self, reader: BinaryReader, budget: int, is_64bit: bool
    ) -> Segment:
        """Parse a segment command body and its section headers."""
        fmt = SEGMENT_64_FORMAT if is_64bit else SEGMENT_FORMAT
        size = reader.calcsize(fmt)
        if budget < size:
            raise TruncatedSegmentHeaderError(
                f"segment command at {reader.tell():#x} has {budget:#x} bytes, "
                f"header needs {size:#x}"
            )

        (
            segname,
            vmaddr,
            vmsize,
            fileoff,
            filesize,
            maxprot,
            initprot,
            nsects,
            flags,
        ) = reader.read_struct(fmt, TruncatedSegmentHeaderError, "segment header")
        budget -= size

        segment = Segment(
            name=_cstr(segname),
            vmaddr=vmaddr,
            vmsize=vmsize,
            fileoff=fileoff,
            filesize=filesize,
            maxprot=maxprot,
            initprot=initprot,
            nsects=nsects,
            flags=flags,
            _reader=reader,
        )

        sect_size = reader.calcsize(SECTION_64_FORMAT if is_64bit else SECTION_FORMAT)
        for _ in range(nsects):
            section = self._parse_section(reader, budget, is_64bit)
            segment.sections.append(section)
            budget -= sect_size

        return segment

    def _parse_section(
        self, reader: BinaryReader, budget: int, is_64bit: bool
    ) -> Section:
        """Parse a section or section_64 structure."""
        fmt = SECTION_64_FORMAT if is_64bit else SECTION_FORMAT
        header_size = reader.calcsize(fmt)
        if budget < header_size:
            raise TruncatedSectionHeaderError(
                f"section header at {reader.tell():#x} has {max(budget, 0):#x} "
                f"bytes left in its command, needs {header_size:#x}"
            )

        fields = reader.read_struct(fmt, TruncatedSectionHeaderError, "section header")
        sectname, segname, addr, size, offset, align, reloff, nreloc, flags = fields[:9]
        reserved = fields[9:]

        return Section(
            _cstr(sectname),
            _cstr(segname),
            addr,
            size,
            offset,
            align,
            reloff,
            nreloc,
            flags,
            *reserved,
            _reader=reader,
        )

    # Public API methods

    @property
    def segments(self) -> list[Segment]:
        """Segments in load command order."""
        return [c.segment for c in self.commands if isinstance(c, SegmentCommand)]

    def sections(self) -> Iterator[Section]:
        """Every section of every segment, in file order."""
        for segment in self.segments:
            yield from segment.sections

    def get_segment(self, name: str) -> Segment | None:
        """Get segment by name."""
        for seg in self.segments:
            if seg.name == name:
                return seg
        return None

    def get_section(self, segment: str, section: str) -> Section | None:
        """Get section by segment and section name."""
        seg = self.get_segment(segment)
        if seg:
            return seg.get_section(section)
        return None

    @property
    def file_size(self) -> int:
        return self._reader.length if self._reader else 0

    def close(self) -> None:
        """Close the underlying file if this binary opened it."""
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self) -> "MachOBinary":
        return self

    def __exit__(self, *args) -> None:
        self.close()
