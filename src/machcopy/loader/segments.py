"""Segment and section models."""

from dataclasses import dataclass, field

from machcopy.errors import OutOfRangeError
from machcopy.loader.reader import BinaryReader


# Section types (low byte of section flags)
SECTION_TYPE = 0x000000FF
S_REGULAR = 0x0
S_ZEROFILL = 0x1
S_CSTRING_LITERALS = 0x2


def read_region(
    reader: BinaryReader, offset: int, size: int, name: str
) -> bytes:
    """Read a file-backed region, rejecting extents that reach the end of file.

    The end check is ``offset + size >= length``, so a region ending on the
    last byte of the file is refused.
    """
    if offset >= reader.length:
        raise OutOfRangeError(
            f"{name}: offset {offset:#x} beyond file size {reader.length:#x}"
        )
    if offset + size >= reader.length:
        raise OutOfRangeError(
            f"{name}: {offset:#x}+{size:#x} reaches file size {reader.length:#x}"
        )
    return reader.read_at(offset, size)


@dataclass
class Section:
    """Represents a Mach-O section within a segment."""

    name: str
    segment_name: str
    address: int
    size: int
    offset: int
    align: int
    reloff: int
    nreloc: int
    flags: int
    reserved1: int = 0
    reserved2: int = 0
    reserved3: int = 0
    _reader: BinaryReader | None = field(default=None, repr=False, compare=False)

    @property
    def end_address(self) -> int:
        return self.address + self.size

    @property
    def section_type(self) -> int:
        return self.flags & SECTION_TYPE

    @property
    def is_zerofill(self) -> bool:
        return self.section_type == S_ZEROFILL

    @property
    def is_zero(self) -> bool:
        """True when the section has no file backing."""
        return self.size == 0 or self.is_zerofill

    def read(self) -> bytes:
        """Return the section contents."""
        if self.is_zero:
            return bytes(self.size)
        if self._reader is None:
            raise ValueError(f"Section {self.name} is not bound to a file")
        return read_region(
            self._reader, self.offset, self.size, f"{self.segment_name},{self.name}"
        )


@dataclass
class Segment:
    """Represents a Mach-O segment (e.g., __TEXT, __DATA)."""

    name: str
    vmaddr: int
    vmsize: int
    fileoff: int
    filesize: int
    maxprot: int
    initprot: int
    nsects: int
    flags: int
    sections: list[Section] = field(default_factory=list)
    _reader: BinaryReader | None = field(default=None, repr=False, compare=False)

    @property
    def end_address(self) -> int:
        return self.vmaddr + self.vmsize

    def get_section(self, name: str) -> Section | None:
        """Get section by name."""
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def read(self) -> bytes:
        """Return the file-backed contents of the segment."""
        if self._reader is None:
            raise ValueError(f"Segment {self.name} is not bound to a file")
        return read_region(self._reader, self.fileoff, self.filesize, self.name)
