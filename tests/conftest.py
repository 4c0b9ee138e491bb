"""Shared fixtures: synthesize Mach-O containers in memory."""

import io
import struct

import pytest

from machcopy.loader.macho import (
    MH_MAGIC,
    MH_EXECUTE,
    MH_MAGIC_64,
    SECTION_FORMAT,
    SEGMENT_FORMAT,
    CPU_TYPE_ARM64,
    SECTION_64_FORMAT,
    SEGMENT_64_FORMAT,
    LoadCommand,
)


def sect(name, addr, size, offset, flags=0, segname=None):
    """Describe a section for MachOBuilder.segment()."""
    return {
        "name": name,
        "addr": addr,
        "size": size,
        "offset": offset,
        "flags": flags,
        "segname": segname,
    }


class MachOBuilder:
    """Assemble a thin Mach-O file byte by byte."""

    def __init__(self, is_64bit=True, endian="<", cputype=CPU_TYPE_ARM64):
        self.is_64bit = is_64bit
        self.endian = endian
        self.cputype = cputype
        self.commands: list[bytes] = []
        self.blobs: list[tuple[int, bytes]] = []

    def command(self, cmd, body=b"", cmdsize=None):
        """Append a raw load command."""
        if cmdsize is None:
            cmdsize = 8 + len(body)
        self.commands.append(struct.pack(self.endian + "II", cmd, cmdsize) + body)
        return self

    def segment(self, name, vmaddr=0, vmsize=0, fileoff=0, filesize=0, sections=(), nsects=None):
        """Append an LC_SEGMENT or LC_SEGMENT_64 command."""
        e = self.endian
        if nsects is None:
            nsects = len(sections)

        if self.is_64bit:
            cmd = LoadCommand.LC_SEGMENT_64
            fmt = SEGMENT_64_FORMAT
        else:
            cmd = LoadCommand.LC_SEGMENT
            fmt = SEGMENT_FORMAT
        body = struct.pack(
            e + fmt, name.encode(), vmaddr, vmsize, fileoff, filesize, 7, 5, nsects, 0
        )

        for s in sections:
            segname = (s["segname"] or name).encode()
            if self.is_64bit:
                body += struct.pack(
                    e + SECTION_64_FORMAT,
                    s["name"].encode(), segname, s["addr"], s["size"], s["offset"],
                    4, 0, 0, s["flags"], 0, 0, 0,
                )
            else:
                body += struct.pack(
                    e + SECTION_FORMAT,
                    s["name"].encode(), segname, s["addr"], s["size"], s["offset"],
                    4, 0, 0, s["flags"], 0, 0,
                )

        return self.command(cmd, body)

    def data(self, offset, blob):
        """Place raw bytes at an absolute file offset."""
        self.blobs.append((offset, blob))
        return self

    def build(self, size=None, ncmds=None) -> bytes:
        e = self.endian
        magic = MH_MAGIC_64 if self.is_64bit else MH_MAGIC
        cmds = b"".join(self.commands)
        if ncmds is None:
            ncmds = len(self.commands)

        fields = [self.cputype, 0, MH_EXECUTE, ncmds, len(cmds), 0]
        if self.is_64bit:
            fields.append(0)
        head = struct.pack(e + "I", magic) + struct.pack(e + "I" * len(fields), *fields)
        raw = bytearray(head + cmds)

        for off, blob in self.blobs:
            if off < len(raw):
                raise ValueError(
                    f"blob at {off:#x} overlaps load commands ending at {len(raw):#x}"
                )

        if size is None:
            end = max([len(raw)] + [off + len(b) for off, b in self.blobs])
            size = end + 16
        if len(raw) < size:
            raw.extend(bytes(size - len(raw)))

        for off, blob in self.blobs:
            raw[off : off + len(blob)] = blob
        return bytes(raw[:size])

    def stream(self, size=None, ncmds=None) -> io.BytesIO:
        return io.BytesIO(self.build(size, ncmds))


@pytest.fixture
def builder():
    """64-bit little-endian builder."""
    return MachOBuilder()


@pytest.fixture
def sample_builder():
    """Two segments with a mix of regular, zero-fill and empty sections."""
    b = MachOBuilder()
    b.segment("__PAGEZERO", vmaddr=0, vmsize=0x1000)
    b.segment(
        "__TEXT",
        vmaddr=0x1000,
        vmsize=0x1000,
        fileoff=0x400,
        filesize=0x100,
        sections=[
            sect("__text", 0x1000, 0x10, 0x400),
            sect("__cstring", 0x1020, 0x8, 0x420, flags=0x2),
        ],
    )
    b.command(LoadCommand.LC_UUID, bytes(16))
    b.segment(
        "__DATA",
        vmaddr=0x2000,
        vmsize=0x1000,
        fileoff=0x500,
        filesize=0x100,
        sections=[
            sect("__data", 0x2000, 0x4, 0x500),
            sect("__bss", 0x2010, 0x20, 0xDEADBEEF, flags=0x1),
            sect("__empty", 0x2040, 0, 0x540),
        ],
    )
    b.data(0x400, bytes(range(0x10)))
    b.data(0x420, b"hello\x00\x00\x00")
    b.data(0x500, b"\xaa\xbb\xcc\xdd")
    b.data(0x610, b"\x00")
    return b
