"""Bounds-checked cursor over a seekable binary stream."""

import io
import struct
from typing import BinaryIO

from machcopy.errors import MachOError, OutOfRangeError


class BinaryReader:
    """Sequential reader that validates every read against the stream length.

    The byte order starts out as little-endian and is switched once the
    header magic has been classified; every later ``read_struct`` call
    uses it.
    """

    def __init__(self, stream: BinaryIO, endian: str = "<") -> None:
        self._stream = stream
        self.endian = endian

        pos = stream.tell()
        stream.seek(0, io.SEEK_END)
        self.length = stream.tell()
        stream.seek(pos)

    def tell(self) -> int:
        return self._stream.tell()

    def seek(self, pos: int) -> None:
        self._stream.seek(pos)

    def skip(self, count: int) -> None:
        self._stream.seek(count, io.SEEK_CUR)

    def remaining(self) -> int:
        return self.length - self.tell()

    def ensure(self, size: int, error: type[MachOError], what: str) -> None:
        """Raise ``error`` unless ``size`` bytes remain at the cursor."""
        pos = self.tell()
        if pos + size > self.length:
            raise error(
                f"{what} needs {size:#x} bytes at {pos:#x}, "
                f"file is {self.length:#x} bytes"
            )

    def read_bytes(self, size: int, error: type[MachOError], what: str) -> bytes:
        self.ensure(size, error, what)
        data = self._stream.read(size)
        if len(data) != size:
            raise error(f"short read of {what} at {self.tell():#x}")
        return data

    def calcsize(self, fmt: str) -> int:
        return struct.calcsize(self.endian + fmt)

    def read_struct(
        self, fmt: str, error: type[MachOError], what: str
    ) -> tuple:
        """Decode ``fmt`` at the cursor in the current byte order."""
        data = self.read_bytes(self.calcsize(fmt), error, what)
        return struct.unpack(self.endian + fmt, data)

    def read_at(self, offset: int, size: int) -> bytes:
        """Read ``size`` bytes at ``offset`` without moving the cursor."""
        pos = self._stream.tell()
        try:
            self._stream.seek(offset)
            data = self._stream.read(size)
        finally:
            self._stream.seek(pos)

        if len(data) != size:
            raise OutOfRangeError(
                f"read of {size:#x} bytes at {offset:#x} returned {len(data):#x}"
            )
        return data
