"""Error types raised while parsing and extracting."""


class MachOError(ValueError):
    """Base class for every parse or extraction failure."""

    kind = "error"

    def __str__(self) -> str:
        return f"{self.kind}: {super().__str__()}"


class UnsupportedFormatError(MachOError):
    kind = "unsupported format"


class InvalidMagicError(MachOError):
    kind = "invalid magic"


class TruncatedHeaderError(MachOError):
    kind = "truncated header"


class TruncatedLoadCommandError(MachOError):
    kind = "truncated load command"


class TruncatedSegmentHeaderError(MachOError):
    kind = "truncated segment header"


class TruncatedSectionHeaderError(MachOError):
    kind = "truncated section header"


class InvalidLoadCommandSizeError(MachOError):
    kind = "invalid load command size"


class OutOfRangeError(MachOError):
    """A region's file extents reach past the end of the input."""

    kind = "out of range"


class RebaseError(MachOError):
    """A selected section lies below the rebase origin."""

    kind = "rebase failure"


class SelectionError(MachOError):
    kind = "no selection"
