"""machcopy - copy Mach-O segments and sections into a flat binary image."""

from machcopy.errors import MachOError
from machcopy.extract import ExtractionResult, extract, plan_extraction
from machcopy.loader import MachOBinary, Section, Segment

__version__ = "0.1.0"
__all__ = [
    "ExtractionResult",
    "MachOBinary",
    "MachOError",
    "Section",
    "Segment",
    "extract",
    "plan_extraction",
]
