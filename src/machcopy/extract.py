"""Copy selected sections into a flat image rebased on the first one."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import BinaryIO

from machcopy.errors import RebaseError, SelectionError
from machcopy.loader.macho import MachOBinary
from machcopy.loader.segments import Section

log = logging.getLogger(__name__)


@dataclass
class ExtractionPlan:
    """Ordered write instructions for one extraction."""

    origin: int | None = None
    writes: list[tuple[int, Section]] = field(default_factory=list)


@dataclass
class ExtractionResult:
    """What an extraction wrote to its output."""

    origin: int | None
    writes: list[tuple[int, Section]]
    bytes_written: int = 0

    @property
    def image_size(self) -> int:
        """Size of the output image, i.e. the end of the furthest write."""
        return max((off + sect.size for off, sect in self.writes), default=0)


def is_selected(
    section: Section, segments: frozenset[str], sections: frozenset[str]
) -> bool:
    """Match by section name, or by the segment name stored in the section."""
    return section.name in sections or section.segment_name in segments


def plan_extraction(
    binary: MachOBinary,
    segments: Iterable[str] = (),
    sections: Iterable[str] = (),
) -> ExtractionPlan:
    """Compute output offsets for every selected section with file contents.

    Sections are visited in load command order, then header order. The
    first selected non-zero section fixes the origin; every later one is
    placed at ``address - origin``. Nothing is sorted or deduplicated.
    """
    segments = frozenset(segments)
    sections = frozenset(sections)
    plan = ExtractionPlan()

    for section in binary.sections():
        if not is_selected(section, segments, sections):
            continue
        if section.is_zero:
            log.debug("Skipping zero-fill %s,%s", section.segment_name, section.name)
            continue

        if plan.origin is None:
            plan.origin = section.address
            log.info("Rebase origin %#x (%s,%s)", plan.origin, section.segment_name, section.name)

        offset = section.address - plan.origin
        if offset < 0:
            raise RebaseError(
                f"{section.segment_name},{section.name} at {section.address:#x} "
                f"would land at negative output offset {offset:#x} "
                f"below rebase origin {plan.origin:#x}"
            )
        plan.writes.append((offset, section))

    return plan


def extract(
    binary: MachOBinary,
    out: BinaryIO,
    segments: Iterable[str] = (),
    sections: Iterable[str] = (),
) -> ExtractionResult:
    """Write the selected sections of ``binary`` to ``out``.

    Each section is written with a seek followed by a write, so gaps
    between sections are left for the output file to zero-fill. A failure
    part way through leaves earlier writes in place.
    """
    segments = frozenset(segments)
    sections = frozenset(sections)
    if not segments and not sections:
        raise SelectionError("at least one segment or section name is required")

    plan = plan_extraction(binary, segments, sections)
    result = ExtractionResult(origin=plan.origin, writes=plan.writes)

    for offset, section in plan.writes:
        data = section.read()
        log.debug(
            "Writing %s,%s (%#x bytes) at %#x",
            section.segment_name,
            section.name,
            len(data),
            offset,
        )
        out.seek(offset)
        out.write(data)
        result.bytes_written += len(data)

    if not plan.writes:
        log.warning("No sections with file contents matched the selection")
    else:
        log.info(
            "Wrote %d sections, %#x bytes, image size %#x",
            len(plan.writes),
            result.bytes_written,
            result.image_size,
        )
    return result
