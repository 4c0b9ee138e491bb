"""Command-line interface for machcopy."""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.panel import Panel

from machcopy import __version__
from machcopy.errors import MachOError, SelectionError
from machcopy.extract import extract as extract_sections
from machcopy.loader.macho import MachOBinary, OpaqueCommand, command_name
from machcopy.loader.segments import S_CSTRING_LITERALS, S_REGULAR, S_ZEROFILL

console = Console()
err_console = Console(stderr=True)

SECTION_TYPES = {
    S_REGULAR: "regular",
    S_ZEROFILL: "zerofill",
    S_CSTRING_LITERALS: "cstring",
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )


def _fail(error: MachOError) -> None:
    err_console.print(f"[red]error:[/red] {escape(str(error))}", highlight=False)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Log each load command and write")
def main(verbose: bool) -> None:
    """machcopy - copy Mach-O sections into a flat binary image."""
    _setup_logging(verbose)


@main.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.argument("output", type=click.Path(dir_okay=False, writable=True))
@click.option(
    "-s", "--segment", "segments", multiple=True, metavar="NAME",
    help="Copy every section of this segment (repeatable)",
)
@click.option(
    "-j", "--section", "sections", multiple=True, metavar="NAME",
    help="Copy this section (repeatable)",
)
def extract(binary: str, output: str, segments: tuple[str, ...], sections: tuple[str, ...]) -> None:
    """Copy selected segments and sections of BINARY into OUTPUT."""
    if not segments and not sections:
        _fail(SelectionError("pass at least one --segment or --section"))

    try:
        with MachOBinary.load(binary) as macho, open(output, "wb") as out:
            result = extract_sections(macho, out, segments, sections)
    except MachOError as e:
        _fail(e)

    if result.origin is None:
        console.print("[yellow]No sections with file contents matched[/yellow]")
        return

    console.print(
        f"Wrote {len(result.writes)} section(s), {result.bytes_written:#x} bytes "
        f"from origin [green]{result.origin:#x}[/green] to {output}"
    )


@main.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
def info(binary: str) -> None:
    """Display the header, segments and sections of BINARY."""
    try:
        macho = MachOBinary.load(binary)
    except MachOError as e:
        _fail(e)

    with macho:
        h = macho.header

        console.print(Panel.fit(f"[bold]{macho.path.name}[/bold]", title="Binary Info"))

        table = Table(show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value")

        table.add_row("Format", f"{64 if h.is_64bit else 32}-bit")
        table.add_row("Byte order", "little" if h.is_little_endian else "big")
        table.add_row("CPU type", f"{h.cputype:#x}")
        table.add_row("CPU subtype", f"{h.cpusubtype:#x}")
        table.add_row("File type", f"{h.filetype:#x}")
        table.add_row("Load commands", f"{h.ncmds} ({h.sizeofcmds:#x} bytes)")
        table.add_row("File size", f"{macho.file_size:#x}")

        console.print(table)

        others = sorted(
            {command_name(c.cmd) for c in macho.commands if isinstance(c, OpaqueCommand)}
        )
        if others:
            console.print(f"Other commands: {', '.join(others)}")

        console.print("\n[bold]Sections:[/bold]")
        sect_table = Table()
        sect_table.add_column("Segment")
        sect_table.add_column("Section")
        sect_table.add_column("Address", style="green")
        sect_table.add_column("Size")
        sect_table.add_column("Offset")
        sect_table.add_column("Type")

        for seg in macho.segments:
            sect_table.add_row(
                f"[bold]{seg.name}[/bold]",
                "",
                f"{seg.vmaddr:#x}",
                f"{seg.vmsize:#x}",
                f"{seg.fileoff:#x}",
                "",
            )
            for sect in seg.sections:
                sect_table.add_row(
                    "",
                    sect.name,
                    f"{sect.address:#x}",
                    f"{sect.size:#x}",
                    f"{sect.offset:#x}",
                    SECTION_TYPES.get(sect.section_type, f"{sect.section_type:#x}"),
                )

        console.print(sect_table)


if __name__ == "__main__":
    main()
