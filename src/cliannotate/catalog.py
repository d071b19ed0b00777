"""Command catalog - one documentation entry per command of a CLI.

Entries are keyed ``<cli name>/<primary path joined by '/'>`` so a content
collection can address them. render_command_page produces the markdown body
of an entry: title, summary, a usage block (itself annotatable), details
and the visible options.

Philosophy:
- Simple string formatting (no template engine)
- Hidden options never reach the page
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from cliannotate.models import CommandSpec
from cliannotate.oracle import Oracle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandEntry:
    """Documentation entry for one command.

    Attributes:
        id: Collection identifier (e.g. "git/remote/add")
        binary_name: CLI name as typed on command lines
        spec: Command specification
    """

    id: str
    binary_name: str
    spec: CommandSpec

    @property
    def label(self) -> str:
        return " ".join([self.binary_name, *self.spec.primary_path])


def entry_id(binary_name: str, spec: CommandSpec) -> str:
    return "/".join([binary_name, *spec.primary_path])


async def command_entries(binary_name: str, oracle: Oracle) -> list[CommandEntry]:
    """List one entry per command reported by the oracle, in oracle order.

    Raises:
        OracleUnavailableError: If the oracle cannot be queried
        MalformedOracleResponseError: If the command list is malformed
    """
    specs = await oracle.list_commands()
    entries = [
        CommandEntry(id=entry_id(binary_name, spec), binary_name=binary_name, spec=spec)
        for spec in specs
    ]
    logger.debug(f"Catalog for {binary_name}: {len(entries)} entries")
    return entries


def render_command_page(entry: CommandEntry) -> str:
    """Render the markdown page of a command entry."""
    spec = entry.spec
    sections = [f"## {entry.label}\n"]

    if spec.description:
        sections.append(f"{spec.description}\n")

    sections.append(f"```bash\n{entry.label}\n```\n")

    if spec.details:
        sections.append(f"{spec.details}\n")

    if spec.examples:
        lines = ["### Examples\n"]
        for example in spec.examples:
            if example.description:
                lines.append(f"{example.description}\n")
            lines.append(f"```bash\n{example.command}\n```\n")
        sections.append("\n".join(lines))

    options = [option for option in spec.options if not option.is_hidden]
    if options:
        lines = ["### Options\n"]
        for option in options:
            lines.append(f"#### {option.primary_name}")
            if option.description:
                lines.append(option.description)
            lines.append("")
        sections.append("\n".join(lines))

    return "\n".join(sections).rstrip("\n") + "\n"


def write_catalog(entries: list[CommandEntry], output_dir: Path) -> list[Path]:
    """Write one ``<id>.md`` page per entry below output_dir.

    Returns:
        Paths written
    """
    written = []
    for entry in entries:
        destination = output_dir / f"{entry.id}.md"
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(render_command_page(entry), encoding="utf-8")
        written.append(destination)
    return written


__all__ = [
    "CommandEntry",
    "command_entries",
    "entry_id",
    "render_command_page",
    "write_catalog",
]
