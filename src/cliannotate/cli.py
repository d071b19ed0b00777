"""cliannotate command-line interface.

Commands:
    line      Annotate a single command line
    render    Annotate shell snippets in markdown files
    commands  List the commands an oracle knows
    catalog   Write one markdown page per command
    init      Write a default configuration file
    watch     Re-render documents whenever an oracle binary changes
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cliannotate import __version__
from cliannotate.binary_oracle import BinaryOracle
from cliannotate.catalog import command_entries, write_catalog
from cliannotate.config import DEFAULT_CONFIG_FILE, AnnotateConfig, write_default_config
from cliannotate.documents import DocumentAnnotator
from cliannotate.errors import CliAnnotateError
from cliannotate.pipeline import LineAnnotator
from cliannotate.registry import CliBinding, OracleRegistry
from cliannotate.rendering import escape_text
from cliannotate.watcher import BinaryWatcher

logger = logging.getLogger(__name__)
console = Console()


def _load(ctx: click.Context) -> tuple[AnnotateConfig, OracleRegistry]:
    config = AnnotateConfig.load(ctx.obj["config_path"])
    return config, OracleRegistry.from_config(config)


def _binding(registry: OracleRegistry, name: str) -> CliBinding:
    binding = registry.lookup(name)
    if binding is None:
        known = ", ".join(registry) or "none"
        raise CliAnnotateError(f"Unknown CLI '{name}' (configured: {known})")
    return binding


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(error))}", soft_wrap=True)
    sys.exit(1)


def _document_annotator(config: AnnotateConfig, registry: OracleRegistry) -> DocumentAnnotator:
    return DocumentAnnotator(
        LineAnnotator(registry, escape=escape_text),
        languages=config.languages,
        enable_blocks=config.enable_blocks,
        enable_inline=config.enable_inline,
    )


async def _render_files(
    documents: DocumentAnnotator, files: tuple[Path, ...], output_dir: Path | None
) -> int:
    changed = 0
    for source in files:
        destination = output_dir / source.name if output_dir else source
        if await documents.annotate_file(source, destination):
            changed += 1
    return changed


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="cliannotate")
@click.pass_context
def cli(ctx: click.Context, config_path: Path, verbose: bool):
    """Annotate documented command lines using CLI description oracles.

    \b
    Examples:
        # Annotate one line
        cliannotate line "git commit -m msg"

        # Annotate markdown files into site/
        cliannotate render docs/*.md --output-dir site/

        # Show what an oracle knows
        cliannotate commands git
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command(name="line")
@click.argument("text")
@click.option("--segments", is_flag=True, help="Print (text, tags) segments as JSON")
@click.pass_context
def line_command(ctx: click.Context, text: str, segments: bool):
    """Annotate a single command line and print the result.

    \b
    Examples:
        cliannotate line "git commit -m msg"
        cliannotate line "git commit -m msg" --segments
    """
    try:
        _, registry = _load(ctx)
        annotator = LineAnnotator(registry, escape=escape_text)

        if segments:
            result = asyncio.run(annotator.segment_line(text))
            payload = None if result is None else [segment.to_dict() for segment in result]
            click.echo(json.dumps(payload, indent=2))
            return

        result = asyncio.run(annotator.annotate_line(text))
        click.echo(result.output)
        logger.debug(f"Outcome: {result.outcome.value}")

    except CliAnnotateError as e:
        _fail(e)


@cli.command(name="render")
@click.argument(
    "files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Write results here instead of overwriting the inputs",
)
@click.pass_context
def render_command(ctx: click.Context, files: tuple[Path, ...], output_dir: Path | None):
    """Annotate shell snippets in markdown files."""
    try:
        config, registry = _load(ctx)
        documents = _document_annotator(config, registry)
        changed = asyncio.run(_render_files(documents, files, output_dir))
        console.print(f"[green]Annotated {changed} of {len(files)} file(s)[/green]")

    except CliAnnotateError as e:
        _fail(e)


@cli.command(name="commands")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Print command paths as JSON")
@click.pass_context
def commands_command(ctx: click.Context, name: str, as_json: bool):
    """List the commands described by the oracle of CLI NAME."""
    try:
        _, registry = _load(ctx)
        binding = _binding(registry, name)
        specs = asyncio.run(binding.oracle.list_commands())

        if as_json:
            click.echo(json.dumps([list(spec.primary_path) for spec in specs], indent=2))
            return

        table = Table(title=f"{name} commands")
        table.add_column("Command", style="cyan")
        table.add_column("Category")
        table.add_column("Description")

        for spec in specs:
            table.add_row(
                " ".join([name, *spec.primary_path]),
                spec.category or "",
                spec.description or "",
            )

        console.print(table)

    except CliAnnotateError as e:
        _fail(e)


@cli.command(name="catalog")
@click.argument("name")
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def catalog_command(ctx: click.Context, name: str, output_dir: Path):
    """Write one markdown page per command of CLI NAME into OUTPUT_DIR."""
    try:
        _, registry = _load(ctx)
        binding = _binding(registry, name)
        entries = asyncio.run(command_entries(name, binding.oracle))
        written = write_catalog(entries, output_dir)
        console.print(f"[green]Wrote {len(written)} page(s) to {output_dir}[/green]")

    except CliAnnotateError as e:
        _fail(e)


@cli.command(name="init")
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def init_command(ctx: click.Context, path: Path | None, force: bool):
    """Write a default configuration file."""
    try:
        written = write_default_config(path or ctx.obj["config_path"], overwrite=force)
        console.print(f"[green]Created {written}[/green]")

    except CliAnnotateError as e:
        _fail(e)


@cli.command(name="watch")
@click.argument(
    "files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--output-dir",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory receiving the annotated files",
)
@click.option("--interval", type=float, default=1.0, show_default=True, help="Polling interval")
@click.pass_context
def watch_command(ctx: click.Context, files: tuple[Path, ...], output_dir: Path, interval: float):
    """Render FILES, then re-render whenever an oracle binary is rebuilt."""
    try:
        config, registry = _load(ctx)
        documents = _document_annotator(config, registry)

        async def rerender(changed: list[BinaryOracle]) -> None:
            names = ", ".join(oracle.name for oracle in changed)
            logger.info(f"Re-rendering after rebuild of: {names}")
            await _render_files(documents, files, output_dir)

        async def run() -> None:
            oracles = [b.oracle for b in registry.bindings() if isinstance(b.oracle, BinaryOracle)]
            await _render_files(documents, files, output_dir)
            await BinaryWatcher(oracles, on_change=rerender).watch(interval=interval)

        asyncio.run(run())

    except KeyboardInterrupt:
        console.print("\nStopped watching")
    except CliAnnotateError as e:
        _fail(e)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
