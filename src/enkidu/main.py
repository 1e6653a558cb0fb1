"""
Main entry point for the enkidu CLI.

This module provides the command-line interface for enkidu: link graph
queries and validation over a notes workspace, and export of notes with
their references rewritten as markdown links.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from enkidu.services.links.cache import GraphCache
from enkidu.services.links.index import LinkIndex, build_link_index, load_or_build_link_index
from enkidu.services.links.parser import create_reference_literal
from enkidu.services.sync.link_converter import BROKEN_LINK_STRATEGIES, LinkConversionOptions, LinkConverter
from enkidu.utils.config import EnkiduSettings
from enkidu.utils.errors import EnkiduError
from enkidu.utils.helpers import resolve_settings_or_exit
from enkidu.utils.logging import setup_logging

logger = setup_logging(__name__)


def _settings(ctx: click.Context) -> EnkiduSettings:
    return resolve_settings_or_exit(
        ctx.obj.get('root'),
        verbose=ctx.obj.get('verbose', False),
        structured=True if ctx.obj.get('log_json') else None,
    )


def _index(settings: EnkiduSettings, no_cache: bool) -> LinkIndex:
    return load_or_build_link_index(settings, use_cache=not no_cache)


def _fail(message: str, error: Exception) -> None:
    logger.error(f"{message}: {error}")
    click.echo(f"Error: {error}")
    if isinstance(error, EnkiduError):
        for suggestion in error.suggestions:
            click.echo(f"  {suggestion}")
    sys.exit(1)


@click.group()
@click.option('--root', type=click.Path(file_okay=False, path_type=Path),
              help='Workspace root (defaults to ENKIDU_ROOT_DIR or the nearest directory with .enkidu/)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-json', is_flag=True, help='Emit log records as JSON')
@click.version_option(package_name='enkidu-links', prog_name='enkidu')
@click.pass_context
def cli(ctx: click.Context, root: Optional[Path], verbose: bool, log_json: bool) -> None:
    """enkidu - wiki-link graph tools for a markdown notes workspace."""
    ctx.ensure_object(dict)
    ctx.obj['root'] = root
    ctx.obj['verbose'] = verbose
    ctx.obj['log_json'] = log_json


@cli.group()
def link() -> None:
    """Query and validate the link graph."""


@link.command()
@click.argument('slug')
@click.option('--no-cache', is_flag=True, help='Rebuild the link graph instead of using the cache')
@click.pass_context
def backlinks(ctx: click.Context, slug: str, no_cache: bool) -> None:
    """Show notes that link to SLUG."""
    try:
        settings = _settings(ctx)
        index = _index(settings, no_cache)

        if slug not in index:
            click.echo(f"Note not found: {slug}")
            return

        edges = index.get_backlinks(slug)
        if not edges:
            click.echo(f"No backlinks to {slug}")
            return

        click.echo(f"Backlinks to {slug} ({len(edges)}):")
        for edge in edges:
            line_info = f" (line {edge.reference.line})" if edge.reference.line else ""
            click.echo(f"  {edge.source_id}{line_info}: {edge.reference.raw}")

    except (EnkiduError, OSError) as e:
        _fail("Backlinks error", e)


@link.command()
@click.argument('slug')
@click.option('--no-cache', is_flag=True, help='Rebuild the link graph instead of using the cache')
@click.pass_context
def show(ctx: click.Context, slug: str, no_cache: bool) -> None:
    """Show the outgoing links of SLUG and whether they resolve."""
    try:
        settings = _settings(ctx)
        index = _index(settings, no_cache)

        entry = index.get_entry(slug)
        if entry is None:
            click.echo(f"Note not found: {slug}")
            return

        click.echo(f"{entry.id} ({entry.file_path})")
        if not entry.outgoing:
            click.echo("  No outgoing links")
            return

        broken = {
            (broken_link.reference.start_offset, broken_link.reference.target): broken_link.suggestions
            for broken_link in index.find_broken_links()
            if broken_link.source_id == entry.id
        }
        for reference in entry.outgoing:
            key = (reference.start_offset, reference.target)
            if key not in broken:
                click.echo(f"  ✓ {reference.raw}")
                continue
            hint = f" (did you mean: {', '.join(broken[key])}?)" if broken[key] else ""
            click.echo(f"  ✗ {reference.raw}{hint}")

    except (EnkiduError, OSError) as e:
        _fail("Show error", e)


@link.command()
@click.option('--fix', is_flag=True, help='Print the best replacement for each broken link')
@click.pass_context
def validate(ctx: click.Context, fix: bool) -> None:
    """Rebuild the link graph and report broken links."""
    try:
        settings = _settings(ctx)
        index = build_link_index(settings)
        stats = index.get_statistics()
        broken = index.find_broken_links()

        click.echo(f"Notes: {stats.total_notes}")
        click.echo(f"Links: {stats.total_links} ({stats.valid_links} valid, {stats.broken_links} broken)")

        for broken_link in broken:
            reference = broken_link.reference
            line_info = f":{reference.line}" if reference.line else ""
            click.echo(f"  {broken_link.source_path}{line_info} {reference.raw}")
            if fix and broken_link.suggestions:
                replacement = create_reference_literal(broken_link.suggestions[0], reference.display_text)
                click.echo(f"    -> {replacement}")

    except (EnkiduError, OSError) as e:
        _fail("Validation error", e)

    if broken:
        sys.exit(1)
    click.echo("All links valid")


@link.command()
@click.option('--no-cache', is_flag=True, help='Rebuild the link graph instead of using the cache')
@click.pass_context
def stats(ctx: click.Context, no_cache: bool) -> None:
    """Show link statistics, orphans and the most linked notes."""
    try:
        settings = _settings(ctx)
        index = _index(settings, no_cache)
        statistics = index.get_statistics()

        click.echo(f"Total notes: {statistics.total_notes}")
        click.echo(f"Total links: {statistics.total_links}")
        click.echo(f"Valid links: {statistics.valid_links}")
        click.echo(f"Broken links: {statistics.broken_links}")

        orphans = index.get_orphans()
        click.echo(f"\nOrphans ({len(orphans)}):")
        for note_id in orphans:
            click.echo(f"  {note_id}")

        click.echo("\nMost linked:")
        for item in index.get_most_linked(10):
            click.echo(f"  {item.id}: {item.count}")

    except (EnkiduError, OSError) as e:
        _fail("Stats error", e)


@link.command()
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Write the graph JSON to a file instead of stdout')
@click.option('--no-cache', is_flag=True, help='Rebuild the link graph instead of using the cache')
@click.pass_context
def graph(ctx: click.Context, output: Optional[Path], no_cache: bool) -> None:
    """Export the link graph as JSON nodes and edges."""
    try:
        settings = _settings(ctx)
        index = _index(settings, no_cache)
        payload = json.dumps(index.export_graph().to_json_dict(), indent=2)

        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(payload + "\n", encoding="utf-8")
            click.echo(f"Graph written to {output}")
        else:
            click.echo(payload)

    except (EnkiduError, OSError) as e:
        _fail("Graph export error", e)


@link.command('cache-clear')
@click.pass_context
def cache_clear(ctx: click.Context) -> None:
    """Delete the link graph cache file."""
    try:
        settings = _settings(ctx)
        cache_path = settings.get_link_cache_path()
        if GraphCache().clear(cache_path):
            click.echo(f"Removed {cache_path}")
        else:
            click.echo("No link cache to remove")

    except (EnkiduError, OSError) as e:
        _fail("Cache clear error", e)


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--strategy', type=click.Choice(BROKEN_LINK_STRATEGIES),
              help='How broken links are written (default from settings)')
@click.option('--absolute', is_flag=True, default=None, help='Link below --base-path instead of relative paths')
@click.option('--base-path', type=str, help='Base path for absolute links')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Write the converted note to a file instead of stdout')
@click.pass_context
def export(ctx: click.Context, file: Path, strategy: Optional[str], absolute: Optional[bool],
           base_path: Optional[str], output: Optional[Path]) -> None:
    """Rewrite the references of FILE as markdown links."""
    try:
        settings = _settings(ctx)
        defaults = LinkConversionOptions.from_settings(settings)
        options = LinkConversionOptions(
            broken_link_strategy=strategy or defaults.broken_link_strategy,
            base_path=base_path if base_path is not None else defaults.base_path,
            use_absolute_paths=absolute if absolute is not None else defaults.use_absolute_paths,
        )

        converter = LinkConverter.from_settings(settings)
        content = converter.resolver.reader.read_file(file)
        converted = converter.process_sync_content(content, file, options)

        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(converted, encoding="utf-8")
            click.echo(f"Exported {file} to {output}")
        else:
            click.echo(converted, nl=False)

    except (EnkiduError, OSError) as e:
        _fail("Export error", e)


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def check(ctx: click.Context, file: Path) -> None:
    """Report the broken links of FILE."""
    try:
        settings = _settings(ctx)
        converter = LinkConverter.from_settings(settings)
        report = converter.validate_links(converter.resolver.reader.read_file(file))

    except (EnkiduError, OSError) as e:
        _fail("Check error", e)

    if report.valid:
        click.echo(f"{file}: all links valid")
        return

    click.echo(f"{file}: {len(report.errors)} broken link(s)")
    for error in report.errors:
        click.echo(f"  {error}")
    sys.exit(1)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
