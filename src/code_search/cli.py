"""Command line interface for Code Search."""

import asyncio
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import Config, ConfigManager
from .exceptions import ConfigurationError
from .find_service import FindFilesService
from .models import FindFilesQuery, FindFilesResult, SearchQuery, SearchResult
from .process import collect_stdout
from .search_service import ContentSearchService

logger = logging.getLogger(__name__)

console = Console()


def run_async(coro):
    """Run a coroutine whether or not an event loop is already running.

    With a running loop (some test harnesses) the coroutine runs on a fresh
    loop in a worker thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    result = None
    exception = None

    def run_in_new_loop():
        nonlocal result, exception
        try:
            result = asyncio.run(coro)
        except Exception as e:
            exception = e

    thread = threading.Thread(target=run_in_new_loop)
    thread.start()
    thread.join()

    if exception:
        raise exception
    return result


def _explicit(**options: Any) -> Dict[str, Any]:
    """Keep only options the user actually supplied.

    Unset options stay out of the query so workflow presets can fill them.
    """
    cleaned = {}
    for name, value in options.items():
        if value is None or value is False or value == ():
            continue
        cleaned[name] = list(value) if isinstance(value, tuple) else value
    return cleaned


def _print_json(result) -> None:
    click.echo(json.dumps(result.to_dict(), indent=2))


def _print_messages(warnings, hints) -> None:
    for warning in warnings:
        console.print(f"[yellow]⚠ {escape(warning)}[/yellow]")
    for hint in hints:
        console.print(f"[dim]{escape(hint)}[/dim]")


def _display_search_result(result: SearchResult) -> None:
    if result.status == "error":
        console.print(
            f"[red]❌ {escape(result.error or '')}[/red] [dim]({result.error_code})[/dim]"
        )
        if result.stderr:
            console.print(f"[dim]{escape(result.stderr.strip())}[/dim]")
        _print_messages(result.warnings, result.hints)
        return

    if result.status == "empty":
        console.print(f"[yellow]No matches found[/yellow] [dim]({result.search_engine})[/dim]")
        _print_messages(result.warnings, result.hints)
        return

    partial = ", partial" if result.partial else ""
    console.print(
        f"[bold cyan]{result.total_matches} matches in {result.total_files} files[/bold cyan] "
        f"[dim]({result.search_engine}, {result.elapsed_ms:.0f} ms{partial})[/dim]\n"
    )
    for file_matches in result.files:
        suffix = f" [dim]{file_matches.modified}[/dim]" if file_matches.modified else ""
        console.print(
            f"[green]{escape(file_matches.path)}[/green] "
            f"[yellow]({file_matches.match_count} matches)[/yellow]{suffix}"
        )
        for match in file_matches.matches:
            location = match.location
            console.print(f"  [cyan]{location.line}:{location.column}[/cyan]", end=" ")
            console.print(match.value, markup=False, highlight=False)
        if file_matches.pagination and file_matches.pagination.has_more:
            console.print(
                f"  [dim]… {file_matches.match_count - len(file_matches.matches)} more[/dim]"
            )
    console.print()
    _print_messages(result.warnings, result.hints)


def _display_find_result(result: FindFilesResult) -> None:
    if result.status == "error":
        console.print(
            f"[red]❌ {escape(result.error or '')}[/red] [dim]({result.error_code})[/dim]"
        )
        if result.stderr:
            console.print(f"[dim]{escape(result.stderr.strip())}[/dim]")
        return

    if result.status == "empty":
        console.print("[yellow]No files found[/yellow]")
        _print_messages(result.warnings, result.hints)
        return

    table = Table(title=f"{result.total_files} paths under {result.path}")
    table.add_column("Path", style="green")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Mode")
    table.add_column("Modified", style="dim")
    for found in result.files:
        table.add_row(
            escape(found.path),
            found.type,
            "" if found.size is None else str(found.size),
            found.permissions or "",
            found.modified or "",
        )
    console.print(table)
    _print_messages(result.warnings, result.hints)


@click.group()
@click.option("--config", "-c", type=click.Path(exists=False), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="code-search")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """Fast, bounded local code search on top of ripgrep, grep and find.

    \b
    EXAMPLES:
      code-search search "def main" src --type py
      code-search search TODO . --files-only
      code-search find . --name "*.py" --modified-within 7d
      code-search doctor
    """
    ctx.ensure_object(dict)

    # Configure logging at WARNING level for clean CLI output
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    try:
        ctx.obj["config"] = ConfigManager(Path(config) if config else None).load()
    except ConfigurationError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)


def _config(ctx) -> Config:
    return ctx.obj.get("config") or Config()


@cli.command()
@click.argument("pattern")
@click.argument("path", default=".", type=click.Path())
@click.option("--mode", type=click.Choice(["discovery", "paginated", "detailed"]))
@click.option("--fixed-string", "-F", is_flag=True, help="Treat pattern as a literal string")
@click.option("--perl-regex", "-P", is_flag=True, help="Use PCRE2 syntax")
@click.option("--case-sensitive", "-s", is_flag=True)
@click.option("--ignore-case", "-i", "case_insensitive", is_flag=True)
@click.option("--word", "-w", "whole_word", is_flag=True, help="Match whole words only")
@click.option("--invert", "invert_match", is_flag=True, help="Show non-matching lines")
@click.option("--line-regexp", "-x", is_flag=True, help="Match whole lines only")
@click.option("--type", "-t", "file_type", help="File type, e.g. py")
@click.option("--include", "-g", multiple=True, help="Include glob (repeatable)")
@click.option("--exclude", multiple=True, help="Exclude glob (repeatable)")
@click.option("--exclude-dir", multiple=True, help="Excluded directory (repeatable)")
@click.option("--no-ignore", is_flag=True, help="Do not honour .gitignore")
@click.option("--hidden", is_flag=True, help="Search hidden files")
@click.option("--follow", "-L", "follow_symlinks", is_flag=True, help="Follow symlinks")
@click.option("--files-only", "-l", is_flag=True, help="Only list matching files")
@click.option("--context", "-C", "context_lines", type=int, help="Context lines around matches")
@click.option("--before", "-B", "before_context", type=int)
@click.option("--after", "-A", "after_context", type=int)
@click.option("--max-files", type=int, help="Cap on the number of result files")
@click.option("--max-matches-per-file", type=int)
@click.option("--page", "file_page_number", type=int, help="File page to show")
@click.option("--files-per-page", type=int)
@click.option("--matches-per-page", type=int)
@click.option("--content-length", "match_content_length", type=int)
@click.option("--multiline", "-U", is_flag=True)
@click.option("--sort", type=click.Choice(["path", "modified", "accessed", "created"]))
@click.option("--show-modified", "show_file_last_modified", is_flag=True)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def search(ctx, pattern: str, path: str, file_type: Optional[str], as_json: bool, **options):
    """Search file contents for PATTERN under PATH."""
    try:
        query = SearchQuery(
            pattern=pattern, path=path, **_explicit(type=file_type, **options)
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid search options:[/red]\n{escape(str(e))}")
        sys.exit(1)

    result = run_async(ContentSearchService(_config(ctx)).search(query))

    if as_json:
        _print_json(result)
    else:
        _display_search_result(result)

    if result.status == "error":
        sys.exit(1)


@cli.command()
@click.argument("path", default=".", type=click.Path())
@click.option("--name", "names", multiple=True, help="Name glob (repeatable, OR-ed)")
@click.option("--iname", help="Case-insensitive name glob")
@click.option("--path-pattern", help="Glob matched against the whole path")
@click.option("--regex", help="Regex matched against the whole path")
@click.option("--type", "file_type", type=click.Choice(["f", "d", "l"]))
@click.option("--max-depth", type=int)
@click.option("--min-depth", type=int)
@click.option("--exclude-dir", multiple=True, help="Directory to prune (repeatable)")
@click.option("--empty", is_flag=True, help="Only empty files and directories")
@click.option("--size-greater", help="e.g. 10k, 1M")
@click.option("--size-less", help="e.g. 10k, 1M")
@click.option("--modified-within", help="e.g. 2h, 7d, 1w, 3m")
@click.option("--modified-before", help="e.g. 2h, 7d, 1w, 3m")
@click.option("--executable", is_flag=True)
@click.option("--limit", type=int)
@click.option("--sort-by", type=click.Choice(["modified", "size", "name", "path"]))
@click.option("--page", "file_page_number", type=int)
@click.option("--files-per-page", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def find(ctx, path: str, file_type: Optional[str], exclude_dir, as_json: bool, **options):
    """Find files under PATH by name, size, time and permissions."""
    try:
        query = FindFilesQuery(
            path=path,
            **_explicit(type=file_type, exclude_dir=exclude_dir or None, **options),
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid find options:[/red]\n{escape(str(e))}")
        sys.exit(1)

    result = run_async(FindFilesService(_config(ctx)).find(query))

    if as_json:
        _print_json(result)
    else:
        _display_find_result(result)

    if result.status == "error":
        sys.exit(1)


@cli.command()
@click.pass_context
def doctor(ctx):
    """Show which search backends are installed."""
    limits = _config(ctx).limits

    async def probe_all():
        return {
            command: await collect_stdout(
                command,
                ["--version"],
                timeout=limits.probe_timeout_seconds,
                max_output_bytes=limits.max_single_value_output_bytes,
            )
            for command in ("rg", "grep", "find")
        }

    versions = run_async(probe_all())

    table = Table(title="Search backends")
    table.add_column("Backend", style="cyan")
    table.add_column("Status")
    table.add_column("Version", style="dim")
    for command, output in versions.items():
        if output:
            table.add_row(command, "[green]✅ available[/green]", output.splitlines()[0])
        else:
            table.add_row(command, "[red]❌ missing[/red]", "")
    console.print(table)

    if not versions["rg"]:
        console.print("[yellow]⚠ ripgrep not found; searches will use the grep fallback[/yellow]")


def main():
    """Entry point for the code-search console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
