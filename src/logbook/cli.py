"""CLI for logbook."""

from datetime import datetime
from typing import Annotated

import typer
from rich.console import Console

from logbook import __version__
from logbook.config import configure_logging
from logbook.models import DOCUMENT_TYPES, ListSessionsOptions, SearchOptions

app = typer.Typer(
    name="logbook",
    help="Search conversation history from Claude Code and Codex.",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"logbook {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log index building to stderr")
    ] = False,
) -> None:
    """Search AI coding agent conversation history."""
    configure_logging(verbose)


def parse_name_list(value: str | None, valid: tuple[str, ...]) -> list[str] | None:
    """Parse a comma-separated filter; unknown names are ignored, none left means all."""
    if not value or value == "all":
        return None
    names = [part.strip() for part in value.split(",")]
    names = [name for name in names if name in valid]
    return names or None


def parse_date_option(value: str | None, option: str) -> datetime | None:
    from logbook.timeutil import parse_since

    try:
        return parse_since(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date format: {value}", param_hint=option) from None


def run_search(
    query: str,
    source: str | None,
    document_type: str | list[str] | None,
    since: str | None,
    until: str | None,
    project: str | None,
    fuzzy: bool,
    min_messages: int | None,
    limit: int,
    max_snippets: int,
    json_output: bool,
) -> None:
    if not query.strip():
        console.print("[red]Error: Query required[/red]")
        raise typer.Exit(1)

    from logbook.engine import SearchEngine
    from logbook.searcher import perform_search
    from logbook.sources import SOURCE_NAMES, discover_sources

    options = SearchOptions(
        query=query,
        source=parse_name_list(source, SOURCE_NAMES) or "all",
        date_from=parse_date_option(since, "--since"),
        date_to=parse_date_option(until, "--until"),
        project=project,
        document_type=document_type,
        fuzzy=fuzzy,
        limit=limit,
        max_snippets=max_snippets,
        min_message_count=min_messages,
    )
    engine = SearchEngine(discover_sources())
    perform_search(engine, options, json_output=json_output)


SourceOption = Annotated[
    str,
    typer.Option(
        "--source", "-s", help="'all', a source name (claude, codex, gemini) or a comma-separated list"
    ),
]
SinceOption = Annotated[
    str | None, typer.Option("--since", help="Start time (e.g., 1w, 30d, 2024-01-01)")
]
UntilOption = Annotated[
    str | None, typer.Option("--until", help="End time (e.g., 1d, 2024-06-30)")
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search query (fuzzy by default)")],
    source: SourceOption = "all",
    types: Annotated[
        str | None,
        typer.Option(
            "--type", "-t", help="Document types: conversation, memory, plan, knowledge"
        ),
    ] = None,
    since: SinceOption = None,
    until: UntilOption = None,
    project: Annotated[
        str | None, typer.Option("--project", "-p", help="Filter by project (path substring)")
    ] = None,
    fuzzy: Annotated[bool, typer.Option("--fuzzy/--no-fuzzy", help="Typo-tolerant matching")] = True,
    min_messages: Annotated[
        int | None,
        typer.Option("--min-messages", min=1, help="Skip conversations with fewer messages"),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, max=100, help="Number of results")] = 20,
    max_snippets: Annotated[
        int, typer.Option("--max-snippets", min=1, max=5, help="Snippets per result")
    ] = 3,
    json_output: JsonOption = False,
) -> None:
    """Search conversations, memory files and plans."""
    run_search(
        query,
        source,
        parse_name_list(types, DOCUMENT_TYPES),
        since,
        until,
        project,
        fuzzy,
        min_messages,
        limit,
        max_snippets,
        json_output,
    )


@app.command()
def memory(
    query: Annotated[str, typer.Argument(help="Search query")],
    source: SourceOption = "all",
    since: SinceOption = None,
    until: UntilOption = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, max=50)] = 10,
    json_output: JsonOption = False,
) -> None:
    """Search memory and instruction files (CLAUDE.md, AGENTS.md, rules)."""
    run_search(query, source, "memory", since, until, None, True, None, limit, 3, json_output)


@app.command()
def plans(
    query: Annotated[str, typer.Argument(help="Search query")],
    source: SourceOption = "all",
    since: SinceOption = None,
    until: UntilOption = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, max=50)] = 10,
    json_output: JsonOption = False,
) -> None:
    """Search plan and knowledge files."""
    run_search(
        query, source, ["plan", "knowledge"], since, until, None, True, None, limit, 3, json_output
    )


@app.command()
def sessions(
    source: SourceOption = "all",
    since: SinceOption = None,
    until: UntilOption = None,
    project: Annotated[
        str | None, typer.Option("--project", "-p", help="Filter by project (path substring)")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, max=200)] = 30,
    json_output: JsonOption = False,
) -> None:
    """List recent sessions, newest first."""
    from logbook.searcher import format_sessions
    from logbook.sources import SOURCE_NAMES, discover_sources

    wanted = parse_name_list(source, SOURCE_NAMES)
    options = ListSessionsOptions(
        date_from=parse_date_option(since, "--since"),
        date_to=parse_date_option(until, "--until"),
    )

    found = []
    for src in discover_sources():
        if wanted is None or src.name in wanted:
            found.extend(src.list_sessions(options))

    if project:
        needle = project.lower()
        found = [s for s in found if s.project and needle in s.project.lower()]

    found.sort(key=lambda s: s.timestamp, reverse=True)
    format_sessions(found[:limit], json_output=json_output)


@app.command()
def read(
    source: Annotated[str, typer.Argument(help="Source that owns the session (claude, codex, gemini)")],
    session_id: Annotated[str, typer.Argument(help="Session ID from search or sessions")],
    query: Annotated[
        str | None, typer.Option("--query", "-q", help="Find messages containing this text")
    ] = None,
    context: Annotated[
        int | None,
        typer.Option("--context", "-C", min=0, max=100, help="Messages before/after each match"),
    ] = None,
    all_matches: Annotated[
        bool, typer.Option("--all-matches", "-a", help="Show windows around every match")
    ] = False,
    max_matches: Annotated[
        int | None, typer.Option("--max-matches", min=1, max=50, help="Cap match locations")
    ] = None,
    offset: Annotated[int | None, typer.Option("--offset", min=0, help="First message index")] = None,
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", min=1, max=500, help="Max messages")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Read a session, optionally centered on messages matching a query."""
    from logbook.errors import LogbookError
    from logbook.matcher import read_session
    from logbook.searcher import display_session_read
    from logbook.sources import discover_sources
    from logbook.tokenizer import tokenize

    try:
        result = read_session(
            discover_sources(),
            source,
            session_id,
            query=query,
            context_window=context,
            all_matches=all_matches,
            max_matches=max_matches,
            offset=offset,
            limit=limit,
        )
    except LogbookError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    display_session_read(result, tokenize(query or ""), json_output=json_output)


@app.command()
def status() -> None:
    """Show sources and index statistics."""
    from logbook.engine import SearchEngine
    from logbook.sources import all_sources

    sources = all_sources()
    available = [s for s in sources if s.is_available()]
    for src in sources:
        state = "[green]available[/green]" if src in available else "[dim]not found[/dim]"
        console.print(f"{src.display_name}: {state} ({src.base_path})")

    counts = SearchEngine(available).stats()
    console.print(f"\nDocuments indexed: {sum(counts.values())}")
    for name, count in counts.items():
        console.print(f"  [cyan]{name}[/cyan]: {count}")


if __name__ == "__main__":
    app()
