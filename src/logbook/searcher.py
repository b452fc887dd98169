"""Rendering of search results, session listings and session reads."""

import re
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from logbook.engine import SearchEngine
from logbook.matcher import SessionRead
from logbook.models import IndexedMessage, SearchOptions, SearchResult, SessionSummary
from logbook.timeutil import normalize_timestamp

console = Console()

ROLE_STYLES = {
    "user": "cyan",
    "assistant": "green",
    "system": "magenta",
    "tool": "yellow",
}


def format_age(timestamp: datetime | int | None) -> str:
    """Describe how long ago a timestamp was."""
    when = normalize_timestamp(timestamp)
    if when is None:
        return "unknown time"
    age = datetime.now(tz=timezone.utc) - when
    if age.days > 0:
        return f"{age.days} days ago"
    elif age.seconds > 3600:
        return f"{age.seconds // 3600} hours ago"
    else:
        return f"{age.seconds // 60} minutes ago"


def highlight_matches(text: str, terms: list[str]) -> str:
    """Escape text for Rich and highlight the given terms."""
    text = escape(text)
    for term in terms:
        # Skip very short terms to avoid too many highlights
        if len(term) < 3:
            continue
        pattern = re.compile(re.escape(escape(term)), re.IGNORECASE)
        text = pattern.sub(lambda m: f"[bold yellow]{m.group()}[/bold yellow]", text)
    return text


def result_to_dict(result: SearchResult, rank: int) -> dict[str, Any]:
    timestamp = normalize_timestamp(result.timestamp)
    return {
        "rank": rank,
        "source": result.source,
        "type": result.document_type,
        "score": round(result.score, 4),
        "session_id": result.session_id,
        "timestamp": timestamp.isoformat() if timestamp else None,
        "project": result.project,
        "file_path": result.file_path,
        "display": result.display,
        "matched_text": result.matched_text,
        "snippets": [asdict(s) for s in result.snippets],
        "match_count": result.match_count,
        "message_count": result.message_count,
    }


def format_json_output(results: list[SearchResult], query: str, search_time_ms: int) -> None:
    """Format results as JSON for programmatic use."""
    output = {
        "results": [result_to_dict(r, i + 1) for i, r in enumerate(results)],
        "query": query,
        "total_results": len(results),
        "search_time_ms": search_time_ms,
    }
    console.print_json(data=output)


def format_human_output(
    results: list[SearchResult],
    search_time_ms: int,
    project_filter: str | None = None,
) -> None:
    """Format results for human-readable output."""
    if not results:
        if project_filter:
            console.print(f"[yellow]No results found for project '{project_filter}'[/yellow]")
        else:
            console.print("[yellow]No results found. Try a different query.[/yellow]")
        return

    for i, result in enumerate(results, 1):
        header = Text()
        header.append(f"[{i}] ", style="bold cyan")
        header.append(f"{result.source}/{result.document_type}", style="green")
        if result.project:
            header.append(f" | {result.project}", style="green")
        header.append(f" | {format_age(result.timestamp)}", style="dim")
        header.append(f" | score {result.score:.3f}", style="dim")

        body_parts = []
        if result.display:
            body_parts.append(f"[bold]{escape(result.display)}[/bold]")
        for snippet in result.snippets:
            body_parts.append(highlight_matches(snippet.text, snippet.match_terms))

        counts = f"{result.match_count} matches"
        if result.message_count is not None:
            counts += f", {result.message_count} messages"
        if result.session_id:
            subtitle = f"→ logbook read {result.source} {result.session_id} ({counts})"
        else:
            subtitle = f"→ {result.file_path or result.id} ({counts})"

        panel = Panel(
            "\n\n".join(body_parts),
            title=header,
            subtitle=escape(subtitle),
            subtitle_align="left",
        )
        console.print(panel)
        console.print()

    console.print("─" * 50)
    console.print(f"Found {len(results)} results in {search_time_ms}ms")


def format_sessions(sessions: list[SessionSummary], json_output: bool = False) -> None:
    if json_output:
        console.print_json(
            data={
                "total_sessions": len(sessions),
                "sessions": [
                    {
                        "source": s.source,
                        "session_id": s.session_id,
                        "timestamp": s.timestamp.isoformat(),
                        "project": s.project,
                        "display": s.display,
                        "model": s.model,
                        "git_branch": s.git_branch,
                    }
                    for s in sessions
                ],
            }
        )
        return

    if not sessions:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    for s in sessions:
        line = Text()
        line.append(f"{s.source:<7} ", style="bold cyan")
        line.append(s.session_id, style="green")
        line.append(f"  {format_age(s.timestamp)}", style="dim")
        if s.project:
            line.append(f"  {s.project}", style="dim")
        console.print(line)
        if s.display:
            console.print(f"        {escape(s.display[:120])}")


def _render_message(indexed: IndexedMessage, terms: list[str]) -> str:
    message = indexed.message
    style = ROLE_STYLES.get(message.role, "white")
    marker = "[bold yellow]*[/bold yellow] " if indexed.matched else ""
    content = highlight_matches(message.content, terms) if indexed.matched else escape(message.content)
    return f"{marker}[{style}]#{indexed.index} {message.role}:[/{style}] {content}"


def display_session_read(read: SessionRead, terms: list[str], json_output: bool = False) -> None:
    """Display a session read, either as windows or as a message page."""
    if json_output:
        console.print_json(data=read.to_dict())
        return

    session = read.session
    header = Text()
    header.append(f"{session.source} {session.session_id}", style="green")
    if session.project:
        header.append(f" | {session.project}", style="green")
    header.append(f" | {format_age(session.timestamp)}", style="dim")
    header.append(f" | {read.total_messages} messages", style="dim")

    if read.query_not_found:
        console.print(header)
        console.print(f"[yellow]No message matches '{escape(read.query or '')}'[/yellow]")
        return

    if read.windows is not None:
        for window in read.windows:
            body = "\n\n".join(_render_message(m, terms) for m in window.messages)
            console.print(
                Panel(
                    body,
                    title=header,
                    subtitle=f"messages {window.start_index}-{window.end_index}",
                    subtitle_align="left",
                )
            )
        console.print(f"{read.total_matches} matching messages, {len(read.windows)} windows")
        return

    body = "\n\n".join(_render_message(m, terms) for m in read.messages)
    console.print(Panel(body or "[dim](no messages)[/dim]", title=header))
    if read.matched_message_index is not None:
        console.print(f"{read.total_matches} matching messages: {read.all_match_indices}")


def perform_search(
    engine: SearchEngine,
    options: SearchOptions,
    json_output: bool = False,
) -> list[SearchResult]:
    """Perform a search and display results."""
    start_time = time.time()
    results = engine.search(options)
    search_time_ms = int((time.time() - start_time) * 1000)

    if json_output:
        format_json_output(results, options.query, search_time_ms)
    else:
        format_human_output(results, search_time_ms, project_filter=options.project)
    return results
