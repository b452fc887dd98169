"""Document source contract and shared file helpers."""

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from logbook.models import (
    ListSessionsOptions,
    MemoryFile,
    SearchableDocument,
    Session,
    SessionSummary,
)

DISPLAY_MAX_CHARS = 200

NON_DISPLAYABLE_PREFIXES = (
    "[request interrupted",
    "<local-command-caveat",
    "/resume",
)


class DocumentSource(ABC):
    """One agent's local data, as seen by the search engine and the CLI."""

    name: str
    display_name: str

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    @abstractmethod
    def is_available(self) -> bool:
        """Cheap check that the agent's data exists on this machine."""

    @abstractmethod
    def list_sessions(self, options: ListSessionsOptions | None = None) -> list[SessionSummary]:
        """List sessions, most recent first."""

    @abstractmethod
    def get_session(self, session_id: str) -> Session | None:
        """Read a full session, or None if it does not exist."""

    @abstractmethod
    def get_searchable_documents(self) -> Iterator[SearchableDocument]:
        """Yield conversation-level documents. Restartable per call."""

    @abstractmethod
    def get_memory_files(self) -> list[MemoryFile]:
        """Memory and rules files."""

    @abstractmethod
    def get_plan_files(self) -> list[MemoryFile]:
        """Plan files."""

    def _read_files(self, candidates: Iterable[tuple[Path, str]]) -> list[MemoryFile]:
        files = []
        for path, kind in candidates:
            memory_file = read_text_file(path, kind, self.name)
            if memory_file is not None:
                files.append(memory_file)
        return files

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.base_path)!r})"


def read_jsonl(path: Path) -> Iterator[dict[str, Any]]:
    """Stream a JSONL file one object per line.

    Blank lines, malformed JSON (sessions interrupted mid-write) and
    non-object records are skipped.
    """
    with open(path, encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(record, dict):
                yield record


def read_text_file(path: Path, kind: str, source: str) -> MemoryFile | None:
    """Read a memory/plan file, or None if it is missing, unreadable or blank."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    if not content.strip():
        return None
    return MemoryFile(source=source, path=str(path), content=content, kind=kind)


def list_dir(path: Path) -> list[Path]:
    """Sorted directory entries, empty if the directory can't be read."""
    try:
        return sorted(path.iterdir())
    except OSError:
        return []


def is_displayable_message(text: str) -> bool:
    """Check whether text looks like a real user prompt.

    Tool interruption markers, command caveats and /resume are system
    noise; anything under 5 characters is too short to label a session.
    """
    trimmed = text.strip()
    if len(trimmed) < 5:
        return False
    lower = trimmed.lower()
    return not lower.startswith(NON_DISPLAYABLE_PREFIXES)


def sort_and_limit(
    sessions: list[SessionSummary], options: ListSessionsOptions | None
) -> list[SessionSummary]:
    sessions.sort(key=lambda s: s.timestamp, reverse=True)
    if options is not None and options.limit:
        sessions = sessions[: options.limit]
    return sessions
