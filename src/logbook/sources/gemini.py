"""Gemini CLI source (~/.gemini)."""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from logbook.models import (
    ListSessionsOptions,
    MemoryFile,
    Message,
    SearchableDocument,
    Session,
    SessionSummary,
)
from logbook.sources.base import (
    DISPLAY_MAX_CHARS,
    DocumentSource,
    is_displayable_message,
    list_dir,
    sort_and_limit,
)
from logbook.timeutil import EPOCH, is_in_date_range, normalize_timestamp, to_epoch_millis

# Message types that carry conversation text; info/error/warning are CLI chatter
CONVERSATION_TYPES = ("user", "gemini")


def read_json(path: Path) -> Any:
    """Load a JSON file, or None if it is missing or malformed."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError):
        return None


def conversation_texts(session: dict[str, Any]) -> list[tuple[dict[str, Any], str]]:
    """(message, text) for user and model messages with plain-text content."""
    texts = []
    for message in session.get("messages") or []:
        if not isinstance(message, dict) or message.get("type") not in CONVERSATION_TYPES:
            continue
        content = message.get("content")
        if isinstance(content, str) and content:
            texts.append((message, content))
    return texts


class GeminiSource(DocumentSource):
    """Gemini CLI chat sessions, logs, GEMINI.md and plans.

    Everything lives under `tmp/<project hash>/`: chats are one JSON file
    per session, and `logs.json` keeps prompts of sessions that were
    cleared before being saved.
    """

    name = "gemini"
    display_name = "Gemini CLI"

    def __init__(self, base_path: Path):
        super().__init__(base_path)
        self.tmp_path = self.base_path / "tmp"

    def is_available(self) -> bool:
        return self.tmp_path.is_dir()

    def list_sessions(self, options: ListSessionsOptions | None = None) -> list[SessionSummary]:
        options = options or ListSessionsOptions()
        sessions: list[SessionSummary] = []

        for _, session in self._iter_sessions():
            ts = normalize_timestamp(session.get("startTime"))
            if ts is None:
                continue
            if not is_in_date_range(ts, options.date_from, options.date_to):
                continue

            messages = [m for m in session.get("messages") or [] if isinstance(m, dict)]
            first_user = next((m for m in messages if m.get("type") == "user"), {})
            display = session.get("summary")
            if not display and isinstance(first_user.get("content"), str):
                display = first_user["content"][:DISPLAY_MAX_CHARS]
            model = next((m.get("model") for m in messages if m.get("type") == "gemini"), None)

            sessions.append(
                SessionSummary(
                    source=self.name,
                    session_id=session["sessionId"],
                    timestamp=ts,
                    display=display or None,
                    model=model,
                )
            )

        return sort_and_limit(sessions, options)

    def get_session(self, session_id: str) -> Session | None:
        for _, session in self._iter_sessions():
            if session["sessionId"] != session_id:
                continue

            messages = [
                Message(
                    role="user" if message["type"] == "user" else "assistant",
                    content=text,
                    timestamp=normalize_timestamp(message.get("timestamp")),
                )
                for message, text in conversation_texts(session)
            ]
            if not messages:
                return None

            directories = session.get("directories") or []
            return Session(
                source=self.name,
                session_id=session_id,
                timestamp=normalize_timestamp(session.get("startTime")) or EPOCH,
                project=directories[0] if directories else None,
                messages=messages,
                metadata={
                    "project_hash": session.get("projectHash"),
                    "summary": session.get("summary"),
                },
            )
        return None

    def get_searchable_documents(self) -> Iterator[SearchableDocument]:
        indexed: set[str] = set()

        for path, session in self._iter_sessions():
            texts = conversation_texts(session)
            if not texts:
                continue

            display = session.get("summary")
            if not display:
                first_user = next(
                    (
                        text
                        for message, text in texts
                        if message["type"] == "user" and is_displayable_message(text)
                    ),
                    None,
                )
                display = first_user[:DISPLAY_MAX_CHARS] if first_user else None

            session_id = session["sessionId"]
            indexed.add(session_id)
            yield SearchableDocument(
                id=f"gemini:session:{session_id}",
                source=self.name,
                session_id=session_id,
                timestamp=to_epoch_millis(normalize_timestamp(session.get("startTime"))),
                file_path=str(path),
                display=display,
                text="\n".join(text for _, text in texts),
                document_type="conversation",
                message_count=len(texts),
            )

        yield from self._log_documents(indexed)

    def get_memory_files(self) -> list[MemoryFile]:
        return self._read_files([(self.base_path / "GEMINI.md", "memory")])

    def get_plan_files(self) -> list[MemoryFile]:
        candidates = [
            (path, "plan")
            for project_dir in list_dir(self.tmp_path)
            for path in list_dir(project_dir / "plans")
            if path.suffix == ".md"
        ]
        return self._read_files(candidates)

    def _iter_sessions(self) -> Iterator[tuple[Path, dict[str, Any]]]:
        """Yield (path, session) for every readable chat file with a session id."""
        for project_dir in list_dir(self.tmp_path):
            for path in list_dir(project_dir / "chats"):
                if not (path.name.startswith("session-") and path.suffix == ".json"):
                    continue
                session = read_json(path)
                if isinstance(session, dict) and session.get("sessionId"):
                    yield path, session

    def _log_documents(self, exclude: set[str]) -> Iterator[SearchableDocument]:
        """Prompts from logs.json, grouped per session not already indexed from chats."""
        for project_dir in list_dir(self.tmp_path):
            entries = read_json(project_dir / "logs.json")
            if not isinstance(entries, list):
                continue

            by_session: dict[str, list[dict[str, Any]]] = {}
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                session_id = entry.get("sessionId")
                if not session_id or not entry.get("message") or session_id in exclude:
                    continue
                by_session.setdefault(session_id, []).append(entry)

            for session_id, logs in by_session.items():
                logs.sort(key=lambda e: e.get("messageId") or 0)
                first = str(logs[0]["message"])
                yield SearchableDocument(
                    id=f"gemini:log:{session_id}",
                    source=self.name,
                    session_id=session_id,
                    timestamp=to_epoch_millis(normalize_timestamp(logs[0].get("timestamp"))),
                    display=first[:DISPLAY_MAX_CHARS],
                    text="\n".join(str(e["message"]) for e in logs),
                    document_type="conversation",
                    message_count=len(logs),
                )
