"""Codex source (~/.codex)."""

import re
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
    read_jsonl,
    sort_and_limit,
)
from logbook.timeutil import EPOCH, is_in_date_range, normalize_timestamp, to_epoch_millis

# sessions/YYYY/MM/DD/rollout-{ISO}-{sessionId}.jsonl
ROLLOUT_RE = re.compile(r"^rollout-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-(.+)\.jsonl$")


def extract_event_message(event: dict[str, Any]) -> tuple[str, str] | None:
    """Return (role, text) for a conversational event, else None.

    User prompts and agent replies are logged as `event_msg`; assistant
    output also appears as `response_item` messages.
    """
    payload = event.get("payload")
    if not isinstance(payload, dict):
        return None
    event_type = event.get("type")
    payload_type = payload.get("type")

    if event_type == "event_msg" and payload_type in ("user_message", "agent_message"):
        text = payload.get("message")
        if isinstance(text, str) and text:
            return ("user" if payload_type == "user_message" else "assistant"), text
        return None

    if event_type == "response_item" and payload_type == "message":
        if payload.get("role") != "assistant":
            return None
        content = payload.get("content") or []
        text = "\n".join(
            item.get("text") or ""
            for item in content
            if isinstance(item, dict) and item.get("type") in ("output_text", "text")
        )
        if text:
            return "assistant", text
    return None


class CodexSource(DocumentSource):
    """Codex rollout sessions, history and AGENTS.md/rules files."""

    name = "codex"
    display_name = "Codex"

    def __init__(self, base_path: Path):
        super().__init__(base_path)
        self.history_path = self.base_path / "history.jsonl"
        self.sessions_path = self.base_path / "sessions"

    def is_available(self) -> bool:
        return self.history_path.is_file()

    def list_sessions(self, options: ListSessionsOptions | None = None) -> list[SessionSummary]:
        options = options or ListSessionsOptions()
        sessions: dict[str, SessionSummary] = {}

        for entry in self._read_history():
            session_id = entry.get("session_id")
            if not session_id or session_id in sessions:
                continue
            ts = normalize_timestamp(entry.get("ts"))
            if ts is None:
                continue
            if not is_in_date_range(ts, options.date_from, options.date_to):
                continue
            sessions[session_id] = SessionSummary(
                source=self.name,
                session_id=session_id,
                timestamp=ts,
                display=entry.get("text"),
            )

        return sort_and_limit(list(sessions.values()), options)

    def get_session(self, session_id: str) -> Session | None:
        path = self._find_session_file(session_id)
        if path is None:
            return None

        messages: list[Message] = []
        metadata: dict[str, Any] = {}
        project = None
        session_ts = None

        try:
            for event in read_jsonl(path):
                ts = normalize_timestamp(event.get("timestamp"))
                if session_ts is None:
                    session_ts = ts

                payload = event.get("payload")
                if event.get("type") == "session_meta" and isinstance(payload, dict):
                    project = payload.get("cwd")
                    metadata["git"] = payload.get("git")
                    metadata["cli_version"] = payload.get("cli_version")
                    metadata["model_provider"] = payload.get("model_provider")
                    continue

                extracted = extract_event_message(event)
                if extracted is None:
                    continue
                role, text = extracted
                # The same reply is often logged as both event_msg and response_item
                if (
                    role == "assistant"
                    and messages
                    and messages[-1].role == "assistant"
                    and messages[-1].content == text
                ):
                    continue
                messages.append(Message(role=role, content=text, timestamp=ts))
        except OSError:
            return None

        if not messages:
            return None

        return Session(
            source=self.name,
            session_id=session_id,
            timestamp=session_ts or EPOCH,
            project=project,
            messages=messages,
            metadata=metadata,
        )

    def get_searchable_documents(self) -> Iterator[SearchableDocument]:
        indexed: set[str] = set()

        for path in self._walk_rollouts(self.sessions_path):
            match = ROLLOUT_RE.match(path.name)
            if match is None or match.group(1) in indexed:
                continue
            doc = self._parse_rollout(path, match.group(1))
            if doc is None:
                continue
            indexed.add(doc.session_id)
            yield doc

        for entry in self._read_history():
            session_id = entry.get("session_id")
            text = entry.get("text")
            if not session_id or not text or session_id in indexed:
                continue
            ts = entry.get("ts")
            yield SearchableDocument(
                id=f"codex:history:{session_id}:{ts}",
                source=self.name,
                session_id=session_id,
                timestamp=to_epoch_millis(normalize_timestamp(ts)),
                display=text,
                text=text,
                document_type="conversation",
            )

    def get_memory_files(self) -> list[MemoryFile]:
        candidates: list[tuple[Path, str]] = [(self.base_path / "AGENTS.md", "memory")]
        candidates.extend(
            (path, "rules")
            for path in list_dir(self.base_path / "rules")
            if path.suffix in (".md", ".rules")
        )
        return self._read_files(candidates)

    def get_plan_files(self) -> list[MemoryFile]:
        return []

    def _read_history(self) -> Iterator[dict[str, Any]]:
        try:
            yield from read_jsonl(self.history_path)
        except OSError:
            return

    def _walk_rollouts(self, directory: Path) -> Iterator[Path]:
        for path in list_dir(directory):
            if path.suffix == ".jsonl":
                yield path
            elif path.is_dir():
                yield from self._walk_rollouts(path)

    def _parse_rollout(self, path: Path, session_id: str) -> SearchableDocument | None:
        parts: list[str] = []
        project = None
        timestamp = None
        first_user_message = None

        try:
            for event in read_jsonl(path):
                if timestamp is None and event.get("timestamp"):
                    timestamp = to_epoch_millis(normalize_timestamp(event["timestamp"]))
                payload = event.get("payload")
                if (
                    project is None
                    and event.get("type") == "session_meta"
                    and isinstance(payload, dict)
                    and payload.get("cwd")
                ):
                    project = payload["cwd"]

                extracted = extract_event_message(event)
                if extracted is None:
                    continue
                role, text = extracted
                if first_user_message is None and role == "user" and is_displayable_message(text):
                    first_user_message = text
                parts.append(text)
        except OSError:
            return None

        if not parts:
            return None

        return SearchableDocument(
            id=f"codex:session:{session_id}",
            source=self.name,
            session_id=session_id,
            timestamp=timestamp,
            project=project,
            display=first_user_message[:DISPLAY_MAX_CHARS] if first_user_message else None,
            text="\n".join(parts),
            document_type="conversation",
            message_count=len(parts),
        )

    def _find_session_file(self, session_id: str) -> Path | None:
        for path in self._walk_rollouts(self.sessions_path):
            if session_id in path.name:
                return path
        return None
