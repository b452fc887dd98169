"""Claude Code source (~/.claude)."""

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

# Records that carry no conversation content
SKIPPED_RECORD_TYPES = {"file-history-snapshot"}


def extract_text_content(content: Any) -> str:
    """Join the text blocks of a message; thinking and tool blocks are dropped."""
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    return "\n".join(
        block["text"]
        for block in content
        if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
    )


def decode_project_dir(name: str) -> str:
    """Decode a projects/ directory name.

    Path format: ~/.claude/projects/-Users-name-Code-project/
    Returns: /Users/name/Code/project (hyphens inside names are ambiguous)
    """
    return name.replace("-", "/")


class ClaudeSource(DocumentSource):
    """Claude Code sessions, history, memory and plan files."""

    name = "claude"
    display_name = "Claude Code"

    def __init__(self, base_path: Path):
        super().__init__(base_path)
        self.history_path = self.base_path / "history.jsonl"
        self.projects_path = self.base_path / "projects"

    def is_available(self) -> bool:
        return self.history_path.is_file()

    def list_sessions(self, options: ListSessionsOptions | None = None) -> list[SessionSummary]:
        options = options or ListSessionsOptions()
        sessions: dict[str, SessionSummary] = {}

        for entry in self._read_history():
            session_id = entry.get("sessionId")
            if not session_id or session_id in sessions:
                # Keep the first entry per session (the opening prompt)
                continue
            ts = normalize_timestamp(entry.get("timestamp"))
            if ts is None:
                continue
            if not is_in_date_range(ts, options.date_from, options.date_to):
                continue
            project = entry.get("project")
            if options.project and project and options.project not in project:
                continue
            sessions[session_id] = SessionSummary(
                source=self.name,
                session_id=session_id,
                timestamp=ts,
                project=project,
                display=entry.get("display"),
                git_branch=entry.get("gitBranch"),
            )

        return sort_and_limit(list(sessions.values()), options)

    def get_session(self, session_id: str) -> Session | None:
        path = self._find_session_file(session_id)
        if path is None:
            return None

        messages: list[Message] = []
        metadata: dict[str, Any] = {}
        project: str | None = None
        session_ts = None

        try:
            for record in read_jsonl(path):
                record_type = record.get("type")
                if record_type == "summary" and record.get("summary"):
                    metadata["summary"] = record["summary"]
                    continue
                if (
                    record_type in SKIPPED_RECORD_TYPES
                    or record.get("isMeta")
                    or (record_type == "system" and record.get("subtype") == "turn_duration")
                ):
                    continue

                if project is None and record.get("cwd"):
                    project = record["cwd"]
                ts = normalize_timestamp(record.get("timestamp"))
                if session_ts is None:
                    session_ts = ts

                msg_data = record.get("message") or {}
                if not isinstance(msg_data, dict):
                    continue
                role = msg_data.get("role")
                if role not in ("user", "assistant"):
                    continue
                text = extract_text_content(msg_data.get("content"))
                if text:
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

        # Full transcripts first
        yield from self._session_documents(indexed)

        # history.jsonl for sessions whose transcript is gone
        for entry in self._read_history():
            session_id = entry.get("sessionId")
            display = entry.get("display")
            if not session_id or not display or session_id in indexed:
                continue
            indexed.add(session_id)
            yield SearchableDocument(
                id=f"claude:history:{session_id}",
                source=self.name,
                session_id=session_id,
                timestamp=to_epoch_millis(normalize_timestamp(entry.get("timestamp"))),
                project=entry.get("project"),
                display=display,
                text=display,
                document_type="conversation",
            )

        yield from self._subagent_documents()

    def get_memory_files(self) -> list[MemoryFile]:
        candidates: list[tuple[Path, str]] = [(self.base_path / "CLAUDE.md", "memory")]
        candidates.extend(
            (path, "rules")
            for path in list_dir(self.base_path / "rules")
            if path.suffix == ".md"
        )
        for project_dir in list_dir(self.projects_path):
            candidates.extend(
                (path, "memory")
                for path in list_dir(project_dir / "memory")
                if path.suffix == ".md"
            )
        return self._read_files(candidates)

    def get_plan_files(self) -> list[MemoryFile]:
        return self._read_files(
            (path, "plan") for path in list_dir(self.base_path / "plans") if path.suffix == ".md"
        )

    def _read_history(self) -> Iterator[dict[str, Any]]:
        try:
            yield from read_jsonl(self.history_path)
        except OSError:
            return

    def _session_documents(self, indexed: set[str]) -> Iterator[SearchableDocument]:
        for project_dir in list_dir(self.projects_path):
            for path in list_dir(project_dir):
                # Session dirs (holding subagents/) share the stem; skip them
                if path.suffix != ".jsonl" or not path.is_file():
                    continue
                doc = self._parse_transcript(path)
                if doc is None:
                    continue
                indexed.add(doc.session_id)
                yield doc

    def _parse_transcript(self, path: Path) -> SearchableDocument | None:
        session_id = path.stem
        parts: list[str] = []
        timestamp = None
        project = None
        first_user_message = None

        try:
            for record in read_jsonl(path):
                if timestamp is None and record.get("timestamp"):
                    timestamp = to_epoch_millis(normalize_timestamp(record["timestamp"]))
                if project is None and record.get("cwd"):
                    project = record["cwd"]

                msg_data = record.get("message") or {}
                if not isinstance(msg_data, dict):
                    continue
                role = msg_data.get("role")
                if role not in ("user", "assistant"):
                    continue
                text = extract_text_content(msg_data.get("content"))
                if not text:
                    continue
                if first_user_message is None and role == "user" and is_displayable_message(text):
                    first_user_message = text
                parts.append(text)
        except OSError:
            # Corrupted or unreadable session file
            return None

        if not parts:
            return None

        return SearchableDocument(
            id=f"claude:session:{session_id}",
            source=self.name,
            session_id=session_id,
            timestamp=timestamp,
            project=project,
            display=first_user_message[:DISPLAY_MAX_CHARS] if first_user_message else None,
            text="\n".join(parts),
            document_type="conversation",
            message_count=len(parts),
        )

    def _subagent_documents(self) -> Iterator[SearchableDocument]:
        """Index the opening prompt of each subagent transcript."""
        for project_dir in list_dir(self.projects_path):
            for session_dir in list_dir(project_dir):
                for path in list_dir(session_dir / "subagents"):
                    name = path.name
                    if not (name.startswith("agent-") and name.endswith(".jsonl")):
                        continue
                    agent_id = name[len("agent-") : -len(".jsonl")]
                    doc = self._first_subagent_message(
                        path, session_dir.name, agent_id, decode_project_dir(project_dir.name)
                    )
                    if doc is not None:
                        yield doc

    def _first_subagent_message(
        self, path: Path, session_id: str, agent_id: str, project: str
    ) -> SearchableDocument | None:
        try:
            for record in read_jsonl(path):
                msg_data = record.get("message") or {}
                if not isinstance(msg_data, dict):
                    continue
                text = extract_text_content(msg_data.get("content"))
                if not text:
                    continue
                return SearchableDocument(
                    id=f"claude:subagent:{session_id}:{agent_id}",
                    source=self.name,
                    session_id=session_id,
                    timestamp=to_epoch_millis(normalize_timestamp(record.get("timestamp"))),
                    project=project,
                    file_path=str(path),
                    text=text,
                    document_type="conversation",
                    message_count=1,
                )
        except OSError:
            return None
        return None

    def _find_session_file(self, session_id: str) -> Path | None:
        # projects/{encoded-path}/{sessionId}.jsonl
        for project_dir in list_dir(self.projects_path):
            candidate = project_dir / f"{session_id}.jsonl"
            if candidate.is_file():
                return candidate
        return None
