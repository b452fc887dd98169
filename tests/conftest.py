"""Pytest fixtures for logbook tests."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from logbook.models import MemoryFile, Message, SearchableDocument, Session, SessionSummary
from logbook.sources.base import DocumentSource


class StaticSource(DocumentSource):
    """An in-memory source for engine and matcher tests."""

    def __init__(
        self,
        name: str,
        documents: list[SearchableDocument] | None = None,
        memory_files: list[MemoryFile] | None = None,
        plan_files: list[MemoryFile] | None = None,
        sessions: dict[str, Session] | None = None,
        available: bool = True,
        fail_after: int | None = None,
    ):
        super().__init__(Path(f"/mock/{name}"))
        self.name = name
        self.display_name = name.title()
        self.documents = documents or []
        self.memory_files = memory_files or []
        self.plan_files = plan_files or []
        self.sessions = sessions or {}
        self.available = available
        self.fail_after = fail_after
        self.enumerations = 0

    def is_available(self) -> bool:
        return self.available

    def list_sessions(self, options=None) -> list[SessionSummary]:
        return [
            SessionSummary(source=self.name, session_id=s.session_id, timestamp=s.timestamp)
            for s in self.sessions.values()
        ]

    def get_session(self, session_id: str) -> Session | None:
        return self.sessions.get(session_id)

    def get_searchable_documents(self):
        self.enumerations += 1
        for i, doc in enumerate(self.documents):
            if self.fail_after is not None and i >= self.fail_after:
                raise RuntimeError(f"{self.name} exploded")
            yield doc

    def get_memory_files(self) -> list[MemoryFile]:
        return self.memory_files

    def get_plan_files(self) -> list[MemoryFile]:
        return self.plan_files


def make_doc(doc_id: str, text: str, source: str = "claude", **kwargs) -> SearchableDocument:
    return SearchableDocument(id=doc_id, source=source, text=text, **kwargs)


def make_session(contents: list[str], session_id: str = "session-1", source: str = "claude") -> Session:
    return Session(
        source=source,
        session_id=session_id,
        timestamp=datetime(2025, 2, 1, tzinfo=timezone.utc),
        project="/home/testuser/test-project",
        messages=[
            Message(role="user" if i % 2 == 0 else "assistant", content=c)
            for i, c in enumerate(contents)
        ],
    )


def write_jsonl(path: Path, records: list) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write((record if isinstance(record, str) else json.dumps(record)) + "\n")
    return path


@pytest.fixture
def claude_home(tmp_path):
    """A ~/.claude tree with one transcript, one history-only session and a subagent."""
    base = tmp_path / ".claude"
    project_dir = base / "projects" / "-home-testuser-test-project"

    write_jsonl(
        base / "history.jsonl",
        [
            {
                "display": "How do I implement authentication?",
                "timestamp": 1738368000000,
                "project": "/home/testuser/test-project",
                "sessionId": "test-session-123",
            },
            {
                "display": "Set up CI/CD pipeline with GitHub Actions",
                "timestamp": 1738371600000,
                "project": "/home/testuser/other-project",
                "sessionId": "history-only-456",
                "gitBranch": "main",
            },
            {
                "display": "and make it run nightly",
                "timestamp": 1738371700000,
                "project": "/home/testuser/other-project",
                "sessionId": "history-only-456",
            },
        ],
    )

    write_jsonl(
        project_dir / "test-session-123.jsonl",
        [
            {"type": "summary", "summary": "JWT authentication walkthrough"},
            {
                "type": "user",
                "uuid": "msg-001",
                "sessionId": "test-session-123",
                "cwd": "/home/testuser/test-project",
                "timestamp": "2025-02-01T00:00:00Z",
                "message": {"role": "user", "content": "How do I implement authentication?"},
            },
            {
                "type": "assistant",
                "uuid": "msg-002",
                "timestamp": "2025-02-01T00:00:05Z",
                "message": {
                    "role": "assistant",
                    "content": [
                        {"type": "thinking", "thinking": "Let me think about tokens..."},
                        {"type": "text", "text": "For authentication, you can use JWT tokens."},
                    ],
                },
            },
            "{not valid json",
            {"type": "file-history-snapshot", "snapshot": {}},
            {
                "type": "user",
                "isMeta": True,
                "timestamp": "2025-02-01T00:00:06Z",
                "message": {"role": "user", "content": "<meta>caveat</meta>"},
            },
            {
                "type": "user",
                "uuid": "msg-003",
                "timestamp": "2025-02-01T00:01:00Z",
                "message": {"role": "user", "content": "Can you show me an example?"},
            },
            {
                "type": "assistant",
                "uuid": "msg-004",
                "timestamp": "2025-02-01T00:01:10Z",
                "message": {
                    "role": "assistant",
                    "content": [{"type": "text", "text": "Here's an example of JWT middleware."}],
                },
            },
        ],
    )

    write_jsonl(
        project_dir / "test-session-123" / "subagents" / "agent-abc.jsonl",
        [
            {
                "timestamp": "2025-02-01T00:02:00Z",
                "message": {"role": "user", "content": "Review the token refresh logic"},
            },
            {
                "timestamp": "2025-02-01T00:02:05Z",
                "message": {"role": "assistant", "content": "Looks fine."},
            },
        ],
    )

    (base / "CLAUDE.md").write_text("Always run the linter before committing.\n")
    (base / "rules").mkdir()
    (base / "rules" / "style.md").write_text("Prefer small functions.\n")
    (base / "rules" / "empty.md").write_text("   \n")
    (project_dir / "memory").mkdir()
    (project_dir / "memory" / "notes.md").write_text("The staging database is postgres.\n")
    (base / "plans").mkdir()
    (base / "plans" / "rollout.md").write_text("# Rollout plan\nShip the migration in two phases.\n")

    return base


@pytest.fixture
def codex_home(tmp_path):
    """A ~/.codex tree with one rollout and one history-only session."""
    base = tmp_path / ".codex"

    write_jsonl(
        base / "history.jsonl",
        [
            {"session_id": "abc-123", "ts": 1738368000, "text": "fix the flaky websocket test"},
            {"session_id": "def-456", "ts": 1738371600, "text": "bump the rust toolchain"},
        ],
    )

    write_jsonl(
        base / "sessions" / "2025" / "02" / "01" / "rollout-2025-02-01T00-00-00-abc-123.jsonl",
        [
            {
                "timestamp": "2025-02-01T00:00:00Z",
                "type": "session_meta",
                "payload": {"id": "abc-123", "cwd": "/home/testuser/chat", "cli_version": "0.40.0"},
            },
            {
                "timestamp": "2025-02-01T00:00:01Z",
                "type": "event_msg",
                "payload": {"type": "user_message", "message": "fix the flaky websocket test"},
            },
            {
                "timestamp": "2025-02-01T00:00:10Z",
                "type": "event_msg",
                "payload": {"type": "agent_message", "message": "The reconnect timer leaks."},
            },
            {
                "timestamp": "2025-02-01T00:00:10Z",
                "type": "response_item",
                "payload": {
                    "type": "message",
                    "role": "assistant",
                    "content": [{"type": "output_text", "text": "The reconnect timer leaks."}],
                },
            },
            {
                "timestamp": "2025-02-01T00:00:11Z",
                "type": "response_item",
                "payload": {
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": "<environment_context>"}],
                },
            },
        ],
    )

    (base / "AGENTS.md").write_text("Use conventional commits.\n")
    (base / "rules").mkdir()
    (base / "rules" / "shell.rules").write_text("never run rm -rf\n")

    return base


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def gemini_home(tmp_path):
    """A ~/.gemini tree with two chats, a cleared session in logs.json, GEMINI.md and a plan."""
    base = tmp_path / "gemini-home" / ".gemini"
    project = base / "tmp" / "9f3ab2"

    write_json(
        project / "chats" / "session-2025-02-01T00-00-gem001.json",
        {
            "sessionId": "gem-001",
            "projectHash": "9f3ab2",
            "startTime": "2025-02-01T00:00:00Z",
            "lastUpdated": "2025-02-01T00:05:00Z",
            "directories": ["/home/testuser/http"],
            "messages": [
                {
                    "id": "m1",
                    "timestamp": "2025-02-01T00:00:01Z",
                    "type": "user",
                    "content": "add retries to the http client",
                },
                {"id": "m2", "timestamp": "2025-02-01T00:00:02Z", "type": "info", "content": "Logged in"},
                {
                    "id": "m3",
                    "timestamp": "2025-02-01T00:00:10Z",
                    "type": "gemini",
                    "content": "Wrapped requests in a backoff loop.",
                    "model": "gemini-2.5-pro",
                },
                {
                    "id": "m4",
                    "timestamp": "2025-02-01T00:00:11Z",
                    "type": "gemini",
                    "content": [{"functionCall": {"name": "write_file"}}],
                },
            ],
        },
    )
    write_json(
        project / "chats" / "session-2025-02-02T00-00-gem002.json",
        {
            "sessionId": "gem-002",
            "projectHash": "9f3ab2",
            "startTime": "2025-02-02T00:00:00Z",
            "summary": "Tune the cache eviction",
            "messages": [
                {"id": "m1", "type": "user", "content": "/resume"},
                {"id": "m2", "type": "user", "content": "make the cache evict least recently used entries"},
                {"id": "m3", "type": "gemini", "content": "Switched the cache to LRU."},
            ],
        },
    )
    # No start time and nothing conversational
    write_json(
        project / "chats" / "session-2025-02-03T00-00-gem003.json",
        {"sessionId": "gem-003", "messages": [{"id": "m1", "type": "error", "content": "quota exceeded"}]},
    )
    write_json(project / "chats" / "session-broken.json", "{not json")
    write_json(project / "chats" / "session-no-id.json", {"messages": []})

    write_json(
        project / "logs.json",
        [
            {"sessionId": "gem-001", "messageId": 0, "type": "user", "message": "add retries"},
            {
                "sessionId": "gem-cleared",
                "messageId": 1,
                "type": "user",
                "message": "now handle yaml anchors",
                "timestamp": "2025-02-03T10:01:00Z",
            },
            {
                "sessionId": "gem-cleared",
                "messageId": 0,
                "type": "user",
                "message": "rewrite the yaml parser",
                "timestamp": "2025-02-03T10:00:00Z",
            },
            {"sessionId": "gem-cleared", "messageId": 2, "type": "user", "message": ""},
        ],
    )

    (project / "plans").mkdir()
    (project / "plans" / "parser.md").write_text("# Parser plan\nSplit the yaml lexer from the grammar.\n")
    (project / "plans" / "scratch.txt").write_text("not a plan\n")
    (base / "GEMINI.md").write_text("Prefer small pull requests.\n")

    return base
