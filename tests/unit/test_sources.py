"""Tests for the Claude Code, Codex and Gemini CLI sources."""

from datetime import datetime, timezone

from conftest import write_jsonl

from logbook.config import AgentPaths, resolve_agent_paths
from logbook.models import ListSessionsOptions
from logbook.sources import ClaudeSource, CodexSource, GeminiSource, all_sources, discover_sources
from logbook.sources.base import is_displayable_message, read_jsonl
from logbook.sources.claude import decode_project_dir, extract_text_content
from logbook.sources.codex import extract_event_message


class TestHelpers:
    def test_read_jsonl_skips_bad_lines(self, tmp_path):
        path = write_jsonl(tmp_path / "mixed.jsonl", [{"a": 1}, "", "{broken", "[1, 2]", {"b": 2}])
        assert list(read_jsonl(path)) == [{"a": 1}, {"b": 2}]

    def test_extract_text_content(self):
        assert extract_text_content("plain") == "plain"
        assert extract_text_content(None) == ""
        assert extract_text_content(42) == ""
        blocks = [
            {"type": "thinking", "thinking": "hmm"},
            {"type": "text", "text": "first"},
            {"type": "tool_use", "name": "Bash"},
            {"type": "text", "text": "second"},
        ]
        assert extract_text_content(blocks) == "first\nsecond"

    def test_decode_project_dir(self):
        assert decode_project_dir("-Users-name-Code-project") == "/Users/name/Code/project"

    def test_is_displayable_message(self):
        assert is_displayable_message("How do I fix this?")
        assert not is_displayable_message("hi")
        assert not is_displayable_message("[Request interrupted by user]")
        assert not is_displayable_message("/resume")
        assert not is_displayable_message("<local-command-caveat>Caveat</local-command-caveat>")

    def test_extract_event_message(self):
        assert extract_event_message(
            {"type": "event_msg", "payload": {"type": "user_message", "message": "hello"}}
        ) == ("user", "hello")
        assert extract_event_message(
            {"type": "event_msg", "payload": {"type": "token_count", "info": {}}}
        ) is None
        assert extract_event_message(
            {
                "type": "response_item",
                "payload": {
                    "type": "message",
                    "role": "assistant",
                    "content": [{"type": "output_text", "text": "done"}],
                },
            }
        ) == ("assistant", "done")
        assert extract_event_message({"type": "event_msg", "payload": "oops"}) is None


class TestClaudeSource:
    def test_is_available(self, claude_home, tmp_path):
        assert ClaudeSource(claude_home).is_available()
        assert not ClaudeSource(tmp_path / "missing").is_available()

    def test_searchable_documents(self, claude_home):
        docs = {d.id: d for d in ClaudeSource(claude_home).get_searchable_documents()}

        assert set(docs) == {
            "claude:session:test-session-123",
            "claude:history:history-only-456",
            "claude:subagent:test-session-123:abc",
        }

        session = docs["claude:session:test-session-123"]
        assert session.session_id == "test-session-123"
        assert session.project == "/home/testuser/test-project"
        assert session.timestamp == 1738368000000
        assert session.display == "How do I implement authentication?"
        assert "JWT middleware" in session.text
        assert "Let me think" not in session.text
        assert session.message_count == 5
        assert session.document_type == "conversation"

        history = docs["claude:history:history-only-456"]
        assert history.text == "Set up CI/CD pipeline with GitHub Actions"
        assert history.timestamp == 1738371600000
        assert history.project == "/home/testuser/other-project"
        assert history.message_count is None

        subagent = docs["claude:subagent:test-session-123:abc"]
        assert subagent.text == "Review the token refresh logic"
        assert subagent.session_id == "test-session-123"
        assert subagent.project == "/home/testuser/test/project"
        assert subagent.message_count == 1
        assert subagent.file_path.endswith("agent-abc.jsonl")

    def test_documents_are_restartable(self, claude_home):
        source = ClaudeSource(claude_home)
        first = [d.id for d in source.get_searchable_documents()]
        second = [d.id for d in source.get_searchable_documents()]
        assert first == second

    def test_missing_directory_yields_nothing(self, tmp_path):
        source = ClaudeSource(tmp_path / "missing")

        assert list(source.get_searchable_documents()) == []
        assert source.list_sessions() == []
        assert source.get_memory_files() == []
        assert source.get_session("anything") is None

    def test_get_session(self, claude_home):
        session = ClaudeSource(claude_home).get_session("test-session-123")

        assert session is not None
        assert session.project == "/home/testuser/test-project"
        assert session.timestamp == datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert session.metadata == {"summary": "JWT authentication walkthrough"}
        assert [m.role for m in session.messages] == ["user", "assistant", "user", "assistant"]
        assert session.messages[1].content == "For authentication, you can use JWT tokens."
        assert all("caveat" not in m.content for m in session.messages)

    def test_get_session_not_found(self, claude_home):
        source = ClaudeSource(claude_home)
        assert source.get_session("history-only-456") is None
        assert source.get_session("nope") is None

    def test_list_sessions(self, claude_home):
        sessions = ClaudeSource(claude_home).list_sessions()

        assert [s.session_id for s in sessions] == ["history-only-456", "test-session-123"]
        assert sessions[0].display == "Set up CI/CD pipeline with GitHub Actions"
        assert sessions[0].git_branch == "main"

    def test_list_sessions_filters(self, claude_home):
        source = ClaudeSource(claude_home)

        since = datetime(2025, 2, 1, 0, 30, tzinfo=timezone.utc)
        sessions = source.list_sessions(ListSessionsOptions(date_from=since))
        assert [s.session_id for s in sessions] == ["history-only-456"]

        sessions = source.list_sessions(ListSessionsOptions(project="test-project"))
        assert [s.session_id for s in sessions] == ["test-session-123"]

        assert len(source.list_sessions(ListSessionsOptions(limit=1))) == 1

    def test_memory_files(self, claude_home):
        files = ClaudeSource(claude_home).get_memory_files()

        kinds = {f.path.rsplit("/", 1)[-1]: f.kind for f in files}
        assert kinds == {"CLAUDE.md": "memory", "style.md": "rules", "notes.md": "memory"}
        assert all(f.source == "claude" for f in files)

    def test_plan_files(self, claude_home):
        [plan] = ClaudeSource(claude_home).get_plan_files()

        assert plan.kind == "plan"
        assert plan.path.endswith("rollout.md")
        assert "two phases" in plan.content


class TestCodexSource:
    def test_searchable_documents(self, codex_home):
        docs = {d.id: d for d in CodexSource(codex_home).get_searchable_documents()}

        assert set(docs) == {"codex:session:abc-123", "codex:history:def-456:1738371600"}

        session = docs["codex:session:abc-123"]
        assert session.project == "/home/testuser/chat"
        assert session.timestamp == 1738368000000
        assert session.display == "fix the flaky websocket test"
        assert session.message_count == 3
        assert "<environment_context>" not in session.text

        history = docs["codex:history:def-456:1738371600"]
        assert history.text == "bump the rust toolchain"
        assert history.timestamp == 1738371600000
        assert history.message_count is None

    def test_get_session_collapses_duplicate_replies(self, codex_home):
        session = CodexSource(codex_home).get_session("abc-123")

        assert session is not None
        assert session.project == "/home/testuser/chat"
        assert [(m.role, m.content) for m in session.messages] == [
            ("user", "fix the flaky websocket test"),
            ("assistant", "The reconnect timer leaks."),
        ]
        assert session.metadata["cli_version"] == "0.40.0"

    def test_get_session_not_found(self, codex_home):
        assert CodexSource(codex_home).get_session("def-456") is None

    def test_list_sessions(self, codex_home):
        sessions = CodexSource(codex_home).list_sessions()

        assert [s.session_id for s in sessions] == ["def-456", "abc-123"]
        assert sessions[1].timestamp == datetime(2025, 2, 1, tzinfo=timezone.utc)

    def test_memory_and_plan_files(self, codex_home):
        source = CodexSource(codex_home)
        files = source.get_memory_files()

        assert [(f.path.rsplit("/", 1)[-1], f.kind) for f in files] == [
            ("AGENTS.md", "memory"),
            ("shell.rules", "rules"),
        ]
        assert source.get_plan_files() == []


class TestGeminiSource:
    def test_is_available(self, gemini_home, tmp_path):
        assert GeminiSource(gemini_home).is_available()
        assert not GeminiSource(tmp_path / "nothing").is_available()

    def test_searchable_documents(self, gemini_home):
        docs = {d.id: d for d in GeminiSource(gemini_home).get_searchable_documents()}

        assert set(docs) == {"gemini:session:gem-001", "gemini:session:gem-002", "gemini:log:gem-cleared"}

        chat = docs["gemini:session:gem-001"]
        assert chat.text == "add retries to the http client\nWrapped requests in a backoff loop."
        assert chat.message_count == 2
        assert chat.timestamp == 1738368000000
        assert chat.display == "add retries to the http client"
        assert chat.file_path.endswith("session-2025-02-01T00-00-gem001.json")

        assert docs["gemini:session:gem-002"].display == "Tune the cache eviction"

        log = docs["gemini:log:gem-cleared"]
        assert log.text == "rewrite the yaml parser\nnow handle yaml anchors"
        assert log.display == "rewrite the yaml parser"
        assert log.message_count == 2
        assert log.timestamp == 1738576800000
        assert log.file_path is None

    def test_get_session(self, gemini_home):
        session = GeminiSource(gemini_home).get_session("gem-001")

        assert session is not None
        assert session.project == "/home/testuser/http"
        assert session.timestamp == datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert [(m.role, m.content) for m in session.messages] == [
            ("user", "add retries to the http client"),
            ("assistant", "Wrapped requests in a backoff loop."),
        ]
        assert session.messages[0].timestamp == datetime(2025, 2, 1, 0, 0, 1, tzinfo=timezone.utc)
        assert session.metadata == {"project_hash": "9f3ab2", "summary": None}

    def test_get_session_without_conversation(self, gemini_home):
        source = GeminiSource(gemini_home)

        assert source.get_session("gem-003") is None
        assert source.get_session("gem-cleared") is None
        assert source.get_session("missing") is None

    def test_list_sessions(self, gemini_home):
        source = GeminiSource(gemini_home)
        sessions = source.list_sessions()

        assert [s.session_id for s in sessions] == ["gem-002", "gem-001"]
        assert sessions[0].display == "Tune the cache eviction"
        assert sessions[1].display == "add retries to the http client"
        assert sessions[1].model == "gemini-2.5-pro"

        since = datetime(2025, 2, 2, tzinfo=timezone.utc)
        sessions = source.list_sessions(ListSessionsOptions(date_from=since))
        assert [s.session_id for s in sessions] == ["gem-002"]

        assert len(source.list_sessions(ListSessionsOptions(limit=1))) == 1

    def test_memory_and_plan_files(self, gemini_home):
        source = GeminiSource(gemini_home)

        [memory] = source.get_memory_files()
        assert memory.kind == "memory"
        assert memory.path.endswith("GEMINI.md")

        [plan] = source.get_plan_files()
        assert plan.kind == "plan"
        assert plan.path.endswith("parser.md")
        assert "yaml lexer" in plan.content

    def test_missing_directory_yields_nothing(self, tmp_path):
        source = GeminiSource(tmp_path / ".gemini")

        assert list(source.get_searchable_documents()) == []
        assert source.list_sessions() == []
        assert source.get_memory_files() == []
        assert source.get_plan_files() == []


class TestRegistry:
    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(tmp_path / "c"))
        monkeypatch.setenv("CODEX_HOME", str(tmp_path / "x"))
        monkeypatch.setenv("GEMINI_CLI_HOME", str(tmp_path / "g"))

        paths = resolve_agent_paths()
        assert paths == AgentPaths(
            claude=tmp_path / "c", codex=tmp_path / "x", gemini=tmp_path / "g" / ".gemini"
        )

    def test_gemini_defaults_to_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GEMINI_CLI_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert resolve_agent_paths().gemini == tmp_path / ".gemini"

    def test_discover_sources(self, claude_home, gemini_home, tmp_path):
        paths = AgentPaths(claude=claude_home, codex=tmp_path / "no-codex", gemini=gemini_home)

        assert [s.name for s in all_sources(paths)] == ["claude", "codex", "gemini"]
        assert [s.name for s in discover_sources(paths)] == ["claude", "gemini"]
