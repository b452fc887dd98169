"""Data models for logbook."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

DOCUMENT_TYPES: tuple[str, ...] = ("conversation", "memory", "plan", "knowledge")
DEFAULT_DOCUMENT_TYPE = "conversation"


@dataclass(frozen=True)
class SearchableDocument:
    """One indexable unit: a conversation digest, memory file or plan file."""

    id: str
    source: str
    text: str
    document_type: str = DEFAULT_DOCUMENT_TYPE
    session_id: str | None = None
    timestamp: int | None = None  # epoch millis
    project: str | None = None
    file_path: str | None = None
    display: str | None = None  # <= 200 chars
    message_count: int | None = None  # only for full transcripts


@dataclass
class MemoryFile:
    """A memory, rules or plan file read from an agent's data directory."""

    source: str
    path: str
    content: str
    kind: str  # "memory" | "rules" | "plan" | "knowledge" | "todo"


@dataclass
class Message:
    """A single message within a session."""

    role: str  # "user" | "assistant" | "system" | "tool"
    content: str
    timestamp: datetime | None = None


@dataclass
class Session:
    """A full conversation, read on demand from its source."""

    source: str
    session_id: str
    timestamp: datetime
    messages: list[Message]
    project: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionSummary:
    """A session listing entry."""

    source: str
    session_id: str
    timestamp: datetime
    project: str | None = None
    display: str | None = None
    git_branch: str | None = None
    model: str | None = None


@dataclass
class ListSessionsOptions:
    date_from: datetime | None = None
    date_to: datetime | None = None
    project: str | None = None
    limit: int | None = None


@dataclass
class Snippet:
    """An excerpt of a document centered on a match."""

    text: str
    match_terms: list[str] = field(default_factory=list)


@dataclass
class SearchOptions:
    """Options for a corpus search.

    `source` and `document_type` accept a single name or a list; `source`
    also accepts "all". Documents without a timestamp, project or message
    count are never excluded by the corresponding filter.
    """

    query: str
    source: str | list[str] = "all"
    date_from: datetime | None = None
    date_to: datetime | None = None
    project: str | None = None
    document_type: str | list[str] | None = None
    fuzzy: bool = True
    limit: int = 20
    max_snippets: int = 3
    min_message_count: int | None = None


@dataclass
class SearchResult:
    """A ranked, snippet-annotated view of one document for one query."""

    id: str
    source: str
    document_type: str
    score: float
    matched_text: str
    snippets: list[Snippet]
    match_count: int
    session_id: str | None = None
    timestamp: int | None = None
    project: str | None = None
    file_path: str | None = None
    display: str | None = None
    message_count: int | None = None


@dataclass
class IndexedMessage:
    """A message together with its position, as returned by a session read."""

    index: int
    message: Message
    matched: bool = False


@dataclass
class MatchWindow:
    """A contiguous range of session messages around one or more matches."""

    start_index: int
    end_index: int
    matched_indices: list[int]
    messages: list[IndexedMessage] = field(default_factory=list)


def resolve_document_type(
    stored: str | None, document: SearchableDocument | None = None
) -> str:
    """Resolve a hit's document type.

    The value stored in the index wins; otherwise the type of the document
    looked up by id; otherwise DEFAULT_DOCUMENT_TYPE.
    """
    if stored:
        return stored
    if document is not None and document.document_type:
        return document.document_type
    return DEFAULT_DOCUMENT_TYPE
