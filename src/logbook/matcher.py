"""Message-level query matching for reading a single session.

This works on a session fetched fresh from its source, not on the corpus
index: each message either matches the query or it doesn't.
"""

from dataclasses import dataclass, field
from typing import Any

from logbook.errors import SessionNotFoundError, SourceNotFoundError
from logbook.models import IndexedMessage, MatchWindow, Message, Session
from logbook.sources.base import DocumentSource
from logbook.tokenizer import is_fuzzy_match, tokenize


def matches_message(text: str, query_words: list[str]) -> bool:
    """Check whether every query word occurs in `text`.

    Exact case-insensitive substrings are tried first. Failing that, each
    query word must be within the fuzzy threshold of some message token.
    An empty query matches nothing.
    """
    if not query_words:
        return False

    lower = text.lower()
    if all(word in lower for word in query_words):
        return True

    tokens = tokenize(text)
    return all(any(is_fuzzy_match(token, word) for token in tokens) for word in query_words)


def find_match_indices(messages: list[Message], query_words: list[str]) -> list[int]:
    return [i for i, m in enumerate(messages) if matches_message(m.content, query_words)]


@dataclass
class ContextSlice:
    """Result of single-match extraction.

    `match_index` is a position in the context-narrowed list, before
    pagination, so it can point outside the returned page; None when there
    was no query or no match. Each message's `index` is a position in the
    same narrowed list. `window_start` is the absolute index of the
    narrowed list's first message.
    """

    messages: list[IndexedMessage]
    match_index: int | None
    window_start: int = 0


def extract_context(
    messages: list[Message],
    query_words: list[str],
    context_window: int | None = None,
    offset: int | None = None,
    limit: int | None = None,
) -> ContextSlice:
    """Narrow a session around its first match, then paginate.

    Pagination applies after context narrowing, so offset/limit cannot
    reach messages the context window already excluded.
    """
    selected = messages
    window_start = 0
    match_index: int | None = None

    if query_words:
        found = find_match_indices(messages, query_words)
        if found:
            match_index = found[0]
            if context_window is not None:
                window_start = max(0, match_index - context_window)
                end = min(len(messages), match_index + context_window + 1)
                selected = messages[window_start:end]
                match_index -= window_start

    slice_start = min(offset, len(selected)) if offset and offset > 0 else 0
    page = selected[slice_start:]
    if limit is not None:
        page = page[:limit]

    return ContextSlice(
        messages=[
            IndexedMessage(
                index=slice_start + i,
                message=m,
                matched=match_index is not None and slice_start + i == match_index,
            )
            for i, m in enumerate(page)
        ],
        match_index=match_index,
        window_start=window_start,
    )


def build_match_windows(
    messages: list[Message],
    match_indices: list[int],
    context_window: int = 0,
    max_matches: int | None = None,
) -> list[MatchWindow]:
    """Build context windows around matches, merging overlapping ones.

    Windows that overlap or touch (next start <= previous end + 1) are
    merged into one carrying the union of matched indices. `max_matches`
    caps the number of match locations considered, in session order.
    """
    if not messages:
        return []

    selected = sorted(match_indices)
    if max_matches:
        selected = selected[:max_matches]

    last_index = len(messages) - 1
    merged: list[MatchWindow] = []
    for idx in selected:
        start = max(0, idx - context_window)
        end = min(last_index, idx + context_window)
        if merged and start <= merged[-1].end_index + 1:
            previous = merged[-1]
            previous.end_index = max(previous.end_index, end)
            previous.matched_indices.append(idx)
        else:
            merged.append(MatchWindow(start_index=start, end_index=end, matched_indices=[idx]))

    for window in merged:
        matched = set(window.matched_indices)
        window.messages = [
            IndexedMessage(index=i, message=messages[i], matched=i in matched)
            for i in range(window.start_index, window.end_index + 1)
        ]
    return merged


@dataclass
class SessionRead:
    """A drill-down read of one session."""

    session: Session
    total_messages: int
    query: str | None = None
    total_matches: int = 0
    all_match_indices: list[int] = field(default_factory=list)
    query_not_found: bool = False
    # single-match mode
    messages: list[IndexedMessage] = field(default_factory=list)
    matched_message_index: int | None = None
    window_start: int = 0
    # all-matches mode
    windows: list[MatchWindow] | None = None
    windowed_matches: int = 0

    def to_dict(self) -> dict[str, Any]:
        session = self.session
        output: dict[str, Any] = {
            "source": session.source,
            "session_id": session.session_id,
            "timestamp": session.timestamp.isoformat(),
            "project": session.project,
            "total_messages": self.total_messages,
        }
        if self.query is not None:
            output["total_matches"] = self.total_matches
        if self.query_not_found:
            output["query_not_found"] = True
            if self.windows is not None:
                return output

        output["metadata"] = session.metadata
        if self.windows is not None:
            output["windowed_matches"] = self.windowed_matches
            output["windows"] = [
                {
                    "start_index": w.start_index,
                    "end_index": w.end_index,
                    "matched_indices": w.matched_indices,
                    "messages": [_message_dict(m) for m in w.messages],
                }
                for w in self.windows
            ]
            return output

        output["returned_messages"] = len(self.messages)
        output["window_start"] = self.window_start
        output["messages"] = [_message_dict(m) for m in self.messages]
        if self.matched_message_index is not None:
            output["matched_message_index"] = self.matched_message_index
            output["all_match_indices"] = self.all_match_indices
        return output


def _message_dict(indexed: IndexedMessage) -> dict[str, Any]:
    message = indexed.message
    data: dict[str, Any] = {
        "index": indexed.index,
        "role": message.role,
        "content": message.content,
        "timestamp": message.timestamp.isoformat() if message.timestamp else None,
    }
    if indexed.matched:
        data["matched"] = True
    return data


def read_session(
    sources: list[DocumentSource],
    source_name: str,
    session_id: str,
    query: str | None = None,
    context_window: int | None = None,
    all_matches: bool = False,
    max_matches: int | None = None,
    offset: int | None = None,
    limit: int | None = None,
) -> SessionRead:
    """Fetch a session and select the messages to show.

    Raises SourceNotFoundError or SessionNotFoundError on lookup failure.
    A query that matches nothing is reported through `query_not_found`.
    """
    source = next((s for s in sources if s.name == source_name), None)
    if source is None:
        raise SourceNotFoundError(source_name)

    session = source.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(source_name, session_id)

    messages = session.messages
    query_words = tokenize(query) if query else []
    match_indices = find_match_indices(messages, query_words)

    result = SessionRead(
        session=session,
        total_messages=len(messages),
        query=query,
        total_matches=len(match_indices),
        all_match_indices=match_indices,
        query_not_found=bool(query) and not match_indices,
    )

    if query and all_matches:
        windows = build_match_windows(messages, match_indices, context_window or 0, max_matches)
        result.windows = windows
        result.windowed_matches = sum(len(w.matched_indices) for w in windows)
        return result

    context = extract_context(messages, query_words, context_window, offset, limit)
    result.messages = context.messages
    result.matched_message_index = context.match_index
    result.window_start = context.window_start
    return result
