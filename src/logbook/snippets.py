"""Snippet extraction: locate query matches in a document and excerpt them."""

from dataclasses import dataclass, field

from logbook.models import Snippet
from logbook.tokenizer import is_fuzzy_match, iter_tokens, tokenize

# Bound the scan cost on huge documents
MAX_MATCH_POSITIONS = 100
CONTEXT_CHARS = 150


@dataclass
class MatchPositions:
    """Match offsets found in a lowercased text."""

    positions: list[int]  # sorted, deduplicated
    match_count: int  # raw occurrences, before dedup
    position_terms: dict[int, list[str]] = field(default_factory=dict)


def find_match_positions(lower_text: str, query_words: list[str]) -> MatchPositions:
    """Find every offset where a query word matches in `lower_text`.

    Phase 1 scans for exact substrings. Phase 2 runs only when phase 1
    found nothing and compares each document token against the query words
    by edit distance.
    """
    found: list[int] = []
    position_terms: dict[int, list[str]] = {}

    def add_position(pos: int, term: str) -> None:
        found.append(pos)
        terms = position_terms.setdefault(pos, [])
        if term not in terms:
            terms.append(term)

    for word in query_words:
        search_from = 0
        while len(found) < MAX_MATCH_POSITIONS:
            pos = lower_text.find(word, search_from)
            if pos == -1:
                break
            add_position(pos, word)
            search_from = pos + len(word)

    if not found:
        for start, token in iter_tokens(lower_text):
            if len(found) >= MAX_MATCH_POSITIONS:
                break
            for word in query_words:
                if is_fuzzy_match(token, word):
                    add_position(start, word)

    return MatchPositions(
        positions=sorted(set(found)),
        match_count=len(found),
        position_terms=position_terms,
    )


def select_centers(positions: list[int], max_snippets: int, min_separation: int) -> list[int]:
    """Greedily pick snippet centers at least `min_separation` apart."""
    selected: list[int] = []
    for pos in positions:
        if selected and pos - selected[-1] < min_separation:
            continue
        selected.append(pos)
        if len(selected) >= max_snippets:
            break
    return selected


def extract_snippets(
    text: str,
    query: str,
    max_snippets: int = 3,
    context_chars: int = CONTEXT_CHARS,
) -> tuple[list[Snippet], int]:
    """Extract up to `max_snippets` non-overlapping excerpts around matches.

    Returns the snippets and the raw number of match occurrences found in
    the whole text (not only in the returned snippets). When nothing
    matches, a single snippet with the start of the text is returned and
    the count is 0. Empty text yields no snippets.
    """
    if not text:
        return [], 0

    lower_text = text.lower()
    query_words = tokenize(query)
    matches = find_match_positions(lower_text, query_words)

    window = context_chars * 2
    if not matches.positions:
        fallback = text[:window].strip()
        if len(text) > window:
            fallback += "..."
        return [Snippet(text=fallback, match_terms=[])], 0

    snippets: list[Snippet] = []
    for center in select_centers(matches.positions, max_snippets, window):
        start = max(0, center - context_chars)
        end = min(len(text), center + context_chars)
        snippet_text = text[start:end].strip()
        if start > 0:
            snippet_text = "..." + snippet_text
        if end < len(text):
            snippet_text = snippet_text + "..."

        snippet_lower = snippet_text.lower()
        match_terms: list[str] = []
        for word in query_words:
            if word in snippet_lower and word not in match_terms:
                match_terms.append(word)
        for term in matches.position_terms.get(center, []):
            if term not in match_terms:
                match_terms.append(term)

        snippets.append(Snippet(text=snippet_text, match_terms=match_terms))

    return snippets, matches.match_count
