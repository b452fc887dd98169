"""Corpus index: one in-memory full-text index over every source."""

import logging
import math
import threading
import time
from collections.abc import Iterable
from dataclasses import replace

from logbook.models import (
    MemoryFile,
    SearchableDocument,
    SearchOptions,
    SearchResult,
    resolve_document_type,
)
from logbook.snippets import extract_snippets
from logbook.sources.base import DocumentSource
from logbook.storage import (
    StoredHit,
    build_match_expression,
    count_documents,
    get_connection,
    init_schema,
    save_documents,
    search_corpus,
)
from logbook.timeutil import to_epoch_millis
from logbook.tokenizer import edit_distance, tokenize

logger = logging.getLogger(__name__)

# Fuzzy tolerance as a fraction of the query term length
FUZZY_RATIO = 0.2
MAX_FUZZY_EDITS = 6
# Fuzzy-only matches score below exact and prefix ones
FUZZY_WEIGHT = 0.45

# Documents longer than this are dampened by log2(length / threshold)
LENGTH_PENALTY_THRESHOLD = 500
LENGTH_PENALTY_WEIGHT = 0.5


def length_penalty(text_length: int) -> float:
    if text_length <= LENGTH_PENALTY_THRESHOLD:
        return 0.0
    return math.log2(text_length / LENGTH_PENALTY_THRESHOLD)


def normalize_score(raw_score: float, text_length: int) -> float:
    """Dampen a raw relevance score by document length.

    Long transcripts and memory files accumulate term frequency and would
    otherwise bury short, specific matches such as single prompts.
    """
    return raw_score / (1 + length_penalty(text_length) * LENGTH_PENALTY_WEIGHT)


def max_fuzzy_edits(term: str) -> int:
    return min(MAX_FUZZY_EDITS, int(len(term) * FUZZY_RATIO + 0.5))


def memory_document(source: str, memory_file: MemoryFile, document_type: str) -> SearchableDocument:
    return SearchableDocument(
        id=f"{source}:{document_type}:{memory_file.path}",
        source=source,
        file_path=memory_file.path,
        text=memory_file.content,
        document_type=document_type,
    )


def dedupe_documents(documents: Iterable[SearchableDocument]) -> list[SearchableDocument]:
    """Keep the first document for each id, preserving order."""
    seen: set[str] = set()
    unique: list[SearchableDocument] = []
    for doc in documents:
        if doc.id in seen:
            continue
        seen.add(doc.id)
        unique.append(doc)
    return unique


def merge_hits(
    hits: list[StoredHit], fuzzy_hits: list[StoredHit], fuzzy_weight: float
) -> list[StoredHit]:
    """Combine prefix and fuzzy hits per document, scaling fuzzy scores by `fuzzy_weight`."""
    merged = {hit.doc_id: hit for hit in hits}
    for hit in fuzzy_hits:
        scaled = hit.score * fuzzy_weight
        current = merged.get(hit.doc_id)
        if current is None:
            merged[hit.doc_id] = replace(hit, score=scaled)
        else:
            merged[hit.doc_id] = replace(current, score=current.score + scaled)
    return sorted(merged.values(), key=lambda h: (-h.score, h.rowid))


def _as_list(value: str | list[str] | None) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    return list(value)


class SearchEngine:
    """Full-text search over every source's documents.

    The index is built on the first search (or `build()`), once per
    engine. Concurrent first callers wait for the single in-flight build.
    """

    def __init__(self, sources: Iterable[DocumentSource]):
        self.sources = list(sources)
        self.built = False
        self._build_lock = threading.Lock()
        self._query_lock = threading.Lock()
        self._conn = None
        self._documents: list[SearchableDocument] = []
        self._by_id: dict[str, SearchableDocument] = {}
        self._vocabulary: set[str] = set()

    @property
    def documents(self) -> list[SearchableDocument]:
        self.build()
        return list(self._documents)

    def stats(self) -> dict[str, int]:
        """Indexed document counts per source."""
        self.build()
        with self._query_lock:
            return count_documents(self._conn)

    def build(self) -> None:
        """Build the index unless it already exists."""
        if self.built:
            return
        with self._build_lock:
            if self.built:
                return
            self._build()

    def _build(self) -> None:
        logger.info("Building search index...")
        start_time = time.time()

        documents: list[SearchableDocument] = []
        for source in self.sources:
            self._collect(source, documents)

        unique = dedupe_documents(documents)

        conn = get_connection()
        init_schema(conn)
        save_documents(conn, unique)

        vocabulary: set[str] = set()
        for doc in unique:
            vocabulary.update(tokenize(doc.text))
            vocabulary.update(tokenize(doc.project or ""))

        self._conn = conn
        self._documents = unique
        self._by_id = {doc.id: doc for doc in unique}
        self._vocabulary = vocabulary
        self.built = True

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info("Search index built: %d documents in %dms", len(unique), elapsed_ms)

    def _collect(self, source: DocumentSource, documents: list[SearchableDocument]) -> None:
        """Append a source's documents; a failing source keeps what it yielded so far."""
        try:
            if not source.is_available():
                logger.debug("Skipping unavailable source: %s", source.name)
                return
            for doc in source.get_searchable_documents():
                documents.append(doc)
            for memory_file in source.get_memory_files():
                documents.append(memory_document(source.name, memory_file, "memory"))
            for plan_file in source.get_plan_files():
                documents.append(memory_document(source.name, plan_file, "plan"))
        except Exception:
            logger.warning("Error indexing %s", source.name, exc_info=True)

    def fuzzy_variants(self, term: str) -> list[str]:
        """Indexed tokens within the term's fuzzy distance.

        Tokens the term already reaches as a prefix are left out.
        """
        max_edits = max_fuzzy_edits(term)
        if max_edits == 0:
            return []
        return sorted(
            token
            for token in self._vocabulary
            if not token.startswith(term)
            and abs(len(token) - len(term)) <= max_edits
            and edit_distance(token, term) <= max_edits
        )

    def _query_terms(self, query: str, fuzzy: bool) -> tuple[list[str], list[str]]:
        """Split a query into prefix-matched terms and fuzzy-only variants."""
        terms = list(dict.fromkeys(tokenize(query)))
        variants: list[str] = []
        if fuzzy:
            for term in terms:
                variants.extend(self.fuzzy_variants(term))
        prefixes = tuple(terms)
        return terms, [v for v in dict.fromkeys(variants) if not v.startswith(prefixes)]

    def search(self, options: SearchOptions) -> list[SearchResult]:
        """Ranked, filtered, snippet-annotated search.

        Filters run in order (source, date, type, project, message count),
        then scores are length-normalized and results re-sorted.
        """
        self.build()

        terms, variants = self._query_terms(options.query, options.fuzzy)
        if not terms:
            return []

        sources = None
        if options.source != "all":
            sources = [s for s in _as_list(options.source) or [] if s != "all"] or None
        with self._query_lock:
            hits = search_corpus(self._conn, build_match_expression(terms, prefix=True), sources)
            fuzzy_hits = search_corpus(self._conn, build_match_expression(variants), sources)
        hits = merge_hits(hits, fuzzy_hits, FUZZY_WEIGHT)

        date_from = to_epoch_millis(options.date_from)
        date_to = to_epoch_millis(options.date_to)
        if date_from is not None or date_to is not None:
            hits = [h for h in hits if self._in_date_range(h, date_from, date_to)]

        allowed_types = _as_list(options.document_type)
        if allowed_types is not None:
            hits = [
                h
                for h in hits
                if resolve_document_type(h.document_type, self._lookup(h)) in allowed_types
            ]

        if options.project:
            project_filter = options.project.lower()
            hits = [h for h in hits if not h.project or project_filter in h.project.lower()]

        if options.min_message_count is not None:
            hits = [h for h in hits if self._has_min_messages(h, options.min_message_count)]

        results = [self._to_result(h, options) for h in hits]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[: options.limit]

    def _lookup(self, hit: StoredHit) -> SearchableDocument | None:
        return self._by_id.get(hit.doc_id)

    @staticmethod
    def _in_date_range(hit: StoredHit, date_from: int | None, date_to: int | None) -> bool:
        # Undated documents always pass; both bounds are inclusive
        if hit.timestamp is None:
            return True
        if date_from is not None and hit.timestamp < date_from:
            return False
        if date_to is not None and hit.timestamp > date_to:
            return False
        return True

    def _has_min_messages(self, hit: StoredHit, minimum: int) -> bool:
        doc = self._lookup(hit)
        message_count = doc.message_count if doc is not None else None
        # Memory/plan files and history entries have no message count
        return message_count is None or message_count >= minimum

    def _to_result(self, hit: StoredHit, options: SearchOptions) -> SearchResult:
        doc = self._lookup(hit)
        text = doc.text if doc is not None else ""
        snippets, match_count = extract_snippets(text, options.query, options.max_snippets)
        return SearchResult(
            id=hit.doc_id,
            source=hit.source,
            document_type=resolve_document_type(hit.document_type, doc),
            score=normalize_score(hit.score, len(text)),
            matched_text=snippets[0].text if snippets else "",
            snippets=snippets,
            match_count=match_count,
            session_id=hit.session_id,
            timestamp=hit.timestamp,
            project=hit.project,
            file_path=hit.file_path,
            display=hit.display,
            message_count=doc.message_count if doc is not None else None,
        )
