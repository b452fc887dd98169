"""In-memory SQLite FTS5 storage for the corpus index.

FTS5 never sees raw words. Each token from `logbook.tokenizer` is stored as
the hex of its UTF-8 bytes, a single alphanumeric FTS token, so symbols
(`c#`, `c++`, `foo@bar`) and diacritics survive and prefix queries on an
encoded term still mean "token starts with this term".
"""

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass

from logbook.models import SearchableDocument
from logbook.tokenizer import tokenize

# Column weights for bm25(): text, project
TEXT_BOOST = 2.0
PROJECT_BOOST = 1.0


@dataclass
class StoredHit:
    """A raw FTS hit with the metadata stored alongside the indexed columns."""

    rowid: int
    doc_id: str
    score: float
    source: str
    session_id: str | None
    timestamp: int | None
    project: str | None
    document_type: str | None
    file_path: str | None
    display: str | None


def get_connection() -> sqlite3.Connection:
    """Open a private in-memory database."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript("""
        -- text/project hold encoded tokens, the rest is stored only
        CREATE VIRTUAL TABLE IF NOT EXISTS corpus_fts USING fts5(
            text,
            project,
            doc_id UNINDEXED,
            source UNINDEXED,
            session_id UNINDEXED,
            timestamp UNINDEXED,
            project_path UNINDEXED,
            document_type UNINDEXED,
            file_path UNINDEXED,
            display UNINDEXED,
            tokenize = 'ascii'
        );
    """)
    conn.commit()


def encode_token(token: str) -> str:
    """Encode a token as one FTS5 word; a prefix of a token encodes to a prefix."""
    return token.encode("utf-8").hex()


def encode_text(text: str) -> str:
    return " ".join(encode_token(t) for t in tokenize(text))


def save_documents(conn: sqlite3.Connection, documents: Iterable[SearchableDocument]) -> int:
    """Insert documents, using their position as rowid. Returns the count."""
    rows = [
        (
            rowid,
            encode_text(doc.text),
            encode_text(doc.project or ""),
            doc.id,
            doc.source,
            doc.session_id,
            doc.timestamp,
            doc.project,
            doc.document_type,
            doc.file_path,
            doc.display,
        )
        for rowid, doc in enumerate(documents)
    ]
    conn.executemany(
        """
        INSERT INTO corpus_fts (
            rowid, text, project, doc_id, source, session_id, timestamp,
            project_path, document_type, file_path, display
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        rows,
    )
    conn.commit()
    return len(rows)


def quote_term(term: str, prefix: bool = False) -> str:
    """Encode and quote a token as an FTS5 string, optionally as a prefix query."""
    quoted = f'"{encode_token(term)}"'
    return quoted + "*" if prefix else quoted


def build_match_expression(terms: Iterable[str], prefix: bool = False) -> str:
    """OR together tokens, each optionally matched as a prefix."""
    return " OR ".join(quote_term(t, prefix=prefix) for t in terms)


def search_corpus(
    conn: sqlite3.Connection,
    match_expression: str,
    sources: list[str] | None = None,
) -> list[StoredHit]:
    """Run a full-text query, best first.

    Returns every matching row with its engine-native relevance (bm25,
    negated so that higher is better).
    """
    if not match_expression:
        return []

    sql = f"""
        SELECT rowid, doc_id, bm25(corpus_fts, {TEXT_BOOST}, {PROJECT_BOOST}) AS score,
               source, session_id, timestamp, project_path, document_type,
               file_path, display
        FROM corpus_fts
        WHERE corpus_fts MATCH ?
    """
    params: list[object] = [match_expression]

    if sources is not None:
        placeholders = ", ".join("?" for _ in sources)
        sql += f" AND source IN ({placeholders})"
        params.extend(sources)

    sql += " ORDER BY score, rowid"

    rows = conn.execute(sql, params).fetchall()
    return [
        StoredHit(
            rowid=row["rowid"],
            doc_id=row["doc_id"],
            score=-row["score"],
            source=row["source"],
            session_id=row["session_id"],
            timestamp=int(row["timestamp"]) if row["timestamp"] is not None else None,
            project=row["project_path"],
            document_type=row["document_type"],
            file_path=row["file_path"],
            display=row["display"],
        )
        for row in rows
    ]


def count_documents(conn: sqlite3.Connection) -> dict[str, int]:
    """Count indexed documents per source."""
    rows = conn.execute(
        "SELECT source, COUNT(*) AS n FROM corpus_fts GROUP BY source ORDER BY source"
    ).fetchall()
    return {row["source"]: row["n"] for row in rows}
