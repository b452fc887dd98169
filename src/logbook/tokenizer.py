"""Shared tokenizer and edit distance.

Indexing, snippet extraction and session message matching all split text
with these functions, so "search" and "read" agree on what a word is.
"""

import re
from collections.abc import Iterator

# Whitespace plus - _ . / \ : , ; ( ) [ ] { } < > ' "
SEPARATORS = r"\s\-_./\\:,;()\[\]{}<>'\""
TOKENIZER_RE = re.compile(f"[{SEPARATORS}]+")
WORD_RE = re.compile(f"[^{SEPARATORS}]+")

# Fuzzy threshold shared by snippet extraction and message matching
MAX_FUZZY_DISTANCE = 2
MAX_FUZZY_LENGTH_DIFF = 2


def tokenize(text: str) -> list[str]:
    """Split text into lowercase tokens, dropping tokens of length <= 1."""
    return [t for t in TOKENIZER_RE.split(text.lower()) if len(t) > 1]


def iter_tokens(text: str) -> Iterator[tuple[int, str]]:
    """Yield (offset, token) for every token of `text`.

    Tokens are the same as `tokenize` produces; offsets index into
    `text.lower()`.
    """
    for match in WORD_RE.finditer(text.lower()):
        token = match.group()
        if len(token) > 1:
            yield match.start(), token


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance (single-row dynamic program, unit costs).

    No length cap is applied; callers bound the input size.
    """
    row = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        prev = row[0]
        row[0] = i
        for j in range(1, len(b) + 1):
            temp = row[j]
            if a[i - 1] == b[j - 1]:
                row[j] = prev
            else:
                row[j] = 1 + min(prev, row[j], row[j - 1])
            prev = temp
    return row[len(b)]


def is_fuzzy_match(token: str, word: str) -> bool:
    """Check whether `token` is within the shared fuzzy threshold of `word`."""
    if abs(len(token) - len(word)) > MAX_FUZZY_LENGTH_DIFF:
        return False
    return edit_distance(token, word) <= MAX_FUZZY_DISTANCE
