"""Readers for each agent's local data directory."""

from logbook.sources.base import DocumentSource
from logbook.sources.claude import ClaudeSource
from logbook.sources.codex import CodexSource
from logbook.sources.gemini import GeminiSource
from logbook.sources.registry import SOURCE_NAMES, all_sources, discover_sources

__all__ = [
    "SOURCE_NAMES",
    "ClaudeSource",
    "CodexSource",
    "DocumentSource",
    "GeminiSource",
    "all_sources",
    "discover_sources",
]
