"""Source discovery."""

import logging

from logbook.config import AgentPaths, resolve_agent_paths
from logbook.sources.base import DocumentSource
from logbook.sources.claude import ClaudeSource
from logbook.sources.codex import CodexSource
from logbook.sources.gemini import GeminiSource

logger = logging.getLogger(__name__)

SOURCE_NAMES: tuple[str, ...] = ("claude", "codex", "gemini")


def all_sources(paths: AgentPaths | None = None) -> list[DocumentSource]:
    """Every known source, available or not."""
    paths = paths or resolve_agent_paths()
    return [ClaudeSource(paths.claude), CodexSource(paths.codex), GeminiSource(paths.gemini)]


def discover_sources(paths: AgentPaths | None = None) -> list[DocumentSource]:
    """Sources whose data directory exists on this machine."""
    available: list[DocumentSource] = []
    for source in all_sources(paths):
        if source.is_available():
            logger.info("Discovered source: %s (%s)", source.display_name, source.base_path)
            available.append(source)
        else:
            logger.debug("Source not found: %s (%s)", source.display_name, source.base_path)

    if not available:
        logger.warning("No agent data directories found")
    return available
