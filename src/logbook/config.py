"""Paths and logging configuration."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "LOGBOOK_LOG_LEVEL"


@dataclass(frozen=True)
class AgentPaths:
    claude: Path
    codex: Path
    gemini: Path


def resolve_agent_paths() -> AgentPaths:
    """Resolve each agent's data directory, honoring env var overrides.

    - CLAUDE_CONFIG_DIR replaces ~/.claude
    - CODEX_HOME replaces ~/.codex
    - GEMINI_CLI_HOME replaces the home directory that holds .gemini
    """
    home = Path.home()
    claude = os.environ.get("CLAUDE_CONFIG_DIR") or home / ".claude"
    codex = os.environ.get("CODEX_HOME") or home / ".codex"
    gemini = Path(os.environ.get("GEMINI_CLI_HOME") or home) / ".gemini"
    return AgentPaths(claude=Path(claude), codex=Path(codex), gemini=gemini)


def resolve_log_level(verbose: bool = False) -> int:
    """DEBUG when verbose, else the env level; unknown names fall back to WARNING."""
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(verbose: bool = False) -> None:
    """Send library logs to stderr through rich, keeping stdout for results."""
    logging.basicConfig(
        level=resolve_log_level(verbose),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
