"""Loader configuration and definition files."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from langloader import __version__
from langloader.errors import DefinitionParseError
from langloader.plugins.definition import PluginDefinition

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class LoaderConfig:
    """Configuration for fetching and installing language plugins."""

    # HTTP
    timeout: float = 30.0
    follow_redirects: bool = True
    verify_ssl: bool = True
    user_agent: str = f"langloader/{__version__}"

    # Definitions known before any plugin is submitted
    definitions_file: Path | None = None

    @classmethod
    def from_env(cls) -> LoaderConfig:
        """Build a config from ``LANGLOADER_*`` environment variables."""
        config = cls()
        timeout = os.getenv("LANGLOADER_TIMEOUT")
        if timeout:
            try:
                config.timeout = float(timeout)
            except ValueError:
                logger.warning(f"Ignoring invalid LANGLOADER_TIMEOUT={timeout!r}")
        definitions = os.getenv("LANGLOADER_DEFINITIONS")
        if definitions:
            config.definitions_file = Path(definitions)
        config.user_agent = os.getenv("LANGLOADER_USER_AGENT", config.user_agent)
        config.verify_ssl = _env_bool("LANGLOADER_VERIFY_SSL", config.verify_ssl)
        return config


def _entries(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if "languages" in data:
            return list(data["languages"])
        # Mapping of language id -> definition
        entries = []
        for language_id, entry in data.items():
            if isinstance(entry, dict):
                entry = {"id": language_id, **entry}
            entries.append(entry)
        return entries
    return []


def load_definitions_file(path: str | Path) -> list[PluginDefinition]:
    """Load language definitions from a JSON file.

    The file may hold a list of definitions, ``{"languages": [...]}``, or a
    mapping of language id to definition. Entries that are not objects are
    skipped with a warning, as are entries with non-string fields.
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Definitions file not found: {path}")
        return []

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DefinitionParseError(f"{path}: {e}") from e

    definitions = []
    for entry in _entries(data):
        if not isinstance(entry, dict):
            logger.warning(f"Skipping invalid definition in {path}: {entry!r}")
            continue
        try:
            definitions.append(PluginDefinition.from_dict(entry))
        except DefinitionParseError as e:
            logger.warning(f"Skipping invalid definition in {path}: {e}")
    logger.info(f"Loaded {len(definitions)} language definitions from {path}")
    return definitions
