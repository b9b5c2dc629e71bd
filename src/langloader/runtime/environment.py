"""Shared execution environment for installed language modules."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)


class ExecutionEnvironment:
    """Namespace that installed plugins register their modules into.

    Entries live as long as the environment; there is no unregister.
    The ``plugin_url`` staging slot tells executing plugin source which
    plugin instance is being installed.
    """

    def __init__(self) -> None:
        self._modules: dict[str, Any] = {}
        self.plugin_url: str | None = None

    def register(self, name: str, module: Any) -> None:
        """Register a module object under ``name``, replacing any previous one."""
        if name in self._modules:
            logger.info(f"Replacing module '{name}' in execution environment")
        self._modules[name] = module

    def get(self, name: str, default: Any = None) -> Any:
        return self._modules.get(name, default)

    def names(self) -> list[str]:
        return list(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    @contextmanager
    def staging(self, url: str) -> Iterator[str]:
        """Hold ``url`` in the staging slot for the duration of an install.

        Raises:
            RuntimeError: If another install already occupies the slot.
        """
        if self.plugin_url is not None:
            raise RuntimeError(
                f"Cannot stage {url}: install of {self.plugin_url} is in progress"
            )
        self.plugin_url = url
        try:
            yield url
        finally:
            self.plugin_url = None
