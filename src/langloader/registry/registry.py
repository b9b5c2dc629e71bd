"""Registry of known and loaded languages."""

from __future__ import annotations

import asyncio
import logging
import uuid
from types import MappingProxyType
from typing import TYPE_CHECKING

from thefuzz import fuzz, process

from langloader.errors import MissingUrlField, UnknownLanguage
from langloader.registry.state import (
    DEFINITION_KNOWN,
    INSTALLING,
    UNKNOWN,
    LoadState,
    LoadStatus,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from langloader.plugins.definition import PluginDefinition
    from langloader.plugins.fetcher import PluginFetcher
    from langloader.plugins.installer import PluginInstaller
    from langloader.reporting import ProgressReporter
    from langloader.runtime.dispatcher import LanguageHandle

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    return uuid.uuid4().hex


class LanguageRegistry:
    """Tracks language definitions and installed languages.

    The registry is the only writer of its mappings. Loads for the same
    language id are coalesced, and installs are serialized because they
    share the environment's staging slot.
    """

    def __init__(
        self,
        fetcher: PluginFetcher,
        installer: PluginInstaller,
        reporter: ProgressReporter,
        definitions: Iterable[PluginDefinition] | None = None,
        id_factory: Callable[[], str] = new_request_id,
        suggestion_threshold: int = 70,
    ) -> None:
        """Initialize registry.

        Args:
            fetcher: Downloads plugin source
            installer: Installs downloaded source
            reporter: Receives status messages
            definitions: Definitions known up front (from configuration)
            id_factory: Creates request ids when a caller passes none
            suggestion_threshold: Minimum similarity (0-100) for "did you mean" hints
        """
        self.fetcher = fetcher
        self.installer = installer
        self.reporter = reporter
        self.id_factory = id_factory
        self.suggestion_threshold = suggestion_threshold

        self._definitions: dict[str, PluginDefinition] = {}
        self._loaded: dict[str, LanguageHandle] = {}
        self._states: dict[str, LoadState] = {}
        self._inflight: dict[str, asyncio.Task[LanguageHandle]] = {}
        self._loading: dict[str, PluginDefinition] = {}
        self._install_lock = asyncio.Lock()
        self._listeners: list[Callable[[PluginDefinition], None]] = []

        for definition in definitions or ():
            self.register_definition(definition)

    @property
    def definitions(self) -> Mapping[str, PluginDefinition]:
        """All known definitions by language id."""
        return MappingProxyType(self._definitions)

    @property
    def loaded(self) -> Mapping[str, LanguageHandle]:
        """Installed languages by language id."""
        return MappingProxyType(self._loaded)

    def is_loaded(self, language_id: str) -> bool:
        return language_id in self._loaded

    def state(self, language_id: str) -> LoadState:
        """Get the load state for a language id."""
        if language_id in self._states:
            return self._states[language_id]
        if language_id in self._definitions:
            return DEFINITION_KNOWN
        return UNKNOWN

    def add_listener(self, callback: Callable[[PluginDefinition], None]) -> None:
        """Call ``callback`` with the definition of every newly loaded language."""
        self._listeners.append(callback)

    def register_definition(self, definition: PluginDefinition) -> None:
        """Add or replace a language definition."""
        previous = self._definitions.get(definition.id)
        self._definitions[definition.id] = definition
        if previous is not None and previous != definition:
            logger.info(f"Replaced definition for language '{definition.id}'")
        state = self._states.get(definition.id)
        if state is not None and state.status is LoadStatus.FAILED:
            del self._states[definition.id]

    async def ensure_available(
        self,
        language_id: str,
        request_id: str | None = None,
    ) -> LanguageHandle:
        """Make sure a language is installed and return its handle.

        Raises:
            UnknownLanguage: Neither loaded nor defined
            PluginLoadError: Fetching or installing failed
        """
        handle = self._loaded.get(language_id)
        if handle is not None:
            return handle

        inflight = self._inflight.get(language_id)
        if inflight is not None:
            logger.debug(f"Attaching to in-flight load of '{language_id}'")
            return await asyncio.shield(inflight)

        definition = self._definitions.get(language_id)
        if definition is None:
            raise UnknownLanguage(language_id, self._suggest(language_id))

        request_id = request_id or self.id_factory()
        self.reporter.report(request_id, f"Loading {definition.display_name} language plugin")
        return await self._start_load(definition, request_id)

    async def load_definition(
        self,
        definition: PluginDefinition,
        request_id: str | None = None,
    ) -> LanguageHandle:
        """Register a submitted definition and load it, even if loaded before.

        A load already in flight for the same definition is shared. One for
        a different definition of the same id is allowed to settle first.
        A previously loaded handle stays in place until the new load succeeds.
        """
        self.register_definition(definition)

        inflight = self._inflight.get(definition.id)
        while inflight is not None:
            if self._loading.get(definition.id) == definition:
                return await asyncio.shield(inflight)
            logger.debug(f"Waiting for in-flight load of '{definition.id}' before reloading")
            await asyncio.wait({inflight})
            inflight = self._inflight.get(definition.id)

        return await self._start_load(definition, request_id or self.id_factory())

    async def _start_load(self, definition: PluginDefinition, request_id: str) -> LanguageHandle:
        language_id = definition.id
        task = asyncio.ensure_future(self._load(definition, request_id))
        self._inflight[language_id] = task
        self._loading[language_id] = definition

        def _forget(done: asyncio.Task[LanguageHandle]) -> None:
            if self._inflight.get(language_id) is done:
                del self._inflight[language_id]
                del self._loading[language_id]

        task.add_done_callback(_forget)
        return await asyncio.shield(task)

    async def _load(self, definition: PluginDefinition, request_id: str) -> LanguageHandle:
        language_id = definition.id

        if not definition.is_installable:
            error = MissingUrlField()
            self.reporter.report(request_id, str(error))
            self._mark_failed(language_id, str(error))
            raise error

        def _progress(loaded: int, total: int | None) -> None:
            self._states[language_id] = LoadState(
                LoadStatus.DOWNLOADING, bytes_loaded=loaded, bytes_total=total
            )

        self._states[language_id] = LoadState(LoadStatus.DOWNLOADING)
        try:
            source = await self.fetcher.fetch(
                definition.url,
                request_id,
                display_name=definition.display_name,
                on_progress=_progress,
            )
            async with self._install_lock:
                self._states[language_id] = INSTALLING
                handle = await self.installer.install(source, definition, request_id)
        except Exception as e:
            self._mark_failed(language_id, str(e))
            logger.warning(f"Loading language '{language_id}' failed: {e}")
            raise

        self._loaded[language_id] = handle
        self._states[language_id] = LoadState(LoadStatus.READY, handle=handle)
        self._notify(definition)
        return handle

    def _mark_failed(self, language_id: str, reason: str) -> None:
        previous = self._loaded.get(language_id)
        if previous is not None:
            # a failed reload leaves the installed language usable
            self._states[language_id] = LoadState(LoadStatus.READY, handle=previous)
        else:
            self._states[language_id] = LoadState(LoadStatus.FAILED, reason=reason)

    def _notify(self, definition: PluginDefinition) -> None:
        for callback in self._listeners:
            try:
                callback(definition)
            except Exception:
                logger.exception(f"Language listener failed for '{definition.id}'")

    def _suggest(self, language_id: str) -> str | None:
        choices = list(self._definitions) + [i for i in self._loaded if i not in self._definitions]
        if not choices:
            return None
        match = process.extractOne(language_id, choices, scorer=fuzz.ratio)
        if match and match[1] >= self.suggestion_threshold:
            return match[0]
        return None
