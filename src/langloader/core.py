"""Language plugin host: the actions the surrounding notebook invokes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from langloader.config import LoaderConfig, load_definitions_file
from langloader.errors import DefinitionParseError, LanguagePluginError
from langloader.plugins.definition import parse_definition
from langloader.plugins.fetcher import PluginFetcher
from langloader.plugins.installer import ModuleLoader, PluginInstaller
from langloader.registry.registry import LanguageRegistry, new_request_id
from langloader.reporting import (
    LoggingProgressReporter,
    LoggingStatusSink,
    ProgressReporter,
    Status,
    StatusSink,
)
from langloader.runtime.dispatcher import EvaluationDispatcher
from langloader.runtime.environment import ExecutionEnvironment

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from langloader.plugins.definition import PluginDefinition
    from langloader.runtime.dispatcher import LanguageHandle

logger = logging.getLogger(__name__)


class LanguagePluginHost:
    """Wires fetcher, installer, registry and dispatcher around one environment."""

    def __init__(
        self,
        reporter: ProgressReporter | None = None,
        status_sink: StatusSink | None = None,
        definitions: Iterable[PluginDefinition] | None = None,
        config: LoaderConfig | None = None,
        environment: ExecutionEnvironment | None = None,
        loader: ModuleLoader | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        id_factory: Callable[[], str] = new_request_id,
    ) -> None:
        self.config = config or LoaderConfig()
        self.reporter = reporter or LoggingProgressReporter()
        self.status_sink = status_sink or LoggingStatusSink()
        self.environment = environment or ExecutionEnvironment()
        self.id_factory = id_factory

        self.fetcher = PluginFetcher(
            self.reporter, client=client, config=self.config, transport=transport
        )
        self.installer = PluginInstaller(self.environment, self.reporter, loader=loader)
        self.registry = LanguageRegistry(
            self.fetcher,
            self.installer,
            self.reporter,
            definitions=definitions,
            id_factory=id_factory,
        )
        self.dispatcher = EvaluationDispatcher(self.environment)

        logger.info(f"LanguagePluginHost initialized with {len(self.registry.definitions)} definitions")

    @classmethod
    def from_config(cls, config: LoaderConfig | None = None, **kwargs: Any) -> LanguagePluginHost:
        """Build a host and pre-register definitions from the config's file."""
        config = config or LoaderConfig.from_env()
        definitions: list[PluginDefinition] = []
        if config.definitions_file:
            definitions = load_definitions_file(config.definitions_file)
        return cls(config=config, definitions=definitions, **kwargs)

    async def evaluate_language_plugin(self, plugin_text: str, eval_id: str) -> bool:
        """Load a language from submitted plugin definition text.

        Sends exactly one terminal status for ``eval_id``.

        Returns:
            True if the plugin loaded
        """
        history_id = self.id_factory()
        self.reporter.report(history_id, plugin_text)

        try:
            definition = parse_definition(plugin_text)
        except DefinitionParseError as e:
            self.reporter.report(history_id, str(e))
            self.status_sink.send_status(Status.ERROR, eval_id)
            return False

        try:
            await self.registry.load_definition(definition, history_id)
        except LanguagePluginError as e:
            logger.info(f"Plugin definition for '{definition.id}' failed to load: {e}")
            self.status_sink.send_status(Status.ERROR, eval_id)
            return False
        except Exception:
            logger.exception(f"Unexpected failure loading plugin '{definition.id}'")
            self.status_sink.send_status(Status.ERROR, eval_id)
            raise

        self.status_sink.send_status(Status.SUCCESS, eval_id)
        return True

    async def ensure_language_available(self, language_id: str) -> LanguageHandle:
        return await self.registry.ensure_available(language_id)

    async def run_code(
        self,
        language_id: str,
        code: str,
        on_message: Callable[[Any], None] | None = None,
    ) -> Any:
        """Evaluate code in a language, loading its plugin first if needed."""
        handle = await self.registry.ensure_available(language_id)
        return await self.dispatcher.run(handle, code, on_message)

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    async def __aenter__(self) -> LanguagePluginHost:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
