"""Execute fetched plugin source and wait for it to become ready."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from langloader.errors import ExecutionError
from langloader.plugins.definition import PluginDefinition
from langloader.reporting import ProgressReporter
from langloader.runtime.dispatcher import EvaluatorKind, LanguageHandle
from langloader.runtime.environment import ExecutionEnvironment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallContext:
    """What a loader needs to know about the plugin being installed."""

    url: str
    definition: PluginDefinition
    environment: ExecutionEnvironment


class ModuleLoader(Protocol):
    """Turns plugin source text into a registered module.

    ``load`` may return a plain value (installed immediately) or an
    awaitable that completes when the plugin has initialized.
    """

    def load(self, source: str, context: InstallContext) -> Any: ...


class PythonSourceLoader:
    """Runs plugin source as Python code in a fresh namespace.

    The namespace is seeded with ``PLUGIN_URL``, ``environment`` and
    ``register``. A top-level ``setup`` callable is invoked after the
    source runs and its return value is the load result. A top-level
    binding named after the definition's module is registered when the
    source did not register one itself.
    """

    SETUP_HOOK = "setup"

    def load(self, source: str, context: InstallContext) -> Any:
        module_name = context.definition.module
        namespace: dict[str, Any] = {
            "__name__": f"langloader_plugin_{module_name or context.definition.id}",
            "__file__": context.url,
            "PLUGIN_URL": context.url,
            "environment": context.environment,
            "register": context.environment.register,
        }
        code = compile(source, context.url, "exec")
        exec(code, namespace)  # noqa: S102

        result = None
        hook = namespace.get(self.SETUP_HOOK)
        if callable(hook):
            result = hook()

        if module_name and module_name not in context.environment and module_name in namespace:
            context.environment.register(module_name, namespace[module_name])
        return result


class PluginInstaller:
    """Installs fetched plugin source into the execution environment.

    Installs share the environment's staging slot, so callers must run
    at most one install at a time.
    """

    def __init__(
        self,
        environment: ExecutionEnvironment,
        reporter: ProgressReporter,
        loader: ModuleLoader | None = None,
    ) -> None:
        self.environment = environment
        self.reporter = reporter
        self.loader = loader or PythonSourceLoader()

    async def install(
        self,
        source: str,
        definition: PluginDefinition,
        request_id: str,
    ) -> LanguageHandle:
        """Run plugin source and wait for its initialization.

        Args:
            source: Plugin source text
            definition: Definition the source was fetched for
            request_id: Key for progress messages

        Returns:
            Handle for the installed language

        Raises:
            ExecutionError: Running the source or its initialization failed
        """
        url = definition.url or ""
        context = InstallContext(url=url, definition=definition, environment=self.environment)

        with self.environment.staging(url):
            try:
                result = self.loader.load(source, context)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                reason = str(e) or type(e).__name__
                self.reporter.report(request_id, reason)
                logger.warning(f"Plugin {definition.display_name} from {url} failed to initialize: {e!r}")
                raise ExecutionError(reason) from e

        if definition.module and definition.module not in self.environment:
            logger.warning(
                f"Plugin {definition.display_name} installed but module "
                f"'{definition.module}' was not registered"
            )

        self.reporter.report(request_id, f"{definition.display_name} plugin ready")
        logger.info(f"Installed language plugin {definition.id} from {url}")
        return LanguageHandle(definition=definition, kind=EvaluatorKind.for_definition(definition))
