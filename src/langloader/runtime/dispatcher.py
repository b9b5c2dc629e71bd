"""Route code to a loaded language's evaluator."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from langloader.errors import EvaluatorModuleMissing, NoEvaluatorDefined

if TYPE_CHECKING:
    from collections.abc import Callable

    from langloader.plugins.definition import PluginDefinition
    from langloader.runtime.environment import ExecutionEnvironment

logger = logging.getLogger(__name__)


class EvaluatorKind(Enum):
    """Which evaluation contract a language module exposes."""

    SYNC = "sync"
    ASYNC = "async"

    @classmethod
    def for_definition(cls, definition: PluginDefinition) -> EvaluatorKind | None:
        """Pick the evaluator kind; async wins when both are declared."""
        if definition.async_evaluator:
            return cls.ASYNC
        if definition.evaluator:
            return cls.SYNC
        return None


@dataclass(frozen=True)
class LanguageHandle:
    """A language whose plugin finished installing."""

    definition: PluginDefinition
    kind: EvaluatorKind | None

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def display_name(self) -> str:
        return self.definition.display_name


def _discard_message(message: Any) -> None:
    pass


class EvaluationDispatcher:
    """Invokes the right evaluator entry point for a language."""

    def __init__(self, environment: ExecutionEnvironment) -> None:
        self.environment = environment

    async def run(
        self,
        handle: LanguageHandle,
        code: str,
        on_message: Callable[[Any], None] | None = None,
    ) -> Any:
        """Evaluate ``code`` with the language's module.

        Async evaluators get ``(code, on_message)`` and their result or
        exception is passed through as is. Sync evaluators get ``(code)``.

        Raises:
            EvaluatorModuleMissing: The module is not in the environment
            NoEvaluatorDefined: No usable evaluator is declared or exposed
        """
        definition = handle.definition
        if handle.kind is None:
            raise NoEvaluatorDefined(
                f"{definition.display_name} declares neither evaluator nor asyncEvaluator"
            )

        if handle.kind is EvaluatorKind.ASYNC:
            evaluate = self._resolve(definition, definition.async_evaluator)
            result = evaluate(code, on_message or _discard_message)
            if inspect.isawaitable(result):
                result = await result
            return result

        evaluate = self._resolve(definition, definition.evaluator)
        return evaluate(code)

    def _resolve(self, definition: PluginDefinition, member: str | None) -> Callable[..., Any]:
        module_name = definition.module or ""
        module = self.environment.get(module_name)
        if module is None:
            raise EvaluatorModuleMissing(definition.display_name, module_name)

        evaluate = getattr(module, member or "", None)
        if evaluate is None and isinstance(module, dict):
            evaluate = module.get(member)
        if not callable(evaluate):
            raise NoEvaluatorDefined(
                f'{definition.display_name} module "{module_name}" has no callable "{member}"'
            )
        return evaluate
