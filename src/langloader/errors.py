"""Exception hierarchy for language plugin loading and evaluation."""

from __future__ import annotations


class LanguagePluginError(Exception):
    """Base class for all language plugin errors."""


class DefinitionParseError(LanguagePluginError):
    """Plugin definition text is not a valid JSON object."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"plugin definition failed to parse:\n{detail}")


class UnknownLanguage(LanguagePluginError):
    """No loaded language and no definition match the requested id."""

    def __init__(self, language_id: str, suggestion: str | None = None) -> None:
        self.language_id = language_id
        self.suggestion = suggestion
        message = f"unknown language {language_id!r}"
        if suggestion:
            message += f" (did you mean {suggestion!r}?)"
        super().__init__(message)


class PluginLoadError(LanguagePluginError):
    """Fetching or installing a plugin failed."""


class MissingUrlField(PluginLoadError):
    """Plugin definition has no ``url`` and can never be installed."""

    def __init__(self) -> None:
        super().__init__('plugin definition missing "url"')


class NetworkError(PluginLoadError):
    """Transport-level failure while downloading plugin source."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(message)


class HttpStatusError(PluginLoadError):
    """Plugin source request completed with a 4xx/5xx status."""

    def __init__(self, url: str, status_code: int, reason: str, message: str) -> None:
        self.url = url
        self.status_code = status_code
        self.reason = reason
        super().__init__(message)


class ExecutionError(PluginLoadError):
    """Running fetched plugin source or awaiting its initialization failed."""


class EvaluationDispatchError(LanguagePluginError):
    """A ready language could not be dispatched to."""


class EvaluatorModuleMissing(EvaluationDispatchError):
    """The language's module is not registered in the execution environment."""

    def __init__(self, display_name: str, module: str) -> None:
        self.display_name = display_name
        self.module = module
        super().__init__(
            f'Error evaluating {display_name}; evaluation module "{module}" not defined'
        )


class NoEvaluatorDefined(EvaluationDispatchError):
    """The language exposes neither a synchronous nor an asynchronous evaluator."""
