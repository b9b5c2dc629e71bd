"""langloader - fetch, install and dispatch to language plugins at runtime."""

__version__ = "0.1.0"

# Core components - lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import to avoid circular dependencies."""
    if name == "LanguagePluginHost":
        from langloader.core import LanguagePluginHost
        return LanguagePluginHost
    elif name == "LanguageRegistry":
        from langloader.registry.registry import LanguageRegistry
        return LanguageRegistry
    elif name == "PluginDefinition":
        from langloader.plugins.definition import PluginDefinition
        return PluginDefinition
    elif name == "EvaluationDispatcher":
        from langloader.runtime.dispatcher import EvaluationDispatcher
        return EvaluationDispatcher
    elif name == "ExecutionEnvironment":
        from langloader.runtime.environment import ExecutionEnvironment
        return ExecutionEnvironment
    elif name == "LoaderConfig":
        from langloader.config import LoaderConfig
        return LoaderConfig
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "LanguagePluginHost",
    "LanguageRegistry",
    "PluginDefinition",
    "EvaluationDispatcher",
    "ExecutionEnvironment",
    "LoaderConfig",
]
