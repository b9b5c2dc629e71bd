"""Plugin definitions and the fetch-and-install pipeline."""

from .definition import PluginDefinition, parse_definition
from .fetcher import PluginFetcher
from .installer import InstallContext, ModuleLoader, PluginInstaller, PythonSourceLoader

__all__ = [
    "PluginDefinition",
    "parse_definition",
    "PluginFetcher",
    "InstallContext",
    "ModuleLoader",
    "PluginInstaller",
    "PythonSourceLoader",
]
