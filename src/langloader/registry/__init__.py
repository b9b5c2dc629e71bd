"""Language registry and load states."""

from .registry import LanguageRegistry
from .state import LoadState, LoadStatus

__all__ = ["LanguageRegistry", "LoadState", "LoadStatus"]
