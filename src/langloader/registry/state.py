"""Per-language load state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from langloader.runtime.dispatcher import LanguageHandle


class LoadStatus(Enum):
    """Where a language is in its load lifecycle."""

    UNKNOWN = "unknown"
    DEFINITION_KNOWN = "definition_known"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadState:
    """Snapshot of a language's load status."""

    status: LoadStatus
    bytes_loaded: int = 0
    bytes_total: int | None = None
    handle: LanguageHandle | None = None
    reason: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.status is LoadStatus.READY

    @property
    def in_progress(self) -> bool:
        return self.status in (LoadStatus.DOWNLOADING, LoadStatus.INSTALLING)

    def describe(self) -> str:
        """Short human-readable form for listings."""
        if self.status is LoadStatus.DOWNLOADING:
            if self.bytes_total:
                return f"downloading {self.bytes_loaded}/{self.bytes_total} bytes"
            return f"downloading {self.bytes_loaded} bytes"
        if self.status is LoadStatus.FAILED and self.reason:
            return f"failed: {self.reason}"
        return self.status.value.replace("_", " ")


UNKNOWN = LoadState(LoadStatus.UNKNOWN)
DEFINITION_KNOWN = LoadState(LoadStatus.DEFINITION_KNOWN)
INSTALLING = LoadState(LoadStatus.INSTALLING)
