"""Progress and terminal status reporting toward the host UI."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Protocol

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)


class Status(Enum):
    """Terminal status of a plugin load request."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class ProgressReporter(Protocol):
    """Receives human-readable status messages keyed by request id."""

    def report(self, request_id: str, message: str) -> None: ...


class StatusSink(Protocol):
    """Receives exactly one terminal status per evaluation request."""

    def send_status(self, status: Status, eval_id: str) -> None: ...


class LoggingProgressReporter:
    """Forward progress messages to the standard logger."""

    def report(self, request_id: str, message: str) -> None:
        logger.info(f"[{request_id}] {message}")


class RecordingProgressReporter:
    """Keep every message per request id; the last one is what is displayed."""

    def __init__(self) -> None:
        self.messages: dict[str, list[str]] = defaultdict(list)

    def report(self, request_id: str, message: str) -> None:
        self.messages[request_id].append(message)

    def latest(self, request_id: str) -> str | None:
        """Get the message currently displayed for a request."""
        history = self.messages.get(request_id)
        return history[-1] if history else None

    def all_messages(self) -> list[str]:
        """Get every recorded message across requests, in request order."""
        return [m for history in self.messages.values() for m in history]


class ConsoleProgressReporter:
    """Print progress messages to a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def report(self, request_id: str, message: str) -> None:
        self.console.print(f"[dim]{escape(request_id[:8])}[/dim] {escape(message)}", highlight=False)


class LoggingStatusSink:
    """Log terminal statuses."""

    def send_status(self, status: Status, eval_id: str) -> None:
        logger.info(f"Request {eval_id} finished: {status.value}")


class RecordingStatusSink:
    """Collect terminal statuses in order."""

    def __init__(self) -> None:
        self.statuses: list[tuple[Status, str]] = []

    def send_status(self, status: Status, eval_id: str) -> None:
        self.statuses.append((status, eval_id))

    def for_request(self, eval_id: str) -> list[Status]:
        """Get all statuses sent for one request."""
        return [status for status, sent_id in self.statuses if sent_id == eval_id]
