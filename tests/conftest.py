"""Shared fixtures for langloader tests."""

from __future__ import annotations

import itertools

import pytest

from langloader.core import LanguagePluginHost
from langloader.reporting import RecordingProgressReporter, RecordingStatusSink
from tests.plugin_sources import ASYNC_SOURCE, ECHO_SOURCE, FakePluginServer


@pytest.fixture
def server() -> FakePluginServer:
    server = FakePluginServer()
    server.add_source("https://plugins.test/echo.py", ECHO_SOURCE)
    server.add_source("https://plugins.test/shout.py", ASYNC_SOURCE)
    return server


@pytest.fixture
def reporter() -> RecordingProgressReporter:
    return RecordingProgressReporter()


@pytest.fixture
def status_sink() -> RecordingStatusSink:
    return RecordingStatusSink()


@pytest.fixture
def host(server, reporter, status_sink) -> LanguagePluginHost:
    counter = itertools.count(1)
    return LanguagePluginHost(
        reporter=reporter,
        status_sink=status_sink,
        transport=server.transport,
        id_factory=lambda: f"req-{next(counter)}",
    )
