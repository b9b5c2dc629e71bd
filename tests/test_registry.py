"""Tests for the language registry."""

import asyncio

import httpx
import pytest

from langloader.errors import (
    ExecutionError,
    HttpStatusError,
    MissingUrlField,
    NetworkError,
    UnknownLanguage,
)
from langloader.plugins.definition import PluginDefinition
from langloader.plugins.fetcher import PluginFetcher
from langloader.plugins.installer import PluginInstaller
from langloader.registry.registry import LanguageRegistry
from langloader.registry.state import LoadStatus
from langloader.reporting import RecordingProgressReporter
from langloader.runtime.environment import ExecutionEnvironment
from tests.plugin_sources import BROKEN_SOURCE, ECHO_SOURCE, definition_dict

ECHO = PluginDefinition.from_dict(definition_dict("echo", "https://plugins.test/echo.py"))

# setup yields to the event loop, then checks nothing else took the staging slot
SLOW_SETUP_SOURCE = '''
import asyncio

async def setup():
    await asyncio.sleep(0)
    assert environment.plugin_url == PLUGIN_URL
    await asyncio.sleep(0)
    register("{module}", PLUGIN_URL)
'''


def _registry(server, reporter, definitions=(ECHO,)) -> LanguageRegistry:
    environment = ExecutionEnvironment()
    return LanguageRegistry(
        PluginFetcher(reporter, transport=server.transport),
        PluginInstaller(environment, reporter),
        reporter,
        definitions=definitions,
        id_factory=lambda: "req",
    )


class TestEnsureAvailable:
    """Test LanguageRegistry.ensure_available."""

    @pytest.mark.asyncio
    async def test_loads_known_definition(self, server, reporter) -> None:
        """Test a known definition is fetched, installed and recorded."""
        registry = _registry(server, reporter)
        assert registry.state("echo").status is LoadStatus.DEFINITION_KNOWN

        handle = await registry.ensure_available("echo")

        assert handle.definition == ECHO
        assert registry.is_loaded("echo")
        assert registry.state("echo").status is LoadStatus.READY
        assert registry.state("echo").handle is handle
        assert reporter.messages["req"][0] == "Loading Echo language plugin"
        assert reporter.latest("req") == "Echo plugin ready"

    @pytest.mark.asyncio
    async def test_idempotent_once_ready(self, server, reporter) -> None:
        """Test a ready language needs no further network or install work."""
        registry = _registry(server, reporter)

        first = await registry.ensure_available("echo")
        message_count = len(reporter.all_messages())
        second = await registry.ensure_available("echo")

        assert second is first
        assert server.requests == ["https://plugins.test/echo.py"]
        assert len(reporter.all_messages()) == message_count

    @pytest.mark.asyncio
    async def test_concurrent_requests_coalesce(self, server, reporter) -> None:
        """Test concurrent loads of one language share a single attempt."""
        registry = _registry(server, reporter)

        handles = await asyncio.gather(*(registry.ensure_available("echo") for _ in range(5)))

        assert len(server.requests) == 1
        assert all(h is handles[0] for h in handles)

    @pytest.mark.asyncio
    async def test_concurrent_installs_are_serialized(self, server, reporter) -> None:
        """Test loads of different languages never overlap in the staging slot."""
        urls = [f"https://plugins.test/lang{i}.py" for i in range(3)]
        for i, url in enumerate(urls):
            server.add_source(url, SLOW_SETUP_SOURCE.format(module=f"lang{i}"))
        definitions = [
            PluginDefinition.from_dict(definition_dict(f"lang{i}", url))
            for i, url in enumerate(urls)
        ]
        registry = _registry(server, reporter, definitions)

        await asyncio.gather(*(registry.ensure_available(d.id) for d in definitions))

        environment = registry.installer.environment
        for i, url in enumerate(urls):
            assert environment.get(f"lang{i}") == url

    @pytest.mark.asyncio
    async def test_unknown_language(self, server, reporter) -> None:
        """Test an unknown id fails and leaves the mappings unchanged."""
        registry = _registry(server, reporter)
        definitions_before = dict(registry.definitions)

        with pytest.raises(UnknownLanguage):
            await registry.ensure_available("nope")

        assert dict(registry.definitions) == definitions_before
        assert dict(registry.loaded) == {}
        assert registry.state("nope").status is LoadStatus.UNKNOWN
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_unknown_language_suggestion(self, server, reporter) -> None:
        """Test a close id is offered as a suggestion."""
        registry = _registry(server, reporter)

        with pytest.raises(UnknownLanguage) as exc_info:
            await registry.ensure_available("ecoh")

        assert exc_info.value.suggestion == "echo"
        assert "did you mean 'echo'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_url(self, server, reporter) -> None:
        """Test a definition without url fails before any network call."""
        definition = PluginDefinition.from_dict({"displayName": "X"})
        registry = _registry(server, reporter, [definition])

        with pytest.raises(MissingUrlField):
            await registry.ensure_available("x")

        assert server.requests == []
        assert reporter.latest("req") == 'plugin definition missing "url"'
        assert registry.state("x").status is LoadStatus.FAILED
        assert not registry.is_loaded("x")

    @pytest.mark.asyncio
    async def test_http_failure_leaves_registry_retryable(self, server, reporter) -> None:
        """Test a failed load keeps the definition so a later call can retry."""
        server.add_source("https://plugins.test/echo.py", "", status_code=500)
        registry = _registry(server, reporter)

        with pytest.raises(HttpStatusError):
            await registry.ensure_available("echo")

        assert registry.state("echo").status is LoadStatus.FAILED
        assert "echo" in registry.definitions
        assert not registry.is_loaded("echo")

        server.add_source("https://plugins.test/echo.py", ECHO_SOURCE)
        handle = await registry.ensure_available("echo")

        assert handle.id == "echo"
        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_network_failure(self, server, reporter) -> None:
        """Test a transport failure is raised as NetworkError."""
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        server.add_handler("https://plugins.test/echo.py", refuse)
        registry = _registry(server, reporter)

        with pytest.raises(NetworkError):
            await registry.ensure_available("echo")

        assert reporter.latest("req") == "Echo plugin failed to load"

    @pytest.mark.asyncio
    async def test_install_failure(self, server, reporter) -> None:
        """Test a source that raises fails the load with ExecutionError."""
        server.add_source("https://plugins.test/echo.py", BROKEN_SOURCE)
        registry = _registry(server, reporter)

        with pytest.raises(ExecutionError):
            await registry.ensure_available("echo")

        assert registry.state("echo").reason == "plugin exploded"
        assert registry.installer.environment.plugin_url is None

    @pytest.mark.asyncio
    async def test_download_progress_recorded(self, server, reporter) -> None:
        """Test download progress is tracked in the load state."""
        registry = _registry(server, reporter)
        states = []

        def record(loaded, total):
            states.append(registry.state("echo"))

        original = registry.fetcher.fetch

        async def fetch(url, request_id, display_name="", on_progress=None):
            def both(loaded, total):
                on_progress(loaded, total)
                record(loaded, total)

            return await original(url, request_id, display_name=display_name, on_progress=both)

        registry.fetcher.fetch = fetch
        await registry.ensure_available("echo")

        assert states
        assert all(s.status is LoadStatus.DOWNLOADING for s in states)
        assert states[-1].bytes_loaded == len(ECHO_SOURCE.encode())


class TestRegisterDefinition:
    """Test definition registration and direct loads."""

    def test_register_and_replace(self, server, reporter) -> None:
        """Test register_definition adds and replaces entries."""
        registry = _registry(server, reporter, definitions=())
        registry.register_definition(ECHO)
        replacement = PluginDefinition.from_dict(
            definition_dict("echo", "https://mirror.test/echo.py")
        )
        registry.register_definition(replacement)

        assert registry.definitions["echo"].url == "https://mirror.test/echo.py"

    def test_mappings_are_read_only(self, server, reporter) -> None:
        """Test callers cannot write the registry mappings."""
        registry = _registry(server, reporter)

        with pytest.raises(TypeError):
            registry.definitions["other"] = ECHO

    @pytest.mark.asyncio
    async def test_load_definition_reloads(self, server, reporter) -> None:
        """Test a submitted definition is loaded even if the id was loaded."""
        registry = _registry(server, reporter)
        await registry.ensure_available("echo")

        await registry.load_definition(ECHO, "req-2")

        assert len(server.requests) == 2
        assert registry.is_loaded("echo")

    @pytest.mark.asyncio
    async def test_listeners_notified(self, server, reporter) -> None:
        """Test listeners hear about newly loaded languages."""
        registry = _registry(server, reporter)
        added = []
        registry.add_listener(added.append)
        registry.add_listener(lambda definition: 1 / 0)

        await registry.ensure_available("echo")

        assert added == [ECHO]
        assert registry.is_loaded("echo")

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_loaded_language(self, server, reporter) -> None:
        """Test resubmitting a broken plugin leaves the loaded language usable."""
        server.add_source("https://plugins.test/broken.py", BROKEN_SOURCE)
        registry = _registry(server, reporter)
        first = await registry.ensure_available("echo")
        broken = PluginDefinition.from_dict(
            definition_dict("echo", "https://plugins.test/broken.py")
        )

        with pytest.raises(ExecutionError):
            await registry.load_definition(broken, "req-2")

        assert registry.is_loaded("echo")
        assert registry.loaded["echo"] is first
        assert registry.state("echo").status is LoadStatus.READY
        assert await registry.ensure_available("echo") is first

    @pytest.mark.asyncio
    async def test_load_definition_waits_for_different_inflight(self, server, reporter) -> None:
        """Test a changed definition is fetched after an in-flight load settles."""
        server.add_source("https://mirror.test/echo.py", ECHO_SOURCE)
        mirror = PluginDefinition.from_dict(definition_dict("echo", "https://mirror.test/echo.py"))
        registry = _registry(server, reporter)

        pending = asyncio.ensure_future(registry.ensure_available("echo"))
        await asyncio.sleep(0)
        handle = await registry.load_definition(mirror, "req-2")
        first = await pending

        assert server.requests == ["https://plugins.test/echo.py", "https://mirror.test/echo.py"]
        assert first.definition.url == "https://plugins.test/echo.py"
        assert handle.definition.url == "https://mirror.test/echo.py"
        assert registry.loaded["echo"] is handle

    @pytest.mark.asyncio
    async def test_load_definition_shares_identical_inflight(self, server, reporter) -> None:
        """Test resubmitting the definition being loaded attaches to that load."""
        registry = _registry(server, reporter)

        pending = asyncio.ensure_future(registry.ensure_available("echo"))
        await asyncio.sleep(0)
        handle = await registry.load_definition(ECHO, "req-2")

        assert await pending is handle
        assert server.requests == ["https://plugins.test/echo.py"]
