"""
Tests for StartupManager behavior.

Verify observable behavior through initialize()/shutdown() and the
resulting AppState, with a fake service and a fake power source.
"""
import json
from unittest.mock import AsyncMock, Mock

import pytest

from app_state import AppState
from errors import StartupError
from power import PowerEventSource
from services.retrieval_facade import RetrievalServiceFacade
from startup.manager import StartupManager


class RecordingPowerSource(PowerEventSource):
    def __init__(self, calls):
        self.calls = calls

    def subscribe(self, on_sleep, on_wake):
        self.calls.append("monitor.subscribe")

    def unsubscribe(self):
        self.calls.append("monitor.unsubscribe")


@pytest.fixture
def calls():
    return []


@pytest.fixture
def fake_service(calls):
    service = AsyncMock(spec=RetrievalServiceFacade)
    service.start.side_effect = lambda: calls.append("service.start")
    service.stop.side_effect = lambda: calls.append("service.stop")
    return service


@pytest.fixture
def manager(settings, fake_service, calls):
    return StartupManager(
        AppState(),
        settings,
        service_factory=Mock(return_value=fake_service),
        power_source=RecordingPowerSource(calls),
    )


class TestInitialize:
    """initialize() wires the AppState in order"""

    @pytest.mark.asyncio
    async def test_populates_state(self, manager, settings, fake_service):
        await manager.initialize()

        state = manager.state
        assert state.get_retrieval_service() is fake_service
        assert state.get_configuration() is not None
        assert state.get_settings() is settings
        assert state.get_file_storage() is not None
        assert state.get_monitor().is_subscribed
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_monitor_starts_before_service(self, manager, calls):
        await manager.initialize()

        assert calls == ["monitor.subscribe", "service.start"]
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_creates_directories_and_config(self, manager, settings):
        await manager.initialize()

        assert settings.paths.config_path.exists()
        assert (settings.paths.storage_directory / "Uploads").is_dir()
        assert (settings.paths.storage_directory / "Output").is_dir()
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_monitor_callbacks_bound_to_service(self, manager, fake_service):
        await manager.initialize()

        monitor = manager.state.get_monitor()
        assert monitor._on_sleep == fake_service.pause_for_system_sleep
        assert monitor._on_wake == fake_service.resume_after_system_wake
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_service_receives_loaded_configuration(self, settings, fake_service):
        settings.paths.resolve()
        settings.paths.config_path.write_text(json.dumps({"authToken": "preset", "port": 4000}))
        factory = Mock(return_value=fake_service)
        manager = StartupManager(AppState(), settings, service_factory=factory,
                                 power_source=RecordingPowerSource([]))

        await manager.initialize()

        [configuration] = factory.call_args.args
        assert configuration.auth_token == "preset"
        assert configuration.port == 4000
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_invalid_config_is_fatal(self, settings, fake_service):
        settings.paths.resolve()
        settings.paths.config_path.write_text(json.dumps({"authToken": "t", "port": 0}))
        manager = StartupManager(AppState(), settings, service_factory=Mock(return_value=fake_service),
                                 power_source=RecordingPowerSource([]))

        with pytest.raises(StartupError):
            await manager.initialize()

        fake_service.start.assert_not_awaited()


class TestShutdown:
    """shutdown() stops the monitor, then the service, always both"""

    @pytest.mark.asyncio
    async def test_order(self, manager, calls):
        await manager.initialize()
        calls.clear()

        await manager.shutdown()

        assert calls == ["monitor.unsubscribe", "service.stop"]

    @pytest.mark.asyncio
    async def test_service_stops_even_if_monitor_fails(self, manager, fake_service):
        await manager.initialize()
        manager.state.runtime.monitor = Mock(stop=Mock(side_effect=RuntimeError("monitor stuck")))

        with pytest.raises(RuntimeError, match="monitor stuck"):
            await manager.shutdown()

        fake_service.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_service_failure_is_raised(self, manager, fake_service, calls):
        await manager.initialize()
        fake_service.stop.side_effect = RuntimeError("stop failed")

        with pytest.raises(RuntimeError, match="stop failed"):
            await manager.shutdown()

        assert "monitor.unsubscribe" in calls

    @pytest.mark.asyncio
    async def test_shutdown_before_initialize_is_safe(self, manager):
        await manager.shutdown()
