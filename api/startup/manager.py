"""Startup manager - orchestrates daemon initialization and shutdown.

initialize() runs, in order: resolve well-known paths, load or generate
the configuration, build the retrieval service and file storage, start
the power monitor, start the retrieval service. Binding the listener is
left to the caller.
"""
import logging
from typing import Callable, Optional

from app_state import AppState
from config import DaemonConfiguration, Settings
from power import PowerEventSource, SleepWakeMonitor
from services import RetrievalService, RetrievalServiceFacade
from startup.config_validator import ConfigValidator
from startup.configuration import ensure_configuration
from storage import AsyncTaskFileStorage, TaskFileStorage

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[DaemonConfiguration], RetrievalServiceFacade]


class StartupManager:
    """Manages daemon startup and shutdown ordering

    The service factory and power source are injectable so tests can
    supply fakes.
    """

    def __init__(self, app_state: AppState, settings: Settings,
                 service_factory: ServiceFactory = RetrievalService,
                 power_source: Optional[PowerEventSource] = None):
        self.state = app_state
        self.settings = settings
        self._service_factory = service_factory
        self._power_source = power_source

    async def initialize(self):
        """Initialize all components; any failure here is fatal"""
        logger.info("Initializing retrieval daemon...")
        self._resolve_paths()
        self._load_configuration()
        self._init_service()
        await self._init_file_storage()
        self._start_monitor()
        await self.state.start_retrieval()
        logger.info("Retrieval daemon ready")

    async def shutdown(self):
        """Stop the monitor, then the service; both always run

        Raises the first failure after both stops were attempted.
        """
        first_error = None
        try:
            self.state.stop_monitor()
        except Exception as e:
            logger.error(f"Stopping power monitor failed: {e}")
            first_error = e
        try:
            await self.state.stop_retrieval()
        except Exception as e:
            logger.error(f"Stopping retrieval service failed: {e}")
            first_error = first_error or e
        if first_error is not None:
            raise first_error
        logger.info("Retrieval daemon stopped")

    # ============ Configuration Phase ============

    def _resolve_paths(self):
        self.settings.paths.resolve()
        self.state.runtime.settings = self.settings

    def _load_configuration(self):
        configuration = ensure_configuration(self.settings.paths.config_path)
        ConfigValidator(configuration).validate()
        self.state.core.configuration = configuration

    # ============ Component Phase ============

    def _init_service(self):
        self.state.core.retrieval = self._service_factory(self.state.core.configuration)

    async def _init_file_storage(self):
        storage = AsyncTaskFileStorage(TaskFileStorage(self.settings.paths.storage_directory))
        await storage.ensure_directories_exist()
        self.state.core.file_storage = storage

    def _start_monitor(self):
        service = self.state.get_retrieval_service()
        self.state.runtime.monitor = SleepWakeMonitor(
            on_sleep=service.pause_for_system_sleep,
            on_wake=service.resume_after_system_wake,
            source=self._power_source,
        )
        self.state.start_monitor()
