from typing import Optional

from config import DaemonConfiguration, Settings


class CoreServices:
    """Long-lived collaborators built once at startup

    - configuration: immutable DaemonConfiguration
    - retrieval: the RetrievalServiceFacade implementation
    - file_storage: AsyncTaskFileStorage wrapping the sync store
    """

    def __init__(self):
        self.configuration: Optional[DaemonConfiguration] = None
        self.retrieval = None
        self.file_storage = None


class RuntimeState:
    """Runtime state separate from service dependencies"""

    def __init__(self):
        self.settings: Optional[Settings] = None
        self.monitor = None


class AppState:
    """Application state container

    Delegation methods hide internal structure (Law of Demeter):
    route handlers call state.get_retrieval_service() instead of
    reaching through state.core.retrieval.
    """

    def __init__(self):
        self.core = CoreServices()
        self.runtime = RuntimeState()

    # === Service Access Delegation (for route handlers) ===

    def get_retrieval_service(self):
        """Get the retrieval facade"""
        return self.core.retrieval

    def get_file_storage(self):
        """Get async task file storage"""
        return self.core.file_storage

    def get_configuration(self) -> Optional[DaemonConfiguration]:
        return self.core.configuration

    def get_settings(self) -> Optional[Settings]:
        return self.runtime.settings

    def get_auth_token(self) -> Optional[str]:
        configuration = self.core.configuration
        return configuration.auth_token if configuration else None

    def get_outbox_directory(self):
        """External outbox root; one subdirectory per task"""
        return self.runtime.settings.paths.outbox_directory

    def get_max_body_bytes(self) -> int:
        return self.runtime.settings.server.max_body_bytes

    def get_max_upload_bytes(self) -> int:
        return self.runtime.settings.server.max_upload_bytes

    # === Lifecycle Delegation ===

    def get_monitor(self):
        return self.runtime.monitor

    async def start_retrieval(self):
        await self.core.retrieval.start()

    async def stop_retrieval(self):
        if self.core.retrieval:
            await self.core.retrieval.stop()

    def start_monitor(self):
        self.runtime.monitor.start()

    def stop_monitor(self):
        if self.runtime.monitor:
            self.runtime.monitor.stop()
