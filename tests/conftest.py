"""
Pytest configuration and shared fixtures

Common fixtures used across multiple test files are defined here.
"""
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add api directory to path for imports
api_path = Path(__file__).parent.parent / "api"
sys.path.insert(0, str(api_path))

TEST_TOKEN = "test-token-0123456789abcdef"


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def daemon_configuration(tmp_path):
    """DaemonConfiguration with a known token and a temp allowlist root"""
    from config import DaemonConfiguration

    return DaemonConfiguration(
        auth_token=TEST_TOKEN,
        startup_allowlist_roots=[str(tmp_path / "Documents")],
        queue_batch_size=4,
    )


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temp base directory"""
    from config import PathConfig, ServerConfig, Settings

    return Settings(
        paths=PathConfig(base_directory=tmp_path / "base"),
        server=ServerConfig(),
    )


# =============================================================================
# Common Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_retrieval_service():
    """AsyncMock standing in for the retrieval facade"""
    from services.retrieval_facade import RetrievalServiceFacade

    return AsyncMock(spec=RetrievalServiceFacade)


@pytest.fixture
def app_state(settings, daemon_configuration, mock_retrieval_service):
    """Real AppState wired with a mock service and real temp file storage"""
    from app_state import AppState
    from storage import AsyncTaskFileStorage, TaskFileStorage

    settings.paths.resolve()
    state = AppState()
    state.runtime.settings = settings
    state.core.configuration = daemon_configuration
    state.core.retrieval = mock_retrieval_service
    state.core.file_storage = AsyncTaskFileStorage(
        TaskFileStorage(settings.paths.storage_directory)
    )
    return state


@pytest.fixture
def app(app_state):
    from main import create_app
    return create_app(app_state)


@pytest.fixture
def client(app):
    """Authenticated test client for the full app"""
    from fastapi.testclient import TestClient
    from config import AUTH_TOKEN_HEADER

    test_client = TestClient(app)
    test_client.headers[AUTH_TOKEN_HEADER] = TEST_TOKEN
    return test_client


@pytest.fixture
def anonymous_client(app):
    """Test client that sends no token"""
    from fastapi.testclient import TestClient
    return TestClient(app)
