"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from speckit_studio.application.workflow.use_case import SpecWorkflowUseCase
from speckit_studio.domain.entities.project_state import ProjectState, create_default_project_state
from speckit_studio.domain.ports.config import AppConfig, GenerationConfig, LLMConfig, PersistenceConfig
from speckit_studio.infrastructure.library.default_library import build_default_library
from speckit_studio.infrastructure.llm.generation_backend import ClarificationQuestion, GenerationBackend
from speckit_studio.infrastructure.persistence.json_store import JsonFileStore


@pytest.fixture
def system_files():
    """Fresh default system library."""
    return build_default_library()


@pytest.fixture
def state() -> ProjectState:
    """Fresh project state (step init, empty context)."""
    return create_default_project_state("sess-test")


@pytest.fixture
def store(tmp_path) -> JsonFileStore:
    return JsonFileStore(output_dir=str(tmp_path))


@pytest.fixture
def offline_workflow() -> SpecWorkflowUseCase:
    """Orchestrator without a backend and without simulated latency."""
    return SpecWorkflowUseCase(backend=None, mock_delay_seconds=0)


@pytest.fixture
def backend() -> MagicMock:
    """GenerationBackend double: never "enough", fixed documents, classify -> chat."""
    mock = MagicMock(spec=GenerationBackend)
    mock.clarify = AsyncMock(
        return_value=ClarificationQuestion(
            question="Which users?",
            options=["A", "B"],
            recommendation="B",
            is_enough=False,
        )
    )
    mock.complete = AsyncMock(return_value="# Generated")
    mock.complete_multi_document = AsyncMock(return_value={"backend.md": "# BE", "web.md": "# WEB"})
    mock.classify = AsyncMock(return_value="chat")
    return mock


@pytest.fixture
def offline_config(tmp_path) -> AppConfig:
    """App config with no generation backend, storing under tmp_path."""
    return AppConfig(
        llm=LLMConfig(provider="none"),
        generation=GenerationConfig(mock_delay_seconds=0),
        persistence=PersistenceConfig(output_dir=str(tmp_path)),
    )


@pytest.fixture
async def api_client(offline_config):
    """HTTP client against the app wired to an offline container."""
    from speckit_studio.api.container import Container, reset_container, set_container
    from speckit_studio.api.dependencies import limiter
    from speckit_studio.main import app

    set_container(Container(offline_config))
    limiter.reset()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    reset_container()
