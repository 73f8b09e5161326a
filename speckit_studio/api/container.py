"""Dependency Injection Container - centralized service management."""

from functools import cached_property
from typing import TYPE_CHECKING

from speckit_studio.domain.ports.config import AppConfig
from speckit_studio.domain.ports.llm import LLMPort
from speckit_studio.domain.ports.storage import BlobStorePort
from speckit_studio.infrastructure.config import load_config

if TYPE_CHECKING:
    from speckit_studio.application.sessions.library import LibraryService
    from speckit_studio.application.sessions.use_case import SessionTurnService
    from speckit_studio.application.workflow.use_case import SpecWorkflowUseCase
    from speckit_studio.infrastructure.llm.generation_backend import GenerationBackend


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached.

    Usage:
        container = Container()
        sessions = container.session_service
    """

    def __init__(self, config: AppConfig | None = None):
        """Initialize container with optional config override."""
        self._config_override = config

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    @cached_property
    def llm(self) -> LLMPort | None:
        """LLM adapter based on config provider; None when no backend is configured."""
        if not self.config.llm.enabled:
            return None
        if self.config.llm.provider == "lm_studio":
            from speckit_studio.infrastructure.llm.openai_compatible import OpenAICompatibleAdapter
            return OpenAICompatibleAdapter(self.config.openai_compatible)

        from speckit_studio.infrastructure.llm.ollama import OllamaAdapter
        return OllamaAdapter(self.config.ollama)

    @cached_property
    def backend(self) -> "GenerationBackend | None":
        """Generation backend adapter over the LLM port."""
        if self.llm is None:
            return None
        from speckit_studio.infrastructure.llm.generation_backend import GenerationBackend
        gen = self.config.generation
        return GenerationBackend(
            self.llm,
            model=self.config.llm.model,
            temperature=gen.temperature,
            classify_temperature=gen.classify_temperature,
        )

    @cached_property
    def store(self) -> BlobStorePort:
        """Key -> JSON blob store under the output directory."""
        from speckit_studio.infrastructure.persistence.json_store import JsonFileStore
        return JsonFileStore(output_dir=self.config.persistence.output_dir)

    @cached_property
    def library_service(self) -> "LibraryService":
        """System and personal library trees."""
        from speckit_studio.application.sessions.library import LibraryService
        return LibraryService(self.store)

    @cached_property
    def workflow_use_case(self) -> "SpecWorkflowUseCase":
        """Orchestrator: clarification and stage handlers."""
        from speckit_studio.application.workflow.use_case import SpecWorkflowUseCase
        return SpecWorkflowUseCase(
            backend=self.backend,
            mock_delay_seconds=self.config.generation.mock_delay_seconds,
        )

    @cached_property
    def session_service(self) -> "SessionTurnService":
        """Sessions, turns and per-session cancellation."""
        from speckit_studio.application.sessions.use_case import SessionTurnService
        return SessionTurnService(
            workflow=self.workflow_use_case,
            store=self.store,
            library=self.library_service,
        )

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def set_container(container: Container) -> None:
    """Install a prebuilt container (tests, embedding)."""
    global _container
    _container = container


def reset_container() -> None:
    """Reset global container (for testing)."""
    global _container
    if _container:
        _container.reset()
    _container = None
