"""FastAPI dependencies - thin accessors over the DI container."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from speckit_studio.api.container import get_container
from speckit_studio.application.sessions.library import LibraryService
from speckit_studio.application.sessions.use_case import SessionTurnService
from speckit_studio.domain.ports.config import AppConfig

limiter = Limiter(key_func=get_remote_address)


def get_config() -> AppConfig:
    return get_container().config


def get_session_service() -> SessionTurnService:
    return get_container().session_service


def get_library_service() -> LibraryService:
    return get_container().library_service


def configured_rate_limit() -> str:
    """Per-client limit for generation endpoints, from security.rate_limit_requests_per_minute."""
    return f"{get_config().security.rate_limit_requests_per_minute}/minute"
