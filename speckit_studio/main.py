"""Application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from speckit_studio import __version__
from speckit_studio.api.container import get_container
from speckit_studio.api.dependencies import limiter
from speckit_studio.api.routes.library import router as library_router
from speckit_studio.api.routes.sessions import router as sessions_router
from speckit_studio.shared.logging import setup_logging

log = structlog.get_logger()


def _apply_logging_config(container):
    """Apply logging from container config (stdout + optional file)."""
    c = container.config
    setup_logging(
        level=c.log_level,
        file_path=c.log_file or "",
        rotation_max_mb=c.log_rotation_max_mb,
        rotation_backups=c.log_rotation_backups,
    )


async def _check_backend(container) -> None:
    """Log whether the configured model is reachable. Never fails startup."""
    llm = container.llm
    if llm is None:
        log.info("generation_backend_offline", reason="llm.provider is none, using scripted documents")
        return
    model = container.config.llm.model
    try:
        models = await llm.list_models()
    except Exception as e:  # noqa: BLE001
        log.warning("models_validation_skipped", reason="llm_unreachable", error=str(e))
        return
    base = model.split(":")[0].lower()
    available = {m.lower() for m in models} | {m.split(":")[0].lower() for m in models}
    if models and model.lower() not in available and base not in available:
        log.warning("configured_model_not_available", model=model, available_count=len(models))
    else:
        log.debug("models_validation_ok", model=model)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging, seed the system library, check the backend."""
    container = get_container()
    _apply_logging_config(container)
    log.info(
        "startup_begin",
        llm_provider=container.config.llm.provider,
        output_dir=container.config.persistence.output_dir,
    )
    container.library_service.get_system_library()
    await _check_backend(container)
    log.info("startup_complete")
    yield
    log.info("shutdown_begin")
    if container.llm is not None and hasattr(container.llm, "close"):
        try:
            await container.llm.close()
        except Exception:  # noqa: BLE001
            log.debug("llm_close_error", exc_info=True)
    log.info("shutdown_complete")


app = FastAPI(
    title="SpecKit Studio",
    version=__version__,
    description="Specification workflow: clarification, spec, checklist, tech design, test plans, tasks",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
container = get_container()
app.add_middleware(
    CORSMiddleware,
    allow_origins=container.config.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions_router)
app.include_router(library_router)


@app.get("/health")
@limiter.limit("100/minute")
async def health(request: Request) -> dict:
    """Health check with generation backend availability."""
    container = get_container()
    llm = container.llm
    llm_available = await llm.is_available() if llm is not None else False
    return {
        "status": "ok",
        "service": "speckit-studio",
        "llm_provider": container.config.llm.provider,
        "llm_available": llm_available,
    }
