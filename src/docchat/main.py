import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from docchat.api.rag import router as session_router
from docchat.config import load_settings
from docchat.logging_config import configure_logging
from docchat.services.rag import close_rag_session
from docchat.telemetry import emit_app_startup_event

_settings = load_settings()
configure_logging(level=_settings.log_level, log_dir=_settings.log_dir)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="DocChat API")
app.include_router(session_router)


@app.on_event("startup")
async def _on_startup() -> None:
    emit_app_startup_event()
    LOGGER.info("Completion backend: %s", _settings.completion_url)


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    """Drop the session state when the process stops."""

    await close_rag_session()


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Liveness probe used by container orchestrators."""
    return "ok"
