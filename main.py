"""FastAPI entry point for the Classroom Tutor service."""

import logging
from contextlib import asynccontextmanager

import litellm
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from services.chat_surface import get_surface_registry
from services.concurrency import ConcurrencyLimitMiddleware
from services.history import get_history_views
from services.middleware import RequestIdMiddleware
from services.rest_client import get_rest_client

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

litellm.request_timeout = settings.completion_timeout


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop the shared store client."""
    logger.info("Completion: %s via %s", settings.completion_model, settings.completion_base_url)
    rest_client = None
    if settings.store_backend == "rest":
        rest_client = get_rest_client()
        await rest_client.start()
    logger.info("Stores: %s backend", settings.store_backend)

    yield

    # Cancel open turns before the clients close.
    get_surface_registry().close_all()
    get_history_views().close_all()
    if rest_client is not None:
        await rest_client.close()


app = FastAPI(
    title="Classroom Tutor",
    description="Subject-aware AI tutor with PDF grounding and conversation history",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
# CORS → RequestId → ConcurrencyLimit → route handler
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(ConcurrencyLimitMiddleware)

# ── Register routers ────────────────────────────────────────
from api.chat import router as chat_router  # noqa: E402
from api.health import router as health_router  # noqa: E402
from api.history import router as history_router  # noqa: E402
from api.resources import router as resources_router  # noqa: E402

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(history_router)
app.include_router(resources_router)


if __name__ == "__main__":
    # Chat surfaces live in process memory: single worker only.
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        timeout_keep_alive=120,
    )
