import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from .core import cache, database
from .core.config import settings
from .routers import cotacoes

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await database.get_pool()  # Warm pool on startup
    yield
    await cache.close_client()
    await database.close_pool()


app = FastAPI(
    title="Cotações de Frete Backend",
    version="1.0.0",
    lifespan=lifespan,
)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5500",
    "http://127.0.0.1:5500",
]

configured_origins = settings.cors_origins or []
if "*" in configured_origins:
    allowed_origins = ["*"]
else:
    allowed_origins = list(dict.fromkeys(configured_origins + DEFAULT_CORS_ORIGINS))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    # Credentials cannot be combined with a wildcard origin
    allow_credentials="*" not in allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(cotacoes.router, prefix=settings.api_prefix, tags=["cotacoes"])


@app.get("/health")
async def health(response: Response):
    report = {
        "status": "ok",
        "database": "ok",
        "cache": "ok" if cache.cache_enabled() else "disabled",
    }

    try:
        if not await database.ping():
            report["database"] = "unavailable"
    except Exception:
        log.exception("Health check: database unreachable")
        report["database"] = "unavailable"

    if cache.cache_enabled():
        try:
            if not await cache.ping():
                report["cache"] = "unavailable"
        except Exception:
            log.exception("Health check: cache unreachable")
            report["cache"] = "unavailable"

    if "unavailable" in (report["database"], report["cache"]):
        report["status"] = "degraded"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return report
