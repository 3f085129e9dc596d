import json
import logging
import os
import time

import google.cloud.logging
from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from venturelens.api.router import router as startups_router
from venturelens.database.database import init_db
from venturelens.storage.deck_uploader import deck_bucket, max_upload_bytes

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def setup_cloud_logging() -> None:
    """Route the root logger to Google Cloud Logging as well as stderr."""
    client = google.cloud.logging.Client()
    handler = client.get_default_handler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    client.setup_logging()
    logger.info("Google Cloud Logging enabled")


if os.getenv("ENABLE_CLOUD_LOGGING", "false").lower() == "true":
    setup_cloud_logging()


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app = FastAPI(
    title="VentureLens Deck Analysis API",
    description="Pitch-deck scoring, trust signals and anomaly alerts for founders and investors.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    logger.info(json.dumps({
        "event": "request_received",
        "method": request.method,
        "path": request.url.path,
    }))
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(json.dumps({
            "event": "request_error",
            "path": request.url.path,
            "error": str(e),
        }), exc_info=True)
        raise
    logger.info(json.dumps({
        "event": "request_completed",
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "duration_ms": round((time.perf_counter() - started) * 1000, 1),
    }))
    return response


app.include_router(startups_router, prefix="/api", tags=["Startups"])


@app.get("/health")
def health_check():
    return {"status": "ok"}


# ------------------------------------------------------------------
# Exception Handlers
# ------------------------------------------------------------------

@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
    if exc.status_code == 404:
        logger.warning("HTTP 404 for %s: %s", request.url.path, exc.detail)
    else:
        logger.error("HTTP %s for %s: %s", exc.status_code, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception for %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info(
        "VentureLens API ready (bucket=%s, max upload=%d MB)",
        deck_bucket(), max_upload_bytes() // (1024 * 1024),
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("VentureLens API shutting down")
