"""
Main FastAPI application for the animeleak API.
Serves users, images, public gallery/share, files, payments, admin, health and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from animeleak.core.config import settings
from animeleak.core.logging import configure_logging
from animeleak.api.routes import admin, files, health, images, payments, public, users
from animeleak.services.errors import (
    InsufficientCredits,
    NotAuthorized,
    NotFound,
    TransformationError,
    ValidationError,
)
from animeleak.utils.metrics import router as metrics_router

logger = logging.getLogger(__name__)


app = FastAPI(
    title="animeleak API",
    description="Credit-gated photo transformation API",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup() -> None:
    configure_logging()


@app.middleware("http")
async def request_logging(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid4().hex
    started = time.monotonic()
    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    logger.info(
        "http_request",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "latency_ms": round((time.monotonic() - started) * 1000, 1),
        },
    )
    return response


ERROR_STATUS = {
    ValidationError: 400,
    InsufficientCredits: 402,
    NotAuthorized: 403,
    NotFound: 404,
}


@app.exception_handler(TransformationError)
async def transformation_error_handler(request: Request, exc: TransformationError) -> JSONResponse:
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    content = {"detail": str(exc) or type(exc).__name__}
    if isinstance(exc, InsufficientCredits):
        content["credits"] = exc.credits
    if status_code == 500:
        logger.error("unhandled_domain_error", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=status_code, content=content)


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(users.router)
app.include_router(images.router)
app.include_router(public.router)
app.include_router(files.router)
app.include_router(payments.router)
app.include_router(admin.router)
app.include_router(metrics_router)
