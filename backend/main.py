import logging
import logging.config
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

# ------------------------------------------------------------
# 1. CONFIG & LOGGING
# ------------------------------------------------------------
from assignflow.core.config import settings
from assignflow.core.firebase import get_db
from assignflow.utils.firebase import firestore_run

LOG_LEVEL = "INFO" if settings.ENVIRONMENT == "production" else "DEBUG"

logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["console"], "level": LOG_LEVEL},
        "uvicorn.error": {"handlers": ["console"], "level": LOG_LEVEL},
        "uvicorn.access": {"handlers": ["console"], "level": LOG_LEVEL},
        "assignflow": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

logging.config.dictConfig(logging_config)
logger = logging.getLogger("assignflow")


class CustomProxyHeadersMiddleware(BaseHTTPMiddleware):
    """
    Honour X-Forwarded-For / X-Forwarded-Proto from the load balancer so
    gateway redirect URLs and logs see the real client.
    """
    async def dispatch(self, request, call_next):
        x_forwarded_for = request.headers.get("x-forwarded-for")
        if x_forwarded_for:
            request.scope["client"] = (x_forwarded_for.split(",")[0].strip(), 0)

        x_forwarded_proto = request.headers.get("x-forwarded-proto")
        if x_forwarded_proto:
            request.scope["scheme"] = x_forwarded_proto

        return await call_next(request)


# ------------------------------------------------------------
# 2. FASTAPI APP
# ------------------------------------------------------------
app = FastAPI(
    title="AssignFlow API",
    description="Assignment marketplace: submission, pricing, payment, delivery, review and writer payouts.",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ------------------------------------------------------------
# 3. MIDDLEWARE
# ------------------------------------------------------------
app.add_middleware(CustomProxyHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------
# 4. ERROR HANDLERS
# ------------------------------------------------------------
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    return JSONResponse(
        status_code=400,
        content={"message": f"Invalid {field}: {first.get('msg', 'invalid value')}"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ------------------------------------------------------------
# 5. ROUTERS (API ROUTES)
# ------------------------------------------------------------
from assignflow.routers import (  # noqa: E402
    assignment_router,
    chat_router,
    dashboard_router,
    download_router,
    notifications_router,
    payment_router,
    paysheet_router,
    user_router,
    websocket_router,
    writer_router,
)

app.include_router(assignment_router.router, prefix="/api", tags=["Assignments"])
app.include_router(paysheet_router.router, prefix="/api", tags=["Paysheets"])
app.include_router(payment_router.router, prefix="/api", tags=["Payments"])
app.include_router(download_router.router, prefix="/api", tags=["Downloads"])
app.include_router(notifications_router.router, prefix="/api", tags=["Notifications"])
app.include_router(chat_router.router, prefix="/api", tags=["Chat"])
app.include_router(writer_router.router, prefix="/api", tags=["Writers"])
app.include_router(dashboard_router.router, prefix="/api", tags=["Dashboard"])
app.include_router(user_router.router, prefix="/api", tags=["Users"])
app.include_router(websocket_router.router)


# ------------------------------------------------------------
# 6. SYSTEM ROUTES
# ------------------------------------------------------------
@app.get("/health", tags=["System"])
async def health_check(db=Depends(get_db)):
    try:
        test_doc = db.collection("system").document("healthcheck")
        await firestore_run(test_doc.set, {"ping": datetime.now(timezone.utc)}, merge=True)
        return {"status": "healthy", "db": "connected"}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})
