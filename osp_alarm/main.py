# osp_alarm/main.py
"""
FastAPI application entry point.
Includes request logging middleware, global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from osp_alarm.routers import alarm_response, health
from osp_alarm.database import create_tables
from osp_alarm.config import settings
from osp_alarm.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="OSP Alarm Response API",
    description="Volunteer fire brigade alarm confirmation: trigger, respond, live stats.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (mobile clients call the API directly) ─────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Malformed request bodies are client errors (400) ─────────────────────────
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": e.get("loc"), "msg": str(e.get("msg"))} for e in exc.errors()]
    logger.info(f"Invalid request on {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": errors},
    )


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(alarm_response.router, prefix="/api/v1", tags=["🚨 Alarm Response"])
app.include_router(health.router,         prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚒 OSP Alarm backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"⏱  Response window: {settings.ALARM_RESPONSE_WINDOW_SECONDS}s, "
                f"dedup window: {settings.ALARM_DEDUP_WINDOW_SECONDS}s")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 OSP Alarm backend shutting down...")
