from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.api.routes.health import router as health_router
from app.api.routes.agents import router as agents_router
from app.api.routes.missions import router as missions_router
from app.api.routes.findings import router as findings_router
from app.api.routes.qc import router as qc_router
from app.api.routes.admin import router as admin_router
from app.api.routes.jobs import router as jobs_router
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.services.mission_service import load_seed_file, seed_missions
from app.tasks.reclaim_tasks import task_reclaim_stale

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def envelope(request_id: str, data: Any = None, error: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"request_id": request_id, "data": data, "error": error}


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = req_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    detail = exc.detail
    # Coordinator errors carry {"code", "message"}.
    if isinstance(detail, dict):
        code = str(detail.get("code") or "HTTP_ERROR")
        message = detail.get("message") or str(detail)
        error = {"code": code, "message": message}
    else:
        error = {"code": "HTTP_ERROR", "message": str(detail)}

    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(request_id=req_id, data=None, error=error),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return JSONResponse(
        status_code=422,
        content=envelope(
            request_id=req_id,
            data=None,
            error={
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": {"errors": exc.errors()},
            },
        ),
    )


@app.exception_handler(SQLAlchemyError)
async def store_exception_handler(request: Request, exc: SQLAlchemyError):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    logger.exception("store error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=envelope(request_id=req_id, data=None, error={"code": "STORE_ERROR", "message": str(exc)}),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=envelope(request_id=req_id, data=None, error={"code": "INTERNAL_ERROR", "message": str(exc)}),
    )


async def _auto_reclaim_loop() -> None:
    interval = max(1, int(settings.AUTO_RECLAIM_INTERVAL_SEC))
    while True:
        await asyncio.sleep(interval)
        try:
            res = await run_in_threadpool(task_reclaim_stale)
            if res.get("agents"):
                logger.info("auto-reclaim: %s", res)
        except Exception:
            logger.exception("auto-reclaim pass failed")


@app.on_event("startup")
def bootstrap_store():
    """Create tables and seed missions (safe to run repeatedly)."""
    if settings.DB_AUTO_CREATE:
        Base.metadata.create_all(bind=engine)

    if settings.MISSIONS_SEED_PATH:
        db = SessionLocal()
        try:
            res = seed_missions(db, load_seed_file(settings.MISSIONS_SEED_PATH))
            logger.info("mission seed: %s", res)
        finally:
            db.close()


@app.on_event("startup")
async def start_auto_reclaim():
    if settings.AUTO_RECLAIM_ENABLED:
        app.state.reclaim_task = asyncio.create_task(_auto_reclaim_loop())
        logger.info("auto-reclaim every %ss (timeout %ss)", settings.AUTO_RECLAIM_INTERVAL_SEC, settings.HEARTBEAT_TIMEOUT_SEC)


@app.on_event("shutdown")
async def stop_auto_reclaim():
    task = getattr(app.state, "reclaim_task", None)
    if task is not None:
        task.cancel()


app.include_router(health_router, prefix="/api")
app.include_router(agents_router, prefix="/api")
app.include_router(missions_router, prefix="/api")
app.include_router(findings_router, prefix="/api")
app.include_router(qc_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(jobs_router, prefix="/api")
