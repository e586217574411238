from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.cors import CORSMiddleware

from .bootstrap import ensure_initialized
from .config import Settings, settings
from .db import StoreError, VocabStore
from .dependencies import get_store
from .logging_utils import configure_logging
from .metrics import CONTENT_TYPE_LATEST, REQUESTS_TOTAL, generate_latest
from .routers.admin import router as admin_router
from .routers.lessons import router as lessons_router
from .routers.vocab import router as vocab_router

configure_logging()
logger = logging.getLogger("vocab_trainer.app")


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or settings
    app_settings.validate()

    app = FastAPI(title="Vocab Trainer API", version="1.0.0")
    app.state.settings = app_settings
    app.state.store = None

    @app.on_event("startup")
    async def startup_event() -> None:
        result = ensure_initialized(app_settings)
        app.state.store = VocabStore(app_settings.database_url)
        app.state.store.check_connection()
        logger.info(
            "Vocab Trainer startup complete",
            extra={
                "event": "startup",
                "source": result.source,
                "count": result.vocabulary_count,
                "db_backend": "sqlite" if app_settings.is_sqlite else "postgres",
            },
        )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        if app.state.store is not None:
            app.state.store.close()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def count_requests(request: Request, call_next):
        response = await call_next(request)
        REQUESTS_TOTAL.labels(method=request.method, path=request.url.path, status=str(response.status_code)).inc()
        return response

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(
            "Unhandled store error",
            exc_info=exc,
            extra={"event": "store_error", "path": request.url.path},
        )
        return JSONResponse(status_code=500, content={"detail": "store_error"})

    @app.exception_handler(StoreError)
    async def closed_store_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(
            "Store unavailable",
            extra={"event": "store_error", "path": request.url.path, "reason": str(exc)},
        )
        return JSONResponse(status_code=503, content={"detail": "store_unavailable"})

    api_router = APIRouter(prefix="/api")

    @api_router.get("/health")
    async def api_healthcheck(store: VocabStore = Depends(get_store)) -> dict[str, str]:
        store.check_connection()
        return {"status": "ok", "ts": datetime.now(timezone.utc).isoformat()}

    @app.get("/health")
    async def healthcheck(store: VocabStore = Depends(get_store)) -> dict[str, str]:
        store.check_connection()
        return {"status": "ok", "ts": datetime.now(timezone.utc).isoformat()}

    @app.get("/metrics")
    async def metrics() -> Response:
        if not app_settings.enable_prometheus_metrics:
            raise HTTPException(status_code=404, detail="Metrics disabled")
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    api_router.include_router(vocab_router)
    api_router.include_router(lessons_router)
    api_router.include_router(admin_router)
    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("vocab_trainer.main:app", host="0.0.0.0", port=settings.port)
