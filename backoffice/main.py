import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .auth.router import router as auth_router
from .config import settings
from .errors import StoreError
from .logging import RequestIdMiddleware, setup_logging
from .routes.employees import router as employees_router
from .routes.inventory import assignments_router, router as inventory_router
from .routes.notes import router as notes_router
from .routes.proposals import router as proposals_router
from .routes.ratecards import router as ratecards_router
from .routes.users import router as users_router


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log("request_failed", kind=exc.kind, status=exc.status_code, message=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(employees_router)
    app.include_router(inventory_router)
    app.include_router(assignments_router)
    app.include_router(proposals_router)
    app.include_router(ratecards_router)
    app.include_router(notes_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        os.makedirs(settings.data_dir, exist_ok=True)
        os.makedirs(settings.files_dir, exist_ok=True)
        logger.info("startup", data_dir=settings.data_dir, storage=settings.storage_provider)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app


app = create_app()
