# groupmatch/main.py
"""
Application entrypoint. Wires services, includes routers, drains the
recompute dispatcher on shutdown.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from groupmatch.api.routers import admin, groups, matching, quiz, users
from groupmatch.config.settings import settings
from groupmatch.domain.errors import ConcurrencyConflict, DispatcherClosedError, NotFoundError, ValidationError
from groupmatch.infrastructure.db import session as db_session
from groupmatch.services.container import build_services

logger = logging.getLogger(__name__)


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception):
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    return handler


def create_app(engine: Optional[Engine] = None, workers: Optional[int] = None) -> FastAPI:
    engine = engine or db_session.engine
    session_factory = db_session.make_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting matching engine")
        db_session.init_db(engine)
        app.state.engine = engine
        app.state.services = build_services(session_factory, workers)
        try:
            yield
        finally:
            logger.info("Draining recompute dispatcher")
            app.state.services.close(timeout=settings.DISPATCHER_DRAIN_TIMEOUT)
            logger.info("Shutdown complete")

    app = FastAPI(title="Study Group Matching Engine", lifespan=lifespan)

    # Basic CORS (adjust origins in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, _error_handler(422))
    app.add_exception_handler(NotFoundError, _error_handler(404))
    app.add_exception_handler(ConcurrencyConflict, _error_handler(409))
    app.add_exception_handler(DispatcherClosedError, _error_handler(503))

    app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
    app.include_router(quiz.router, prefix="/api/v1/quiz", tags=["quiz"])
    app.include_router(groups.router, prefix="/api/v1/groups", tags=["groups"])
    app.include_router(matching.router, prefix="/api/v1/matching", tags=["matching"])
    app.include_router(admin.router, prefix="/api/v1/admin", tags=["admin"])

    @app.get("/")
    async def index():
        """Health / basic info endpoint."""
        return {"status": "ok", "service": "groupmatch", "env": settings.ENV}

    return app


logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("groupmatch.main:app", host="0.0.0.0", port=8000)
