import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import APP_ENV, CORS_ORIGINS, LOG_DIR, LOG_LEVEL
from .database import SessionLocal, create_tables, engine as default_engine, get_session
from .errors import register_exception_handlers
from .logging_setup import setup_logging
from .mailer import Mailer
from .routers import admin, auth, notifications, tasks
from .seed import seed_database
from .services import build_services

logger = logging.getLogger(__name__)


def create_app(
    *,
    engine: Optional[Engine] = None,
    session_factory: Optional[sessionmaker] = None,
    mailer: Optional[Mailer] = None,
    start_scheduler: bool = True,
    seed: Optional[bool] = None,
) -> FastAPI:
    engine = engine or default_engine
    session_factory = session_factory or SessionLocal
    if seed is None:
        seed = APP_ENV != "production"

    app = FastAPI(
        title="Task Manager API",
        description="Personal task management with admin controls and deadline reminders",
        version="1.0.0",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.state.session_factory = session_factory
    app.state.services = build_services(session_factory, mailer)

    # Include routers
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(tasks.router, prefix="/api", tags=["tasks"])
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
    app.include_router(notifications.router, prefix="/api", tags=["notifications"])

    @app.on_event("startup")
    async def on_startup():
        create_tables(engine)
        if seed:
            with get_session(session_factory) as session:
                seed_database(session)
        if start_scheduler:
            app.state.services.scheduler.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.services.scheduler.stop()

    @app.get("/")
    def read_root():
        return {"message": "Task Manager API"}

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    return app


setup_logging(level=LOG_LEVEL, log_dir=LOG_DIR)

app = create_app()
