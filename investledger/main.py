# investledger/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from investledger.core.clock import utcnow
from investledger.core.config import settings
from investledger.core.database import SessionLocal, engine, init_db
from investledger.core.errors import (
    ConflictError,
    LedgerError,
    LedgerSystemError,
    NotFound,
    PackageNotFound,
)
from investledger.core.logging_config import configure_logging
from investledger.jobs.scheduler import MaturityScheduler
from investledger.routes import account, admin, investments, packages, transactions, webhooks
from investledger.services.maturity import MaturityProcessor
from investledger.services.notifications import NotificationDispatcher, build_email_sender

logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default port
]


def _status_for(error: LedgerError) -> int:
    if isinstance(error, (NotFound, PackageNotFound)):
        return 404
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, LedgerSystemError):
        return 500
    return 400


def create_app(session_factory=SessionLocal, bind=None, scheduler_enabled=None, sender=None) -> FastAPI:
    notifier = NotificationDispatcher(sender or build_email_sender(settings), session_factory)
    processor = MaturityProcessor(session_factory, notifier=notifier)
    scheduler = MaturityScheduler(processor, interval_minutes=settings.MATURITY_INTERVAL_MINUTES)
    if scheduler_enabled is None:
        scheduler_enabled = settings.SCHEDULER_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        init_db(bind or engine)
        notifier.start()
        if scheduler_enabled:
            scheduler.start()
        logger.info(f"{settings.PROJECT_NAME} started")
        yield
        scheduler.shutdown()
        notifier.stop()
        logger.info(f"{settings.PROJECT_NAME} stopped")

    app = FastAPI(
        title=f"{settings.PROJECT_NAME} API",
        description="Investment platform ledger backend",
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory
    app.state.notifier = notifier
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": exc.code, "message": exc.message},
        )

    app.include_router(account.router, prefix=f"{settings.API_V1_STR}/account", tags=["account"])
    app.include_router(packages.router, prefix=f"{settings.API_V1_STR}/packages", tags=["packages"])
    app.include_router(investments.router, prefix=f"{settings.API_V1_STR}/investments", tags=["investments"])
    app.include_router(transactions.router, prefix=f"{settings.API_V1_STR}/transactions", tags=["transactions"])
    app.include_router(admin.router, prefix=f"{settings.API_V1_STR}/admin", tags=["admin"])
    app.include_router(webhooks.router, prefix=f"{settings.API_V1_STR}/webhooks", tags=["webhooks"])

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "service": settings.PROJECT_NAME, "timestamp": utcnow().isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("investledger.main:app", host="0.0.0.0", port=8000, reload=True)
