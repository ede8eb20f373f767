"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from payroll_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from payroll_ledger.api.v1 import advances, escrow, settings as advance_settings
from payroll_ledger.container import LedgerContainer, build_container
from payroll_ledger.infrastructure.observability.logging import setup_logging
from payroll_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)


def create_app(container: LedgerContainer | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    ``container`` replaces the ledgers built from configuration (tests pass
    one bound to a temporary database).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ledgers = container or build_container()
        ledgers.load()
        app.state.ledgers = ledgers
        logger.info("Ledgers ready", extra={"persistent": ledgers.store is not None})
        try:
            yield
        finally:
            ledgers.close()

    app = FastAPI(
        title="Payroll Advance & Escrow Ledger",
        description="Cash advance, repayment and escrow bookkeeping service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(advances.router, prefix="/v1", tags=["advances"])
    app.include_router(advance_settings.router, prefix="/v1", tags=["settings"])
    app.include_router(escrow.router, prefix="/v1", tags=["escrow"])

    return app


app = create_app()
