# backend/app/main.py
"""FastAPI application factory for the TLS risk scanner."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.core import AppException, logs, settings
from backend.app.features.scanner.client import AssessmentClient
from backend.app.features.scanner.routes import router as scanner_router
from backend.app.features.scanner.services import ScanOrchestrator


def add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        if exc.status_code >= 500:
            logs.error("Request failed", "api", {"path": request.url.path}, exception=exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "details": exc.details},
        )


def create_app(orchestrator: Optional[ScanOrchestrator] = None) -> FastAPI:
    """
    Build the API application.

    Pass an orchestrator to reuse one (tests do this with a fake assessment
    client); otherwise one backed by the real assessment service is created
    for the lifetime of the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        client = None
        if app.state.orchestrator is None:
            client = AssessmentClient()
            app.state.orchestrator = ScanOrchestrator(
                client,
                max_duration=settings.SCAN_MAX_DURATION_SECONDS,
            )
        logs.info("Service started", "app", {"version": settings.APP_VERSION})
        try:
            yield
        finally:
            await app.state.orchestrator.shutdown()
            if client is not None:
                await client.aclose()
            logs.info("Service stopped", "app")

    app = FastAPI(
        title="TLS Risk Scanner API",
        description="Runs TLS assessments for domains and reduces them to a risk verdict",
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_exception_handlers(app)

    @app.get("/", tags=["info"])
    async def root() -> dict:
        return {
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs_url": "/docs",
            "api_base": settings.API_PREFIX,
        }

    @app.get("/health", tags=["info"])
    async def health(request: Request) -> dict:
        orchestrator = request.app.state.orchestrator
        if orchestrator is None:
            return {"status": "ok"}
        return {
            "status": "ok",
            "active_scans": orchestrator.active_scans,
            "in_progress": len(orchestrator.registry.in_progress()),
            "tracked_scans": len(orchestrator.registry),
        }

    app.include_router(scanner_router, prefix=settings.API_PREFIX)
    return app


app = create_app()
