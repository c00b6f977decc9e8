"""FastAPI application entrypoint for the Finance Assistant service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finance_assistant.api.middleware.logging import LoggingMiddleware
from finance_assistant.api.routes import documents, system, users
from finance_assistant.core.config import settings
from finance_assistant.core.database import database_manager
from finance_assistant.core.exceptions import ApplicationError
from finance_assistant.core.observability import setup_tracing
from finance_assistant.orchestration.publisher import document_producer


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize shared resources on startup and tear them down on shutdown."""

    await database_manager.initialize()
    await document_producer.start()
    await document_producer.check_connection()

    try:
        yield
    finally:
        await document_producer.close()
        await database_manager.close()


app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

setup_tracing(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

# Routers
app.include_router(system.router)
app.include_router(users.router, prefix="/api")
app.include_router(documents.router, prefix="/api")


@app.exception_handler(ApplicationError)
async def handle_application_error(_: Request, exc: ApplicationError):
    """Return standardized responses for application layer exceptions."""

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "kind": exc.kind.value},
    )
