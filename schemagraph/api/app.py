"""
FastAPI application factory for schemagraph.

This module creates the FastAPI app with:
- CORS configuration for the form builder frontend
- One editing session (graph store, widget registry, lock) in app.state
- A request body size limit (413 above SCHEMAGRAPH_MAX_DOCUMENT_BYTES)
- Error handlers mapping error codes to HTTP status codes
- The /api/v1 routes
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import AppConfig
from ..errors import SchemaGraphError
from ..widgets.registry import WidgetRegistry
from .routes import router
from .session import EditorSession

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "UNKNOWN_WIDGET": 404,
    "DUPLICATE_KEY": 409,
    "DUPLICATE_NAME": 409,
    "DEFINITION_IN_USE": 409,
    "CYCLE_DETECTED": 409,
}


def status_for(error: SchemaGraphError) -> int:
    """HTTP status for an error code (422 unless listed)."""
    return _STATUS_BY_CODE.get(error.code, 422)


def create_app(config: AppConfig | None = None, registry: WidgetRegistry | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or AppConfig()

    app = FastAPI(
        title="schemagraph",
        description="Graph-backed JSON Schema form builder engine.",
        version=__version__,
    )
    app.state.session = EditorSession(config, registry)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.http.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_document_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > config.http.max_document_bytes:
            logger.info(f"{request.method} {request.url.path} rejected: body of {length} bytes")
            return JSONResponse(
                status_code=413,
                content={
                    "error": {
                        "code": "DOCUMENT_TOO_LARGE",
                        "message": f"Request body exceeds {config.http.max_document_bytes} bytes",
                        "details": {"limit": config.http.max_document_bytes},
                    }
                },
            )
        return await call_next(request)

    @app.exception_handler(SchemaGraphError)
    async def schema_graph_error_handler(request: Request, exc: SchemaGraphError):
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
        return JSONResponse(status_code=status, content={"error": exc.to_dict()})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=422,
            content={"error": {"code": "INVALID_VALUE", "message": str(exc), "details": {}}},
        )

    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        session: EditorSession = app.state.session
        return {
            "status": "healthy",
            "service": "schemagraph",
            "version": __version__,
            "graph_version": session.store.version,
        }

    return app
