"""
FastAPI HTTP Transport for nl2table

Provides REST endpoints:
- /health - Liveness probe
- /api/generate - Natural-language request to preview table
- /api/cell-command - Natural-language command to single cell edit
- /api/catalog/search - Search the dataset catalog
- /api/catalog/dataset - Select a dataset and list its files
- /api/catalog/file - Preview one file of a dataset

NOTE: Do NOT add `from __future__ import annotations` to this file.
PEP 563 breaks FastAPI's runtime introspection for parameter sources.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.nl2table.config import NL2TableConfig
from src.nl2table.exceptions import (
    NL2TableError,
    NoProviderAvailable,
    NotFound,
    UpstreamUnavailable,
    ValidationError,
)
from src.nl2table.models import ErrorPayload, ProviderCredential
from src.nl2table.service import DataGenerationService, build_service
from src.nl2table.storage import create_record_store

logger = logging.getLogger(__name__)

# Checked in order; the first matching base class decides
_STATUS_BY_ERROR: tuple[tuple[type[NL2TableError], int], ...] = (
    (ValidationError, 422),
    (NotFound, 404),
    (NoProviderAvailable, 503),
    (UpstreamUnavailable, 502),
)


def _error_classes(base: type[NL2TableError] = NL2TableError) -> dict[str, type[NL2TableError]]:
    classes = {base.__name__: base}
    for sub in base.__subclasses__():
        classes.update(_error_classes(sub))
    return classes


def status_for(error: BaseException | ErrorPayload) -> int:
    """HTTP status for an exception or an error payload's ``kind``."""
    if isinstance(error, ErrorPayload):
        error_class: type | None = _error_classes().get(error.kind)
    else:
        error_class = type(error)

    if error_class is not None:
        for base, status in _STATUS_BY_ERROR:
            if issubclass(error_class, base):
                return status
    return 500


# Request models
class CredentialBody(BaseModel):
    """Per-call LLM backend selection. Never stored or logged."""

    provider_id: str | None = Field(None, max_length=50)
    model: str | None = Field(None, max_length=200)
    api_key: str | None = Field(None, max_length=500)

    def to_credential(self) -> ProviderCredential | None:
        return ProviderCredential.from_dict(self.model_dump())


class GenerateRequest(BaseModel):
    """Request body for /api/generate."""

    prompt: str = Field(..., min_length=1, max_length=4000)
    source_preference: str = Field("auto", max_length=20)
    credential: CredentialBody | None = None


class CellCommandRequest(BaseModel):
    """Request body for /api/cell-command."""

    command: str = Field(..., min_length=1, max_length=1000)
    credential: CredentialBody | None = None


class CatalogSearchRequest(BaseModel):
    """Request body for /api/catalog/search."""

    prompt: str = Field(..., min_length=1, max_length=500)


class DatasetRequest(BaseModel):
    """Request body for /api/catalog/dataset."""

    ref: str = Field(..., min_length=3, max_length=300)


class FileRequest(BaseModel):
    """Request body for /api/catalog/file."""

    ref: str = Field(..., min_length=3, max_length=300)
    file_name: str = Field(..., min_length=1, max_length=500)


def _error_response(error: NL2TableError) -> JSONResponse:
    payload = ErrorPayload.from_exception(error)
    return JSONResponse(content={"error": payload.to_dict()}, status_code=status_for(error))


def create_app(
    config: NL2TableConfig | None = None,
    service: DataGenerationService | None = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Service configuration
        service: Pre-built service (tests); built from config during startup
            when omitted

    Returns:
        FastAPI application instance
    """
    config = config or NL2TableConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        owned = service is None
        if owned:
            logger.info(f"Starting nl2table service (storage={config.storage_backend})")
            store = await create_record_store(config)
            app.state.service = build_service(config, store)
        else:
            app.state.service = service

        logger.info("nl2table service initialized")
        yield

        if owned:
            logger.info("Shutting down nl2table service")
            await app.state.service.close()

    app = FastAPI(
        title="nl2table",
        description="Natural language requests to tabular data previews",
        version="0.1.0",
        lifespan=lifespan,
    )

    def get_service(request: Request) -> DataGenerationService:
        return request.app.state.service

    @app.get("/health")
    async def liveness_check(request: Request) -> JSONResponse:
        """Liveness probe with a summary of what is configured."""
        svc = get_service(request)
        return JSONResponse(
            content={
                "status": "alive",
                "catalog_configured": svc.gateway.is_configured,
                "backends": [name.value for name in svc.router.backend_names],
            },
            status_code=200,
        )

    @app.post("/api/generate")
    async def generate_endpoint(body: GenerateRequest, request: Request) -> JSONResponse:
        """Generate a preview table for a free-text request."""
        credential = body.credential.to_credential() if body.credential else None
        response = await get_service(request).generate_data(
            body.prompt,
            body.source_preference,
            credential=credential,
        )
        status = status_for(response.error) if response.error else 200
        return JSONResponse(content=response.to_dict(), status_code=status)

    @app.post("/api/cell-command")
    async def cell_command_endpoint(body: CellCommandRequest, request: Request) -> JSONResponse:
        """Turn a natural-language cell command into a single cell edit."""
        credential = body.credential.to_credential() if body.credential else None
        response = await get_service(request).execute_cell_command(body.command, credential=credential)
        status = status_for(response.error) if response.error else 200
        return JSONResponse(content=response.to_dict(), status_code=status)

    @app.post("/api/catalog/search")
    async def catalog_search_endpoint(body: CatalogSearchRequest, request: Request) -> JSONResponse:
        """Search the dataset catalog."""
        datasets = await get_service(request).gateway.search(body.prompt)
        return JSONResponse(content={"datasets": [d.to_dict() for d in datasets]})

    @app.post("/api/catalog/dataset")
    async def catalog_dataset_endpoint(body: DatasetRequest, request: Request) -> JSONResponse:
        """Select a dataset and list its files."""
        try:
            files = await get_service(request).gateway.dataset_files(body.ref)
        except NL2TableError as e:
            logger.warning(f"Dataset selection failed for '{body.ref}': {e}")
            return _error_response(e)
        return JSONResponse(content={"files": files})

    @app.post("/api/catalog/file")
    async def catalog_file_endpoint(body: FileRequest, request: Request) -> JSONResponse:
        """Preview one file of a dataset."""
        try:
            preview = await get_service(request).gateway.fetch_preview(body.ref, body.file_name)
        except NL2TableError as e:
            logger.warning(f"Preview failed for '{body.ref}/{body.file_name}': {e}")
            return _error_response(e)
        return JSONResponse(
            content={"preview": [dict(row) for row in preview.rows], "cached": preview.cached}
        )

    return app


async def run_http_server(config: NL2TableConfig | None = None) -> None:
    """
    Run the HTTP server.

    Args:
        config: Service configuration
    """
    config = config or NL2TableConfig()
    app = create_app(config)

    logger.info(f"Starting HTTP server on {config.host}:{config.port}")

    server_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
    server = uvicorn.Server(server_config)
    await server.serve()
