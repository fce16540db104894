"""
FastAPI service skeleton shared by AppData services.

Subclasses acquire their long-lived resources in ``startup``, release them
in ``shutdown`` and report them from ``_check_dependencies``.
"""

import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.config import AppDataConfig, get_config
from shared.logging import clear_context, configure_logging, get_logger, set_request_id

REQUEST_ID_HEADER = "X-Request-ID"


class HealthReport(BaseModel):
    """Body of the /health endpoint."""

    service: str
    status: str
    uptime_seconds: float
    dependencies: Dict[str, str] = {}
    version: str
    commit: str


class BaseService:
    """Base service class with common functionality."""

    version = "1.0.0"

    def __init__(self, service_name: str, config: Optional[AppDataConfig] = None):
        self.service_name = service_name
        self.config = config or get_config()
        configure_logging(service_name, self.config.log_level)
        self.logger = get_logger(service_name)
        self.started_at = time.monotonic()

        self.app = FastAPI(
            title=f"{service_name.title()} Service",
            version=self.version,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
            lifespan=self._lifespan,
        )
        self.app.middleware("http")(self._request_context)
        self.app.add_api_route("/health", self._health, methods=["GET"], response_model=HealthReport)
        self.app.add_exception_handler(Exception, self._unhandled)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown()

    async def startup(self) -> None:
        """Acquire long-lived resources."""

    async def shutdown(self) -> None:
        """Release long-lived resources."""

    async def _check_dependencies(self) -> Dict[str, str]:
        """Map each dependency name to "ok" or "error"."""
        return {}

    async def _request_context(self, request: Request, call_next):
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        began = time.perf_counter()
        try:
            response = await call_next(request)
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - began) * 1000, 2),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()

    async def _health(self):
        dependencies = await self._check_dependencies()
        healthy = all(state == "ok" for state in dependencies.values())
        report = HealthReport(
            service=self.service_name,
            status="ok" if healthy else "degraded",
            uptime_seconds=round(time.monotonic() - self.started_at, 3),
            dependencies=dependencies,
            version=self.version,
            commit=os.getenv("GIT_COMMIT", "unknown"),
        )
        if healthy:
            return report
        self.logger.warning("Health check degraded", dependencies=dependencies)
        return JSONResponse(status_code=503, content=report.model_dump())

    async def _unhandled(self, request: Request, exc: Exception) -> JSONResponse:
        self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
        )

    def run(self) -> None:
        """Serve the app with uvicorn."""
        import uvicorn

        uvicorn.run(self.app, host=self.config.host, port=self.config.port, log_level=self.config.log_level.lower())
