"""FastAPI application factory for KubeSim.

Usage::

    from kubesim.api.app import create_app

    app = create_app(simulation)

The factory is used by both the real-time server (``kubesim.app``) and
unit tests, which pass a ``SimulationApp`` that is never started.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubesim.api.routes import router
from kubesim.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(simulation: Any) -> FastAPI:
    """Create and configure the KubeSim FastAPI application.

    Args:
        simulation: SimulationApp instance whose store, engines and command
                    dispatcher back every route.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubesim import __version__

    app = FastAPI(
        title="KubeSim",
        summary="Container-orchestration cluster simulation API",
        version=__version__,
        description=(
            "KubeSim simulates a container-orchestration cluster: nodes, workloads, "
            "control loops and cascading incidents, advanced in fixed simulated ticks."
        ),
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.simulation = simulation
    app.state.version = __version__

    app.include_router(router, prefix=_API_PREFIX)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map Pydantic validation errors to our error envelope."""
        errors = exc.errors()
        first_field = ""
        first_msg = ""
        if errors:
            locs = errors[0].get("loc", ())
            first_field = str(locs[-1]) if locs else ""
            first_msg = str(errors[0].get("msg", ""))

        detail = f"{first_field}: {first_msg}" if first_field else first_msg
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_REQUEST", detail=detail).model_dump(),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(
        _request: Request,
        exc: ValueError,
    ) -> JSONResponse:
        """Spec validation failures raised by the kernel are client errors."""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_SPEC", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
