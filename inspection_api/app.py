"""
FastAPI application factory.

``create_app`` wires the configuration and an InspectionWorkflow into the
app state and maps the kernel exception hierarchy onto HTTP statuses:

    AuthorizationError         403
    NotFoundError              404
    InvalidTransitionError     409
    ValidationFailureError     422
    UpstreamFailureError       502
"""

from __future__ import annotations

from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from inspection_api.routes import router
from inspection_config import get_active_config
from inspection_config.schema import WorkflowConfig
from inspection_kernel import __version__
from inspection_kernel.db.engine import build_session_factory, init_engine_from_url
from inspection_kernel.exceptions import (
    AuthorizationError,
    ImmutabilityViolationError,
    InspectionKernelError,
    InvalidTransitionError,
    MissingPhotosError,
    NotFoundError,
    PhotoPersistenceError,
    UpstreamFailureError,
    ValidationFailureError,
)
from inspection_kernel.logging_config import LogContext, configure_logging, get_logger
from inspection_services.factory import build_workflow
from inspection_services.workflow import InspectionWorkflow

logger = get_logger("api")

_STATUS_BY_ERROR: tuple[tuple[type[InspectionKernelError], int], ...] = (
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ImmutabilityViolationError, status.HTTP_409_CONFLICT),
    (ValidationFailureError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UpstreamFailureError, status.HTTP_502_BAD_GATEWAY),
)


def status_for(exc: InspectionKernelError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_details(exc: InspectionKernelError) -> dict:
    if isinstance(exc, InvalidTransitionError):
        return {"current_status": exc.current_status, "requested": exc.requested}
    if isinstance(exc, MissingPhotosError):
        return {"missing": list(exc.missing)}
    if isinstance(exc, ValidationFailureError) and exc.field:
        return {"field": exc.field}
    if isinstance(exc, PhotoPersistenceError):
        return {
            "compensated": exc.compensated,
            "orphaned_remote_ids": list(exc.orphaned_remote_ids),
        }
    return {}


async def kernel_error_handler(request: Request, exc: InspectionKernelError):
    code = status_for(exc)
    log = logger.error if code >= 500 else logger.info
    log(
        "request_failed",
        extra={"path": request.url.path, "status": code, "error_code": exc.code},
    )
    return JSONResponse(
        status_code=code,
        content={
            "error": {
                "code": exc.code,
                "message": str(exc),
                "details": _error_details(exc),
            }
        },
    )


def create_app(
    config: WorkflowConfig | None = None,
    workflow: InspectionWorkflow | None = None,
) -> FastAPI:
    """
    Build the app.  Without an explicit ``workflow`` one is built from
    ``config`` against ``config.database.url``.
    """
    configure_logging()
    config = config or get_active_config()
    if not config.api.jwt_secret_key:
        raise RuntimeError("JWT_SECRET_KEY is not set")

    if workflow is None:
        engine = init_engine_from_url(config.database.url)
        workflow = build_workflow(config, build_session_factory(engine))

    app = FastAPI(
        title="Vehicle Inspection Workflow",
        version=__version__,
    )
    app.state.config = config
    app.state.workflow = workflow
    app.add_exception_handler(InspectionKernelError, kernel_error_handler)

    @app.middleware("http")
    async def bind_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get("X-Request-ID") or uuid4().hex
        with LogContext.bind(correlation_id=correlation_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        return response

    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok", "config_id": config.config_id}

    logger.info("api_created", extra={"config_id": config.config_id})
    return app
