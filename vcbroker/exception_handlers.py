"""
Exception handlers.

Register these on a FastAPI app instance via `register_exception_handlers(app)`.

- SandboxError                -> 502 (upstream failure, never "pending")
- ServiceError subclasses     -> their own status code
- RevocationPartialFailure    -> 500 with the cids to reconcile
- RequestValidationError      -> 400
- anything else               -> 500, details only in local/dev
"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .core.env import is_local_env
from .integrations.sandbox import SandboxError
from .services.errors import RevocationPartialFailure, RevocationUpstreamError, ServiceError

logger = logging.getLogger("vcbroker")


async def sandbox_error_handler(request: Request, exc: SandboxError):
    logger.warning(
        f"Sandbox failure on {request.method} {request.url.path}: {exc.message} "
        f"(upstream status={exc.status_code})"
    )
    return JSONResponse(
        status_code=502,
        content={
            "detail": "Sandbox API call failed",
            "upstreamStatus": exc.status_code,
            "error": exc.body if is_local_env() else None,
        },
    )


async def service_error_handler(request: Request, exc: ServiceError):
    content = {"detail": exc.message}
    if isinstance(exc, RevocationUpstreamError):
        content["failedCids"] = exc.failed_cids
    elif isinstance(exc, RevocationPartialFailure):
        content.update(
            personId=exc.person_id,
            templateId=exc.template_id,
            revokedCids=exc.revoked_cids,
        )
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request data", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)

    if is_local_env():
        error_response = {"detail": f"Internal server error: {exc}"}
    else:
        error_response = {"detail": "Internal server error"}
    return JSONResponse(status_code=500, content=error_response)


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(SandboxError, sandbox_error_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
