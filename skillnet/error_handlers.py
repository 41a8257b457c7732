"""Global exception handlers for the skillnet API.

- SkillnetError -> its http_status with a `{"detail": message}` body
- Exception (catch-all) -> 500, never leaks internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .errors import SkillnetError, UnauthenticatedError

logger = logging.getLogger("skillnet.errors")


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_domain_error_handler(app)
    _register_generic_error_handler(app)


def _register_domain_error_handler(app: FastAPI) -> None:

    @app.exception_handler(SkillnetError)
    async def domain_error_handler(request: Request, exc: SkillnetError):
        logger.info(
            "%s on %s %s: %s",
            type(exc).__name__, request.method, request.url.path, exc.message,
        )
        headers = None
        if isinstance(exc, UnauthenticatedError):
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=exc.http_status,
            content={"detail": exc.message},
            headers=headers,
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all; the traceback goes to the log, not the client."""
        logger.error(
            "Unhandled exception on %s: %s", request.url.path, exc,
            exc_info=True,
        )
        req_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "internal server error"},
            headers={"X-Request-ID": req_id} if req_id else None,
        )
