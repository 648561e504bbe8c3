"""Global error handlers for the HTTP API."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from roydadyar.utils.exceptions import RoydadYarError

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: RoydadYarError) -> JSONResponse:
    """Expected failures: tell the caller what was rejected."""
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Bad input that got past request validation."""
    logger.warning(f"{request.method} {request.url.path} invalid input: {exc}")
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else: log the full traceback, return a generic message."""
    logger.error(f"Exception while handling {request.method} {request.url.path}:", exc_info=exc)

    tb_string = "".join(traceback.format_exception(None, exc, exc.__traceback__))
    logger.debug(f"Traceback:\n{tb_string}")

    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Something went wrong. The error has been logged."},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the handlers to an application."""
    app.add_exception_handler(RoydadYarError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, value_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unexpected_error_handler)
