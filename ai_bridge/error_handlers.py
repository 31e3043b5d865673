# ai_bridge/error_handlers.py
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import BridgeError

logger = logging.getLogger(__name__)


def _field_name(location) -> str:
    # ("body", "message") -> "message"; a whole-body error has only ("body",)
    parts = [str(part) for part in location if part != "body"]
    return ".".join(parts) if parts else "body"


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as a flat ``{"error", "message", ...}`` body."""

    @app.exception_handler(BridgeError)
    async def handle_bridge_error(request: Request, exc: BridgeError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error}: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        missing_fields, invalid_fields = [], []
        for error in exc.errors():
            name = _field_name(error.get("loc", ()))
            if error.get("type") == "missing" or error.get("type") == "string_too_short":
                missing_fields.append(name)
            else:
                invalid_fields.append(name)

        content = {"error": "validation_error", "message": "Invalid chat request"}
        if "message" in missing_fields:
            content["message"] = "Message is required"
        if missing_fields:
            content["missingFields"] = missing_fields
        if invalid_fields:
            content["invalidFields"] = invalid_fields
        logger.warning(f"{request.method} {request.url.path} -> 400 validation_error: {content}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error", "message": "An error occurred processing your request"},
        )
