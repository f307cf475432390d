import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("fsmonitor")


class RegistryError(Exception):
    """Base class for errors raised by the instance registry."""


class InstanceNotFoundError(RegistryError):
    def __init__(self, instance_id: str) -> None:
        super().__init__(f"unable to find an instance for ID {instance_id}")
        self.instance_id = instance_id


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """Errors are answered as plain text, with no JSON envelope."""

    @app.exception_handler(RequestValidationError)
    async def bad_input_handler(request: Request, exc: RequestValidationError):
        message = _format_validation_error(exc)
        logger.warning("event=bad_input method=%s path=%s error=%s", request.method, request.url.path, message)
        return PlainTextResponse(message, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if exc.detail is not None else ""
        return PlainTextResponse(str(detail), status_code=exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.exception("event=internal_error method=%s path=%s", request.method, request.url.path)
        return PlainTextResponse(str(exc) or exc.__class__.__name__, status_code=500)
