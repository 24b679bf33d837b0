"""Error responses in the `{success: false, message}` envelope the web client expects."""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("earnspark.api")

_DEFAULT_MESSAGES = {
    404: "Not found",
    405: "Method not allowed",
}


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, error: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error


def error_body(message: str, error: Optional[Any] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.error))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = _DEFAULT_MESSAGES.get(exc.status_code) or str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=error_body("Invalid request", error=jsonable_encoder(exc.errors())))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal server error"))
