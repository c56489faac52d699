import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("files_manager")


class FilesManagerError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(FilesManagerError):
    status_code = 401
    default_message = "Unauthorized"


class ValidationError(FilesManagerError):
    status_code = 400
    default_message = "Bad Request"


class NotFound(FilesManagerError):
    status_code = 404
    default_message = "Not found"


class Conflict(FilesManagerError):
    # Duplicates are reported as 400 by this API, not 409
    status_code = 400
    default_message = "Already exist"


class InternalError(FilesManagerError):
    pass


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FilesManagerError)
    async def files_manager_error_handler(request: Request, exc: FilesManagerError):
        if exc.status_code >= 500:
            logger.error("event=request_failed path=%s error=%s", request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if exc.detail else "Error"
        return JSONResponse({"error": detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("event=unexpected_error path=%s", request.url.path)
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)
