import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class Unauthenticated(HTTPException):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(status_code=401, detail={"code": "unauthenticated", "message": message})


class Forbidden(HTTPException):
    def __init__(self, message: str = "Access denied"):
        super().__init__(status_code=403, detail={"code": "forbidden", "message": message})


class NotFound(HTTPException):
    def __init__(self, message: str = "Not found"):
        super().__init__(status_code=404, detail={"code": "not_found", "message": message})


class ValidationError(HTTPException):
    def __init__(self, message: str, details=None):
        super().__init__(
            status_code=400,
            detail={"code": "validation_error", "message": message, "details": details},
        )


class Conflict(HTTPException):
    def __init__(self, message: str, details=None):
        super().__init__(
            status_code=409,
            detail={"code": "conflict", "message": message, "details": details},
        )


class StorageError(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=500, detail={"code": "storage_error", "message": message})


class PartialFailure(Exception):
    """A side effect failed after the primary write was committed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def error_message(exc: HTTPException) -> str:
    detail = exc.detail
    if isinstance(detail, dict):
        return detail.get("message", "")
    return str(detail)


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # ctx may hold raw Exception objects that are not JSON serialisable
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items() if k != "url"}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", str(exc) or "Internal server error", None),
        )
