import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from minio.error import S3Error
from starlette.exceptions import HTTPException as StarletteHTTPException

from .certificates import NotFound, StoreFailed
from .otp import OtpError
from .renderer import InvalidInput, RenderingFailed, TemplateUnavailable

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, error: str, message: Optional[str] = None, **extra):
        super().__init__(message or error)
        self.status_code = status_code
        self.error = error
        self.message = message or error
        self.extra = extra


def error_body(error: str, message: str, **extra) -> dict:
    return {"success": False, "error": error, "message": message, **extra}


def _json(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(error, message, **extra))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    def handle_http_error(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
        response = _json(exc.status_code, detail, detail)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in errors
        )
        return _json(422, "Invalid request", message, details=jsonable_encoder(errors))

    @app.exception_handler(ApiError)
    def handle_api_error(request: Request, exc: ApiError):
        return _json(exc.status_code, exc.error, exc.message, **exc.extra)

    @app.exception_handler(InvalidInput)
    def handle_invalid_input(request: Request, exc: InvalidInput):
        return _json(400, "Invalid certificate data", str(exc), missingFields=exc.missing)

    @app.exception_handler(TemplateUnavailable)
    def handle_template_unavailable(request: Request, exc: TemplateUnavailable):
        logger.error("certificate template unavailable: %s", exc)
        return _json(500, "Certificate template unavailable", str(exc))

    @app.exception_handler(RenderingFailed)
    def handle_rendering_failed(request: Request, exc: RenderingFailed):
        logger.error("certificate rendering failed: %s", exc, exc_info=exc.__cause__)
        return _json(500, "Failed to generate certificate", str(exc),
                     details=str(exc.__cause__) if exc.__cause__ else None)

    @app.exception_handler(NotFound)
    def handle_not_found(request: Request, exc: NotFound):
        return _json(404, str(exc), str(exc))

    @app.exception_handler(StoreFailed)
    def handle_store_failed(request: Request, exc: StoreFailed):
        return _json(502, "Failed to save certificate", str(exc))

    @app.exception_handler(S3Error)
    def handle_s3_error(request: Request, exc: S3Error):
        if exc.code == "NoSuchKey":
            logger.warning("stored object missing: %s", exc)
            return _json(404, "Stored certificate missing", str(exc))
        logger.error("object storage error: %s", exc)
        return _json(502, "Object storage error", str(exc))

    @app.exception_handler(OtpError)
    def handle_otp_error(request: Request, exc: OtpError):
        return _json(400, type(exc).__name__, str(exc))

    @app.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled error on %s", request.url.path)
        return _json(500, "Internal server error", str(exc))
