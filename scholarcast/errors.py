from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarHTTP
import logging

logger = logging.getLogger("scholarcast")


class ScholarcastError(Exception):
    """Base for every error the prediction and training layers raise on purpose."""

    code = "SCHOLARCAST_ERROR"
    status_code = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(ScholarcastError):
    code = "VALIDATION_ERROR"
    status_code = 400


class InsufficientData(ScholarcastError):
    code = "INSUFFICIENT_DATA"
    status_code = 409

    def __init__(self, found: int, required: int, scope: str | None = None):
        where = f" for {scope}" if scope else ""
        super().__init__(
            f"Insufficient training data{where}. Need at least {required} samples, found {found}",
            found=found,
            required=required,
            scope=scope,
        )
        self.found = found
        self.required = required


class ModelUnavailable(ScholarcastError):
    code = "MODEL_UNAVAILABLE"
    status_code = 503


class NumericInstability(ScholarcastError):
    code = "NUMERIC_INSTABILITY"
    status_code = 500


class NotFound(ScholarcastError):
    code = "NOT_FOUND"
    status_code = 404


def install_error_handlers(app):
    @app.exception_handler(ScholarcastError)
    async def domain_exc(_: Request, exc: ScholarcastError):
        return JSONResponse({"error": exc.code, "detail": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exc(_: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": ValidationError.code, "detail": jsonable_encoder(exc.errors())},
            status_code=422,
        )

    @app.exception_handler(StarHTTP)
    async def http_exc(_: Request, exc: StarHTTP):
        return JSONResponse({"error": f"HTTP_{exc.status_code}", "detail": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled(_: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse({"error": "INTERNAL_ERROR", "detail": "Unexpected error"}, status_code=500)
