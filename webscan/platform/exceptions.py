import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from webscan.features.scan.exceptions import ScanError, ValidationError
from webscan.platform.response import api_response


def add_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(error=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(error="Invalid request body", status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        return api_response(error=str(exc) or "Invalid URL", status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(ScanError)
    async def scan_exception_handler(request: Request, exc: ScanError):
        logging.error(f"Scan failed: {exc.message}")
        return api_response(
            error=exc.message or "Unknown error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Unhandled exception: {exc}")
        return api_response(
            error="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
