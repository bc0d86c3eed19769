"""Centralized error handling for the market data API."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.models.errors import FetchError, MarketDataError, NoDataError
from src.utils.logger import StructuredLogger

logger = StructuredLogger("ErrorHandlers")


class ErrorCode:
    """Standard error codes returned by the API."""

    NO_DATA = "NO_DATA"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse:
    """Standardized error response format."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | list[str] | None = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ):
        """
        Initialize error response.

        Args:
            error_code: Standard error code from ErrorCode
            message: Human-readable error message
            details: Additional error details (field-specific errors, etc.)
            status_code: HTTP status code
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        response = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


def create_validation_error_response(errors: list[dict[str, Any]]) -> ErrorResponse:
    """
    Create standardized validation error response from request validation errors.

    Args:
        errors: List of validation errors from Pydantic

    Returns:
        ErrorResponse with field-specific validation errors
    """
    field_errors = {}
    for error in errors:
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_path] = error["msg"]

    return ErrorResponse(
        error_code=ErrorCode.VALIDATION_ERROR,
        message="Validation failed for one or more fields",
        details=field_errors,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def create_no_data_error(symbol: str | None, message: str | None = None) -> ErrorResponse:
    return ErrorResponse(
        error_code=ErrorCode.NO_DATA,
        message=message or f"No data available for {symbol}",
        details={"symbol": symbol} if symbol else None,
        status_code=status.HTTP_404_NOT_FOUND,
    )


def create_internal_error(message: str = "An unexpected error occurred") -> ErrorResponse:
    """
    Create internal server error.

    Args:
        message: Error message (kept generic)

    Returns:
        ErrorResponse with internal error
    """
    return ErrorResponse(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def handle_market_data_error(error: MarketDataError) -> ErrorResponse:
    """Map a pipeline error to its API response."""
    if isinstance(error, NoDataError):
        return create_no_data_error(error.symbol, str(error))
    if isinstance(error, FetchError):
        return ErrorResponse(
            error_code=ErrorCode.SERVICE_UNAVAILABLE,
            message="Quote source is unavailable",
            details={"symbol": error.symbol} if error.symbol else None,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return create_no_data_error(error.symbol, str(error))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI validation errors with standardized format."""
    return create_validation_error_response(exc.errors()).to_json_response()


async def market_data_exception_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    logger.warning(
        "Market data error returned to client",
        context={"path": request.url.path, "error_type": type(exc).__name__, "symbol": exc.symbol},
    )
    return handle_market_data_error(exc).to_json_response()


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error during request",
        context={"path": request.url.path, "method": request.method},
        exception=exc,
    )
    return create_internal_error().to_json_response()


def register_exception_handlers(app: FastAPI) -> None:
    """Install the standardized error handlers on an application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(MarketDataError, market_data_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
