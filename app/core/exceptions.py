import logging
import traceback
from typing import Any, Dict, Iterable, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = ("password",)
REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")


class ArtMarketException(Exception):
    """
    Base exception for the API.

    Renders as ``{"error": ..., "message": ...}`` plus any extra keys.
    """

    def __init__(
        self,
        message: str,
        error: str = "Request failed",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error = error
        self.status_code = status_code
        self.extra = extra or {}
        self.headers = headers

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message, **self.extra}

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code, content=self.to_dict(), headers=self.headers
        )


class ValidationFailedError(ArtMarketException):
    def __init__(self, details: List[Dict[str, Any]]):
        super().__init__(
            message="One or more fields are invalid",
            error="Validation failed",
            status_code=status.HTTP_400_BAD_REQUEST,
            extra={"details": details},
        )
        self.details = details


class BadRequestError(ArtMarketException):
    def __init__(self, message: str):
        super().__init__(
            message=message, error="Bad request", status_code=status.HTTP_400_BAD_REQUEST
        )


class MissingImageError(ArtMarketException):
    def __init__(self):
        super().__init__(
            message="Provide an imageUrl or upload an image file",
            error="Image is required",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class UploadRejectedError(ArtMarketException):
    def __init__(self, error: str, message: str):
        super().__init__(
            message=message, error=error, status_code=status.HTTP_400_BAD_REQUEST
        )


class ConflictError(ArtMarketException):
    def __init__(self, message: str, error: str = "Conflict", field: Optional[str] = None):
        super().__init__(
            message=message,
            error=error,
            status_code=status.HTTP_400_BAD_REQUEST,
            extra={"field": field} if field else None,
        )


class EmailAlreadyRegisteredError(ConflictError):
    def __init__(self):
        super().__init__(
            message="Email is already registered",
            error="User already exists",
            field="email",
        )


class ArtworkAlreadySoldError(ConflictError):
    def __init__(self):
        super().__init__(
            message="This artwork is already sold", error="Artwork already sold"
        )


class UnauthenticatedError(ArtMarketException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            error="Unauthorized",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidCredentialsError(ArtMarketException):
    def __init__(self):
        super().__init__(
            message="Invalid email or password",
            error="Invalid credentials",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenError(ArtMarketException):
    def __init__(self, message: str = "Not authorized"):
        super().__init__(
            message=message, error="Forbidden", status_code=status.HTTP_403_FORBIDDEN
        )


class NotFoundError(ArtMarketException):
    def __init__(self, resource: str):
        super().__init__(
            message=f"{resource} not found",
            error="Not found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class PayloadTooLargeError(ArtMarketException):
    def __init__(self, max_bytes: int):
        super().__init__(
            message=f"Request body must be at most {max_bytes} bytes",
            error="Payload too large",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )


class RateLimitedError(ArtMarketException):
    def __init__(self, retry_after: int, limit: int):
        super().__init__(
            message="Too many requests from this IP, please try again later.",
            error="Too many requests",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            extra={"retryAfter": retry_after},
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
            },
        )
        self.retry_after = retry_after


class StorageUploadError(ArtMarketException):
    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to upload image: {error}",
            error="Image upload failed",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )


# =============================================================================
# Validation error details
# =============================================================================


def _clean_message(msg: str) -> str:
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


def validation_details(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Collapse pydantic errors to the first violation per field."""
    details: List[Dict[str, Any]] = []
    seen = set()
    for err in errors:
        loc = list(err.get("loc", ()))
        from_path = bool(loc) and loc[0] == "path"
        if loc and loc[0] in REQUEST_LOCATIONS:
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) or "body"
        if field in seen:
            continue
        seen.add(field)

        message = "Invalid ID format" if from_path else _clean_message(err.get("msg", ""))
        detail: Dict[str, Any] = {"field": field, "message": message}
        value = err.get("input")
        if isinstance(value, (str, int, float, bool)) and not any(
            s in field.lower() for s in SENSITIVE_FIELDS
        ):
            detail["value"] = value
        details.append(detail)
    return details


# =============================================================================
# Exception Handlers
# =============================================================================


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(ArtMarketException)
    async def handle_art_market_exception(request: Request, exc: ArtMarketException):
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return ValidationFailedError(validation_details(exc.errors())).to_response()

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            content = {
                "error": "Route not found",
                "message": (
                    "The requested endpoint does not exist. Available endpoints: "
                    "/api/health, /api/auth/*, /api/artworks/*, /api/users/*, "
                    "/api/purchases/*"
                ),
            }
        else:
            content = {"error": "Request failed", "message": str(exc.detail)}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_general_exception(request: Request, exc: Exception):
        logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
        if settings.is_production:
            content = {
                "error": "Internal server error",
                "message": "Something went wrong",
            }
        else:
            content = {
                "error": "Internal server error",
                "message": str(exc),
                "stack": traceback.format_exception(type(exc), exc, exc.__traceback__),
            }
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content
        )
