# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────


import math
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class StorefrontError(Exception):
    """Base exception for all storefront server errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(StorefrontError):
    """Raised when a client's token bucket for the route is empty.

    Not a failure: the handler logs it at warning level and answers 429
    with a Retry-After header.
    """

    def __init__(self, client_key: str, limit: int, retry_after_seconds: float = 0.0):
        self.client_key = client_key
        self.limit = limit
        self.retry_after_seconds = retry_after_seconds
        super().__init__("Too Many Requests", status_code=429)


class MalformedClientAddressError(StorefrontError):
    """Raised when the transport peer address cannot be split into host/port."""

    def __init__(self, remote_addr: str, reason: str):
        self.remote_addr = remote_addr
        super().__init__(f"Malformed client address {remote_addr!r}: {reason}", status_code=500)


# ── Auth ─────────────────────────────────────────────────────────────────────


class InvalidTokenFormatError(StorefrontError):
    def __init__(self) -> None:
        super().__init__("INVALID_TOKEN_FORMAT", status_code=400)


class InvalidTokenError(StorefrontError):
    def __init__(self) -> None:
        super().__init__("INVALID_TOKEN", status_code=403)


class InvalidCredentialsError(StorefrontError):
    """Basic-auth sign-in failed. Answered with a WWW-Authenticate challenge."""

    def __init__(self) -> None:
        super().__init__("Invalid Credentials", status_code=401)


# ── Store ────────────────────────────────────────────────────────────────────


class NotFoundError(StorefrontError):
    def __init__(self, kind: str, ident: Any):
        super().__init__(f"{kind} '{ident}' not found", status_code=404)


class ConflictError(StorefrontError):
    def __init__(self, kind: str, ident: Any):
        super().__init__(f"{kind} '{ident}' already exists", status_code=409)


class DatabaseError(StorefrontError):
    def __init__(self, reason: str = "DB_ERROR"):
        super().__init__(reason, status_code=500)


class OutOfStockError(StorefrontError):
    """Raised by Store.get_order when stock is short.

    Carries the product as currently stocked so checkout can tell the
    client how many are left.
    """

    def __init__(self, product: Any):
        self.product = product
        super().__init__("OUT_OF_STOCK", status_code=409)


# ── Payments ─────────────────────────────────────────────────────────────────


class PaymentProviderError(StorefrontError):
    def __init__(self, reason: str):
        super().__init__(f"Payment provider error: {reason}", status_code=502)


class WebhookSignatureError(StorefrontError):
    def __init__(self, reason: str):
        super().__init__(f"Webhook signature verification failed: {reason}", status_code=400)


class PayloadTooLargeError(StorefrontError):
    def __init__(self, limit_bytes: int):
        super().__init__(f"Request body exceeds {limit_bytes} bytes", status_code=413)


# ── Images ───────────────────────────────────────────────────────────────────


class ImageError(StorefrontError):
    """Rejected upload (missing file, bad key, too large, wrong type)."""

    def __init__(self, code: str, status_code: int = 400):
        super().__init__(code, status_code=status_code)


class StorageUnavailableError(StorefrontError):
    def __init__(self) -> None:
        super().__init__("Image storage is not configured", status_code=503)


# ── Email ────────────────────────────────────────────────────────────────────


class EmailDeliveryError(StorefrontError):
    def __init__(self) -> None:
        super().__init__("EMAIL_ERROR", status_code=500)


# ── Handler registration ────────────────────────────────────────────────────


def retry_after_header(seconds: float) -> str:
    """Render a Retry-After value: whole seconds, rounded up, at least 1."""
    return str(max(1, math.ceil(seconds)))


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Endpoints and dependencies raise StorefrontError subclasses; these
    handlers turn them into structured JSON -- no inline try/except in
    endpoints.
    """

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
        """429 with Retry-After. A denial is expected traffic, not an error."""
        retry_after = retry_after_header(exc.retry_after_seconds)
        logger.warning(
            "rate_limited",
            client=exc.client_key,
            limit=exc.limit,
            path=request.url.path,
            method=request.method,
            retry_after=retry_after,
        )
        return JSONResponse(
            status_code=429,
            content={"error": exc.message, "type": "RateLimitedError"},
            headers={"Retry-After": retry_after},
        )

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(
        request: Request, exc: InvalidCredentialsError
    ) -> JSONResponse:
        logger.warning("signin_rejected", path=request.url.path)
        return JSONResponse(
            status_code=401,
            content={"error": exc.message, "type": "InvalidCredentialsError"},
            headers={"WWW-Authenticate": 'Basic realm="restricted", charset="UTF-8"'},
        )

    @app.exception_handler(OutOfStockError)
    async def out_of_stock_handler(request: Request, exc: OutOfStockError) -> JSONResponse:
        logger.info("out_of_stock", path=request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "type": "OutOfStockError"},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("invalid_request_body", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content={"error": "INVALID_JSON", "type": "RequestValidationError"},
        )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "storefront_error", error=exc.message, error_type=type(exc).__name__, exc_info=exc
            )
        else:
            logger.info("request_rejected", error=exc.message, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "type": type(exc).__name__},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "type": "UnhandledError"},
        )
