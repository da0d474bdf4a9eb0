import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

INVALID_REQUEST_BODY = "INVALID_REQUEST_BODY"
MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
VALIDATION_FAILED = "VALIDATION_FAILED"
UNAUTHORIZED = "UNAUTHORIZED"
INVALID_TOKEN = "INVALID_TOKEN"
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
USER_NOT_FOUND = "USER_NOT_FOUND"
PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
NOT_FOUND = "NOT_FOUND"
MISSING_API_KEY = "MISSING_API_KEY"
INVALID_API_KEY = "INVALID_API_KEY"
RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
DATA_SERVICE_ERROR = "DATA_SERVICE_ERROR"
CORTEX_SERVICE_ERROR = "CORTEX_SERVICE_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"


class APIError(Exception):
    """An error that maps to one JSON error envelope and HTTP status."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.headers = headers or {}

    def to_response(self, headers: dict[str, str] | None = None) -> JSONResponse:
        return error_response(
            self.status_code, self.code, self.message, {**(headers or {}), **self.headers}
        )


def error_response(
    status_code: int, code: str, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
        headers=headers,
    )


def invalid_request_body(message: str) -> APIError:
    return APIError(INVALID_REQUEST_BODY, message, status.HTTP_400_BAD_REQUEST)


def missing_fields(message: str) -> APIError:
    return APIError(MISSING_REQUIRED_FIELDS, message, status.HTTP_400_BAD_REQUEST)


def validation_failed(message: str) -> APIError:
    return APIError(VALIDATION_FAILED, message, status.HTTP_400_BAD_REQUEST)


def unauthorized(message: str) -> APIError:
    return APIError(UNAUTHORIZED, message, status.HTTP_401_UNAUTHORIZED)


def invalid_token(message: str) -> APIError:
    return APIError(INVALID_TOKEN, message, status.HTTP_401_UNAUTHORIZED)


def invalid_credentials() -> APIError:
    return APIError(INVALID_CREDENTIALS, "Invalid email or password", status.HTTP_401_UNAUTHORIZED)


def email_already_exists() -> APIError:
    return APIError(EMAIL_ALREADY_EXISTS, "Email already registered", status.HTTP_409_CONFLICT)


def user_not_found() -> APIError:
    return APIError(USER_NOT_FOUND, "User not found", status.HTTP_404_NOT_FOUND)


def not_found(message: str) -> APIError:
    return APIError(NOT_FOUND, message, status.HTTP_404_NOT_FOUND)


def player_not_found(game_name: str, tag_line: str) -> APIError:
    return APIError(
        PLAYER_NOT_FOUND, f"Player not found: {game_name}#{tag_line}", status.HTTP_404_NOT_FOUND
    )


def missing_api_key() -> APIError:
    return APIError(
        MISSING_API_KEY,
        "API key is required. Include X-API-Key header in your request.",
        status.HTTP_401_UNAUTHORIZED,
    )


def invalid_api_key(headers: dict[str, str] | None = None) -> APIError:
    return APIError(
        INVALID_API_KEY, "Invalid or inactive API key.", status.HTTP_401_UNAUTHORIZED, headers
    )


def rate_limit_exceeded(retry_after: int, headers: dict[str, str] | None = None) -> APIError:
    headers = dict(headers or {})
    headers["Retry-After"] = str(retry_after)
    return APIError(
        RATE_LIMIT_EXCEEDED,
        f"Rate limit exceeded. Try again in {retry_after} seconds.",
        status.HTTP_429_TOO_MANY_REQUESTS,
        headers,
    )


def data_service_error(message: str) -> APIError:
    return APIError(DATA_SERVICE_ERROR, message, status.HTTP_502_BAD_GATEWAY)


def cortex_service_error(message: str) -> APIError:
    return APIError(CORTEX_SERVICE_ERROR, message, status.HTTP_502_BAD_GATEWAY)


def internal_error(message: str = "Internal server error") -> APIError:
    return APIError(INTERNAL_ERROR, message, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _describe_validation_error(exc: RequestValidationError) -> APIError:
    errors = exc.errors()
    if not errors:
        return invalid_request_body("Invalid request body")

    first = errors[0]
    if first.get("type") == "json_invalid":
        return invalid_request_body("Invalid JSON format")

    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = ".".join(loc)
    if first.get("type") == "missing":
        if not field:
            return invalid_request_body("Request body is required")
        return missing_fields(f"{field} is required")
    if field:
        return validation_failed(f"{field}: {first.get('msg', 'invalid value')}")
    return invalid_request_body(first.get("msg", "Invalid request body"))


def register_exception_handlers(app: FastAPI, logger: logging.Logger) -> None:
    def rate_limit_headers(request: Request) -> dict[str, str]:
        return getattr(request.state, "rate_limit_headers", {})

    async def handle_api_error(request: Request, exc: APIError):
        return exc.to_response(rate_limit_headers(request))

    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return _describe_validation_error(exc).to_response(rate_limit_headers(request))

    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(
            "unhandled_error",
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        return internal_error().to_response(rate_limit_headers(request))

    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected)
