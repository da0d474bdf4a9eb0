from typing import Callable

from fastapi import Request, Response
from fastapi.routing import APIRoute
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from opgl_gateway import errors
from opgl_gateway.core.rate_limit import RateLimitResult
from opgl_gateway.deps.components import get_rate_limiter

API_KEY_HEADER = "X-API-Key"


def _rate_limit_headers(rl: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(rl.limit),
        "X-RateLimit-Remaining": str(rl.remaining),
        "X-RateLimit-Reset": str(rl.reset_epoch),
    }


def require_client_key(request: Request) -> RateLimitResult:
    plain = (request.headers.get(API_KEY_HEADER) or "").strip()
    if not plain:
        raise errors.missing_api_key()

    try:
        rl = get_rate_limiter(request).check(plain)
    except SQLAlchemyError:
        request.app.state.logger.exception(
            "rate_limit_check_failed",
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        raise errors.internal_error("Rate limit check failed")

    headers = _rate_limit_headers(rl)
    # error responses raised later in the request pick these up too
    request.state.rate_limit_headers = headers

    if not rl.key_valid:
        raise errors.invalid_api_key(headers)

    if not rl.allowed:
        retry_after = max(1, rl.reset_epoch - rl.checked_at)
        raise errors.rate_limit_exceeded(retry_after, headers)

    return rl


class ClientKeyRoute(APIRoute):
    """
    Route that admits the caller by API key before the body is read.

    Dependencies only run after FastAPI has decoded the request body, so a
    malformed body would otherwise be reported ahead of a missing key.
    """

    def get_route_handler(self) -> Callable:
        handler = super().get_route_handler()

        async def admit_then_handle(request: Request) -> Response:
            await run_in_threadpool(require_client_key, request)
            response = await handler(request)
            response.headers.update(request.state.rate_limit_headers)
            return response

        return admit_then_handle
