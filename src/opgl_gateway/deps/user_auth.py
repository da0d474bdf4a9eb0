import uuid

from fastapi import Depends, Header

from opgl_gateway import errors
from opgl_gateway.core.auth import AuthService, TokenError
from opgl_gateway.deps.components import get_auth_service


def require_access_token(
    auth: AuthService = Depends(get_auth_service),
    authorization: str | None = Header(default=None),
) -> uuid.UUID:
    if not authorization:
        raise errors.unauthorized("Authorization header is required")

    if not authorization.startswith("Bearer "):
        raise errors.unauthorized("Invalid authorization format. Use: Bearer <token>")

    token = authorization.removeprefix("Bearer ").strip()
    try:
        return auth.validate_access_token(token)
    except TokenError as exc:
        raise errors.invalid_token(f"Invalid or expired access token: {exc}")
