import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "token_type", "iat", "nbf", "exp", "iss"]


class TokenType(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(Exception):
    """A token failed validation. The message says which property was wrong."""


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """
    Issues and validates HS256-signed access/refresh token pairs.

    Tokens are stateless: validity depends only on the signature and the
    embedded timestamps, there is no revocation list.
    """

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        issuer: str = "opgl-gateway",
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._issuer = issuer
        self._clock = clock

    def issue_pair(self, account_id: uuid.UUID) -> TokenPair:
        return TokenPair(
            access_token=self._issue(account_id, TokenType.ACCESS, self._access_ttl),
            refresh_token=self._issue(account_id, TokenType.REFRESH, self._refresh_ttl),
            expires_in=int(self._access_ttl.total_seconds()),
        )

    def _issue(self, account_id: uuid.UUID, token_type: TokenType, ttl: timedelta) -> str:
        now = self._clock()
        claims = {
            "sub": str(account_id),
            "token_type": token_type.value,
            "iat": now,
            "nbf": now,
            "exp": now + ttl,
            "iss": self._issuer,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def validate(self, token: str, expected_type: TokenType) -> uuid.UUID:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenError("token has expired") from exc
        except jwt.ImmatureSignatureError as exc:
            raise TokenError("token is not yet valid") from exc
        except jwt.InvalidIssuerError as exc:
            raise TokenError("token issuer is invalid") from exc
        except jwt.MissingRequiredClaimError as exc:
            raise TokenError(f"token is missing the {exc.claim} claim") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenError("token signature or format is invalid") from exc

        if claims.get("token_type") != expected_type.value:
            raise TokenError(f"expected a {expected_type.value} token")

        try:
            return uuid.UUID(str(claims["sub"]))
        except ValueError as exc:
            raise TokenError("token subject is not a valid account id") from exc

    def validate_access_token(self, token: str) -> uuid.UUID:
        return self.validate(token, TokenType.ACCESS)

    def validate_refresh_token(self, token: str) -> uuid.UUID:
        return self.validate(token, TokenType.REFRESH)
