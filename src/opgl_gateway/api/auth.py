import uuid

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel

from opgl_gateway import errors
from opgl_gateway.core.auth import AuthService, TokenError, TokenPair
from opgl_gateway.core.passwords import (
    InvalidRegistration,
    hash_password,
    validate_registration,
    verify_password,
)
from opgl_gateway.deps.components import get_account_store, get_auth_service
from opgl_gateway.deps.user_auth import require_access_token
from opgl_gateway.stores.accounts import AccountStore, EmailAlreadyExists

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class CredentialsIn(BaseModel):
    email: str = ""
    password: str = ""


class RefreshIn(BaseModel):
    refreshToken: str = ""


class AccountOut(BaseModel):
    id: uuid.UUID
    email: str


class TokenPairOut(BaseModel):
    accessToken: str
    refreshToken: str
    expiresIn: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairOut":
        return cls(
            accessToken=pair.access_token,
            refreshToken=pair.refresh_token,
            expiresIn=pair.expires_in,
        )


class LoginOut(TokenPairOut):
    user: AccountOut


class MeOut(BaseModel):
    id: uuid.UUID
    email: str
    createdAt: str


@router.post("/register", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def register(
    payload: CredentialsIn,
    request: Request,
    accounts: AccountStore = Depends(get_account_store),
):
    email = payload.email.strip()
    try:
        validate_registration(email, payload.password)
    except InvalidRegistration as exc:
        raise errors.validation_failed(str(exc))

    try:
        account = accounts.create(email, hash_password(payload.password))
    except EmailAlreadyExists:
        raise errors.email_already_exists()

    request.app.state.logger.info(
        "account_registered",
        extra={"account_id": str(account.id), "request_id": getattr(request.state, "request_id", None)},
    )
    return AccountOut(id=account.id, email=account.email)


@router.post("/login", response_model=LoginOut)
def login(
    payload: CredentialsIn,
    accounts: AccountStore = Depends(get_account_store),
    auth: AuthService = Depends(get_auth_service),
):
    email = payload.email.strip()
    if not email or not payload.password:
        raise errors.validation_failed("email and password are required")

    account = accounts.get_by_email(email)
    # runs bcrypt even for unknown emails
    if not verify_password(payload.password, account.password_hash if account else None):
        raise errors.invalid_credentials()

    pair = auth.issue_pair(account.id)
    return LoginOut(
        **TokenPairOut.from_pair(pair).model_dump(),
        user=AccountOut(id=account.id, email=account.email),
    )


@router.post("/refresh", response_model=TokenPairOut)
def refresh(
    payload: RefreshIn,
    accounts: AccountStore = Depends(get_account_store),
    auth: AuthService = Depends(get_auth_service),
):
    if not payload.refreshToken:
        raise errors.validation_failed("refreshToken is required")

    try:
        account_id = auth.validate_refresh_token(payload.refreshToken)
    except TokenError as exc:
        raise errors.invalid_token(f"Invalid or expired refresh token: {exc}")

    if accounts.get_by_id(account_id) is None:
        raise errors.invalid_token("User not found")

    return TokenPairOut.from_pair(auth.issue_pair(account_id))


@router.post("/me", response_model=MeOut)
def me(
    account_id: uuid.UUID = Depends(require_access_token),
    accounts: AccountStore = Depends(get_account_store),
):
    account = accounts.get_by_id(account_id)
    if account is None:
        raise errors.user_not_found()

    return MeOut(id=account.id, email=account.email, createdAt=account.created_at.isoformat())
