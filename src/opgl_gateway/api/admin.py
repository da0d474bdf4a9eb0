import time
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from opgl_gateway import errors
from opgl_gateway.config import Settings
from opgl_gateway.core.keys import generate_plaintext_key, hash_key, key_prefix
from opgl_gateway.core.rate_limit import RateLimiter, epoch_to_datetime, window_start_for
from opgl_gateway.deps.admin_auth import require_admin
from opgl_gateway.deps.components import get_key_store, get_rate_limiter, get_settings
from opgl_gateway.models.api_key import ApiKey
from opgl_gateway.stores.api_keys import ApiKeyStore

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


class ApiKeyCreateIn(BaseModel):
    name: str = Field(default="", max_length=255)
    rateLimit: int = 0
    rateWindowSeconds: int = 0


class ApiKeyCreateOut(BaseModel):
    id: uuid.UUID
    apiKey: str
    name: str
    keyPrefix: str
    rateLimit: int
    rateWindowSeconds: int


class ApiKeyOut(BaseModel):
    id: uuid.UUID
    name: str
    keyPrefix: str
    rateLimit: int
    rateWindowSeconds: int
    isActive: bool
    createdAt: datetime
    lastUsedAt: datetime | None = None


class ApiKeyDeleteIn(BaseModel):
    id: str = ""


class ApiKeyLimitsIn(BaseModel):
    rateLimit: int = Field(ge=1, le=1_000_000)
    rateWindowSeconds: int = Field(ge=1, le=86_400)


class SweepIn(BaseModel):
    retainWindows: int | None = Field(default=None, ge=1, le=10_000)


def _key_out(k: ApiKey) -> ApiKeyOut:
    return ApiKeyOut(
        id=k.id,
        name=k.name,
        keyPrefix=k.key_prefix,
        rateLimit=k.rate_limit,
        rateWindowSeconds=k.rate_window_seconds,
        isActive=k.is_active,
        createdAt=k.created_at,
        lastUsedAt=k.last_used_at,
    )


def _parse_key_id(raw: str) -> uuid.UUID:
    if not raw:
        raise errors.validation_failed("id is required")
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise errors.validation_failed("invalid id format")


@router.post("/apikeys", response_model=ApiKeyCreateOut, status_code=status.HTTP_201_CREATED)
def create_api_key(
    payload: ApiKeyCreateIn,
    request: Request,
    store: ApiKeyStore = Depends(get_key_store),
    settings: Settings = Depends(get_settings),
):
    name = payload.name.strip()
    if not name:
        raise errors.validation_failed("name is required")

    rate_limit = payload.rateLimit if payload.rateLimit > 0 else settings.default_rate_limit
    rate_window = (
        payload.rateWindowSeconds
        if payload.rateWindowSeconds > 0
        else settings.default_rate_window_seconds
    )

    plain = generate_plaintext_key()
    hashed = hash_key(plain)
    prefix = key_prefix(plain)

    api_key = store.create(name, hashed, prefix, rate_limit, rate_window)
    request.app.state.logger.info(
        "api_key_created",
        extra={"api_key_id": str(api_key.id), "key_prefix": prefix},
    )

    # the plaintext key is only ever returned here
    return ApiKeyCreateOut(
        id=api_key.id,
        apiKey=plain,
        name=api_key.name,
        keyPrefix=prefix,
        rateLimit=api_key.rate_limit,
        rateWindowSeconds=api_key.rate_window_seconds,
    )


@router.post("/apikeys/list", response_model=list[ApiKeyOut])
def list_api_keys(store: ApiKeyStore = Depends(get_key_store)):
    return [_key_out(k) for k in store.list()]


def _revoke(key_id: uuid.UUID, store: ApiKeyStore, request: Request) -> dict:
    if not store.deactivate(key_id):
        raise errors.not_found("API key not found")
    request.app.state.logger.info("api_key_revoked", extra={"api_key_id": str(key_id)})
    return {"message": "API key revoked successfully"}


@router.post("/apikeys/delete")
def delete_api_key(
    payload: ApiKeyDeleteIn,
    request: Request,
    store: ApiKeyStore = Depends(get_key_store),
):
    return _revoke(_parse_key_id(payload.id.strip()), store, request)


@router.delete("/apikeys/{key_id}")
def delete_api_key_by_path(
    key_id: str,
    request: Request,
    store: ApiKeyStore = Depends(get_key_store),
):
    return _revoke(_parse_key_id(key_id), store, request)


@router.post("/apikeys/{key_id}/limits", response_model=ApiKeyOut)
def set_key_limits(
    key_id: str,
    payload: ApiKeyLimitsIn,
    store: ApiKeyStore = Depends(get_key_store),
):
    api_key = store.set_limits(_parse_key_id(key_id), payload.rateLimit, payload.rateWindowSeconds)
    if api_key is None:
        raise errors.not_found("API key not found")
    return _key_out(api_key)


@router.post("/apikeys/{key_id}/usage")
def key_usage(key_id: str, store: ApiKeyStore = Depends(get_key_store)):
    api_key = store.get(_parse_key_id(key_id))
    if api_key is None:
        raise errors.not_found("API key not found")

    window_start = window_start_for(time.time(), api_key.rate_window_seconds)
    count = store.get_window_count(api_key.id, epoch_to_datetime(window_start))
    return {
        "id": str(api_key.id),
        "windowStart": window_start,
        "requestCount": count,
        "rateLimit": api_key.rate_limit,
        "remaining": max(0, api_key.rate_limit - count),
    }


@router.post("/ratelimit/sweep")
def sweep_counters(
    payload: SweepIn | None = None,
    limiter: RateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings),
):
    retain = payload.retainWindows if payload and payload.retainWindows else settings.counter_retention_windows
    return {"deleted": limiter.sweep_expired_windows(retain)}
