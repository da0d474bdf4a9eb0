from fastapi import Request

from opgl_gateway.config import Settings
from opgl_gateway.core.auth import AuthService
from opgl_gateway.core.orchestrator import Orchestrator
from opgl_gateway.core.rate_limit import RateLimiter
from opgl_gateway.stores.accounts import AccountStore
from opgl_gateway.stores.api_keys import ApiKeyStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_key_store(request: Request) -> ApiKeyStore:
    return request.app.state.key_store


def get_account_store(request: Request) -> AccountStore:
    return request.app.state.account_store


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator
