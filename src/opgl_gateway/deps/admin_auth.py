from fastapi import Depends, Header

from opgl_gateway import errors
from opgl_gateway.config import Settings
from opgl_gateway.core.keys import constant_time_equals
from opgl_gateway.deps.components import get_settings


def require_admin(
    settings: Settings = Depends(get_settings),
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
):
    # no token configured: admin access is controlled outside the gateway
    if not settings.admin_token:
        return
    if not x_admin_token or not constant_time_equals(x_admin_token, settings.admin_token):
        raise errors.unauthorized("Unauthorized")
