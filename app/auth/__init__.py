from app.auth.jwt import create_access_token, create_refresh_token, verify_token
from app.auth.dependencies import get_current_account, get_current_membership, get_current_tenant, require_role

__all__ = [
    "create_access_token",
    "create_refresh_token",
    "verify_token",
    "get_current_account",
    "get_current_membership",
    "get_current_tenant",
    "require_role",
]
