from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.service.auth_service import AuthService
from app.core.exceptions import Unauthorized

# auto_error is off so a missing header maps to our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    auth_service = getattr(request.app.state, "auth_service", None)
    if auth_service is None:
        raise RuntimeError("Auth service not initialized. Ensure main.py wires app.state.auth_service")
    return auth_service


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """
    Resolve the bearer token to the caller's claims.

    Every chat, memory and upload route depends on this; the returned dict
    always carries a non-empty `user_id` that scopes all reads and writes.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authenticated")
    return await get_auth_service(request).verify_token(credentials.credentials)

