import logging

from app.core.exceptions import Unauthorized
from pkg.auth_token_client.client import TokenClient


class AuthService:
    """Resolves a bearer token to the caller identity."""

    def __init__(self, token_client: TokenClient, logger: logging.Logger):
        self.token_client = token_client
        self.logger = logger

    async def verify_token(self, token: str) -> dict:
        """Decoded token payload with a non-empty `user_id`; Unauthorized otherwise."""
        try:
            payload = self.token_client.decode_token(token)
        except ValueError as e:
            self.logger.debug(f"Rejected token: {e!s}")
            raise Unauthorized("Invalid or expired token")

        if not payload.get("user_id"):
            raise Unauthorized("Invalid or expired token")
        return payload
