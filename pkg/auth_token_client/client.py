from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt


@dataclass
class TokenPayload:
    user_id: str
    email: str | None = None


class TokenClient:
    """HS256 bearer tokens carrying the opaque user id."""

    def __init__(self, secret_key: str, leeway_seconds: int = 10):
        self.secret_key = secret_key
        # Allow small clock skew when decoding tokens
        self.leeway_seconds = leeway_seconds

    def create_access_token(self, payload: TokenPayload, expires_in: timedelta = timedelta(hours=24)) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "user_id": str(payload.user_id),
            "email": payload.email,
            "iat": int(now.timestamp()),
            "exp": now + expires_in,
        }
        return jwt.encode(claims, self.secret_key, algorithm="HS256")

    def decode_token(self, token: str) -> dict:
        """Decode and verify a token; ValueError when it is expired or invalid."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=["HS256"], leeway=self.leeway_seconds)
        except jwt.ExpiredSignatureError:
            raise ValueError("Token has expired")
        except jwt.InvalidTokenError:
            raise ValueError("Invalid token")
