"""
Session resolution from signed session tokens.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from fastapi import Request
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from shared.logging import get_logger


@dataclass(frozen=True)
class Session:
    """An active session. Only the subject is trusted; role and block
    status are always re-read from the database."""
    subject_id: str


class SessionResolver:
    """Resolve the current session from a bearer token or the session cookie."""

    def __init__(self, secret: str, cookie_name: str = "stylino_session",
                 algorithms: Sequence[str] = ("HS256",)):
        self.secret = secret
        self.cookie_name = cookie_name
        self.algorithms = list(algorithms)
        self.logger = get_logger("storefront.session")

    def _extract_token(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None
        return request.cookies.get(self.cookie_name)

    def decode(self, token: str) -> Optional[Session]:
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                options={"require_exp": True},
            )
        except ExpiredSignatureError:
            self.logger.info("Session token expired")
            return None
        except JWTError as e:
            self.logger.warning("Invalid session token", error=str(e))
            return None

        subject = claims.get("sub") or claims.get("id")
        if not subject:
            return None
        return Session(subject_id=str(subject))

    async def resolve(self, request: Request) -> Optional[Session]:
        token = self._extract_token(request)
        if not token:
            return None
        return self.decode(token)
