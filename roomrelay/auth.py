"""
Identity Verification

JWT-based verifier for the connection handshake.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import jwt

from .errors import Unauthorized

logger = logging.getLogger("roomrelay.auth")


def token_from_handshake(
    query: Mapping[str, str],
    headers: Mapping[str, str]
) -> Optional[str]:
    """
    Pull the auth token out of a handshake.

    Looks at the ``token`` query parameter first, then a
    ``Authorization: Bearer <token>`` header.
    """
    token = query.get("token")
    if token:
        return token

    authorization = headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


class JWTVerifier:
    """
    Verifies HS256 (or other configured) JWTs with a shared secret.

    Args:
        secret: Signing secret
        algorithms: Accepted signing algorithms

    Example:
        verifier = JWTVerifier(secret=os.environ["JWT_SECRET"])
        claims = verifier.verify(token)
    """

    def __init__(self, secret: str, algorithms: Optional[List[str]] = None):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret
        self.algorithms = algorithms or ["HS256"]

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify a token.

        Returns:
            The token claims

        Raises:
            Unauthorized: If the token is missing, malformed, expired, or
                signed with another key
        """
        if not token:
            raise Unauthorized("Unauthorized")

        try:
            claims = jwt.decode(token, self.secret, algorithms=self.algorithms)
        except jwt.PyJWTError as e:
            logger.debug(f"Token rejected: {e}")
            raise Unauthorized("Unauthorized") from e

        if not claims:
            raise Unauthorized("Unauthorized")
        return claims

    def __repr__(self) -> str:
        return f"JWTVerifier(algorithms={self.algorithms!r})"
