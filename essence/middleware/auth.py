"""
Authentication middleware with JWT bearer tokens.

Features:
- JWT token validation (the ``sub`` claim is the owner id)
- Request context enrichment
- A FastAPI dependency that enforces authentication per route
"""

from dataclasses import dataclass, field
from typing import Optional, List, Callable, Dict, Any

import jwt
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from essence.core.errors import AuthenticationError
from essence.core.logging import get_logger, set_owner_id

logger = get_logger(__name__)


@dataclass
class AuthContext:
    """Authentication context for a request."""

    authenticated: bool = False
    owner_id: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)


class JWTValidator:
    """
    JWT token validation.

    For integration with external auth providers.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer

    def validate(self, token: str) -> Optional[AuthContext]:
        """Validate a JWT token. Returns None for anything unusable."""
        if not self.secret:
            return None

        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["sub"]},
            )
        except jwt.PyJWTError as e:
            logger.debug(f"JWT validation failed: {e}")
            return None

        owner_id = payload.get("sub")
        if not isinstance(owner_id, str) or not owner_id:
            return None

        return AuthContext(authenticated=True, owner_id=owner_id, claims=payload)


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Authentication middleware.

    Validates bearer tokens and adds the auth context to the request.
    Never rejects by itself; routes depend on ``get_owner_id``.
    """

    def __init__(
        self,
        app,
        jwt_validator: Optional[JWTValidator] = None,
        exclude_paths: Optional[List[str]] = None,
    ):
        super().__init__(app)
        self.jwt_validator = jwt_validator or JWTValidator()
        self.exclude_paths = exclude_paths or [
            "/health",
            "/metrics",
            "/docs",
            "/openapi.json",
        ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.auth = AuthContext()

        if any(request.url.path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            auth_context = self.jwt_validator.validate(auth_header[7:])
            if auth_context:
                request.state.auth = auth_context
                set_owner_id(auth_context.owner_id)
                logger.debug("Request authenticated")

        return await call_next(request)


def get_auth_context(request: Request) -> AuthContext:
    """FastAPI dependency to get auth context."""
    return getattr(request.state, "auth", AuthContext())


def get_owner_id(request: Request) -> str:
    """FastAPI dependency returning the authenticated owner id."""
    auth = get_auth_context(request)
    if not auth.authenticated or not auth.owner_id:
        raise AuthenticationError("Valid bearer token required")
    return auth.owner_id
