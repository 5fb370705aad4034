"""Request middleware for the ESSENCE API."""

from essence.middleware.auth import AuthMiddleware, JWTValidator, get_owner_id

__all__ = [
    "AuthMiddleware",
    "JWTValidator",
    "get_owner_id",
]
