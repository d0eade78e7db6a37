"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from app.application.auth_service import AuthResult, AuthService

__all__ = [
    "AuthResult",
    "AuthService",
]
