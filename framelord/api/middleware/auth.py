"""API key authentication for admin endpoints"""

from __future__ import annotations

import os
import secrets

from fastapi import Header, HTTPException, status

from framelord.observability.logging import get_logger

logger = get_logger(__name__)


class APIKeyAuth:
    """
    Bearer API key check for admin endpoints (owner announcements, credit
    grants, billing resets).

    The key is read from FRAMELORD_ADMIN_API_KEY on every check so tests and
    deployments can rotate it without a restart. With no key configured,
    access is allowed outside production.
    """

    @property
    def api_key(self) -> str | None:
        return os.getenv("FRAMELORD_ADMIN_API_KEY") or None

    def verify_api_key(self, authorization: str | None = Header(None)) -> bool:
        """
        Verify the Authorization header.

        Expected format: "Bearer {api_key}"

        Raises:
            HTTPException 401: Missing or malformed header
            HTTPException 403: Wrong key, or no key configured in production
        """
        api_key = self.api_key
        if not api_key:
            if os.getenv("FRAMELORD_ENV", "development") == "production":
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Admin API key not configured",
                )
            logger.warning("FRAMELORD_ADMIN_API_KEY not set - admin endpoints are unprotected!")
            return True

        if not authorization:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing authorization header",
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            scheme, token = authorization.split()
            if scheme.lower() != "bearer":
                raise ValueError("Invalid authentication scheme")
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authorization header format. Expected: Bearer {api_key}",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        # Timing-safe comparison
        if not secrets.compare_digest(token, api_key):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid API key",
            )

        return True


auth = APIKeyAuth()


def require_admin_auth(authorization: str | None = Header(None)) -> bool:
    """
    Dependency for endpoints that require admin authentication.

    Usage:
        @router.post("/api/system-log/announcements")
        async def announce(authenticated: bool = Depends(require_admin_auth)):
            ...
    """
    return auth.verify_api_key(authorization)
