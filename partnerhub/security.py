"""Bearer API key authentication for partner Apps."""
from __future__ import annotations

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import Database
from .models import App


class AppKeyAuth:
    """Resolve the calling :class:`App` from its bearer API key."""

    def __init__(self, database: Database):
        self._database = database
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> App:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        app = self._database.authenticate_api_key(credentials.credentials)
        if app is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid API key",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return app


__all__ = ["AppKeyAuth"]
