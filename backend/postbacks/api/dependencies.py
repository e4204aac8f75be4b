from __future__ import annotations

import hmac

from fastapi import HTTPException, Request, status

from postbacks.core.config import settings


def _extract_api_key(request: Request) -> str | None:
    return request.headers.get("X-Api-Key") or request.headers.get("X-API-Key")


def require_admin_key(request: Request) -> None:
    """Guard for back-office routes. Open when ADMIN_API_KEY is unset."""
    expected = settings.ADMIN_API_KEY
    if not expected:
        return
    provided = _extract_api_key(request)
    if not provided:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")
