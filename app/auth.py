"""API key verification for gate endpoints."""

from fastapi import HTTPException, Header

from app.config import settings


async def verify_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    authorization: str | None = Header(default=None),
) -> str:
    """Accept the key via X-API-Key or Authorization: Bearer.

    With GATE_API_KEY unset every request passes. Otherwise a matching key is
    required or the request fails with 401.
    """
    if settings.gate_api_key is None:
        return ""

    key = x_api_key
    if key is None and authorization and authorization.startswith("Bearer "):
        key = authorization[7:].strip()

    if key != settings.gate_api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")

    return key
