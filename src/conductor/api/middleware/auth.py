"""
API key authentication for the conductor HTTP surface.

Usage:
    Set API_KEY in the environment:  API_KEY=your-secret-key
    Clients pass:                    Authorization: Bearer your-secret-key

Security:
    - In production (ENV=production), API_KEY is REQUIRED and startup fails
      without it, unless AUTH_DISABLED=true is set explicitly.
    - In development (default), auth is optional for convenience.
    - Keys are compared with hmac.compare_digest.
"""

import hashlib
import hmac
import logging
import os
from dataclasses import dataclass

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    """
    Who is calling.

    user_id: First 16 hex chars of the key's SHA-256, or "anon" when auth is off.
    """

    api_key: str | None = None
    user_id: str = "anon"


def get_api_key() -> str | None:
    """Configured API key, or None when auth is disabled."""
    return os.environ.get("API_KEY", "").strip() or None


def _is_production() -> bool:
    env = os.environ.get("ENV", os.environ.get("ENVIRONMENT", "development"))
    return env.lower() in ("production", "prod", "staging")


def _auth_explicitly_disabled() -> bool:
    return os.environ.get("AUTH_DISABLED", "").lower() in ("true", "1", "yes")


def check_production_auth() -> None:
    """
    Refuse to start a production server without an API key.

    Raises:
        RuntimeError: production mode, no API_KEY and no AUTH_DISABLED opt-out.
    """
    if get_api_key() is not None:
        return
    if not _is_production():
        logger.info("[Auth] No API_KEY set (dev mode). Endpoints are unauthenticated.")
        return
    if _auth_explicitly_disabled():
        logger.warning(
            "[Auth] AUTH_DISABLED=true in production. "
            "Chat and preference endpoints are unauthenticated."
        )
        return
    raise RuntimeError(
        "API_KEY is required in production mode. "
        "Set API_KEY in the environment, or AUTH_DISABLED=true to opt out."
    )


async def verify_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),
) -> AuthContext:
    """FastAPI dependency: 401 without a key, 403 with a wrong one."""
    expected_key = get_api_key()
    if expected_key is None:
        return AuthContext()

    client_host = request.client.host if request.client else "unknown"
    if credentials is None:
        logger.warning(f"[Auth] Missing credentials from {client_host}")
        raise HTTPException(status_code=401, detail="Missing API key")

    if not hmac.compare_digest(credentials.credentials, expected_key):
        logger.warning(f"[Auth] Invalid API key from {client_host}")
        raise HTTPException(status_code=403, detail="Invalid API key")

    key = credentials.credentials
    return AuthContext(api_key=key, user_id=hashlib.sha256(key.encode()).hexdigest()[:16])
