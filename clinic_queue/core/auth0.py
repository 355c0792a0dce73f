"""
Auth0 RS256 token verification for operator logins.

Signing keys come from the tenant's JWKS endpoint and are kept in memory
for a few hours; an unknown ``kid`` forces one refetch so key rotation
does not lock operators out.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from clinic_queue.config import get_settings

logger = logging.getLogger(__name__)

_JWKS_TTL_SECONDS = 6 * 60 * 60

_jwks: Optional[Dict[str, Any]] = None
_jwks_fetched_at: float = 0.0


async def _load_jwks(domain: str, refresh: bool = False) -> Dict[str, Any]:
    global _jwks, _jwks_fetched_at

    fresh = _jwks is not None and (time.time() - _jwks_fetched_at) < _JWKS_TTL_SECONDS
    if fresh and not refresh:
        return _jwks

    logger.info("Fetching signing keys from %s", domain)
    async with httpx.AsyncClient() as client:
        resp = await client.get(f"https://{domain}/.well-known/jwks.json", timeout=10.0)
        resp.raise_for_status()
        _jwks = resp.json()
    _jwks_fetched_at = time.time()
    return _jwks


def _signing_key(jwks: Dict[str, Any], kid: str) -> Optional[Dict[str, str]]:
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return {name: key[name] for name in ("kty", "kid", "use", "n", "e")}
    return None


async def verify_auth0_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an operator's access token.

    Raises:
        ValueError: misconfiguration, malformed token, unknown key or
            failed signature/claims validation
    """
    settings = get_settings()
    if not settings.auth0_domain or not settings.auth0_audience:
        raise ValueError("Auth0 domain and audience must be configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError as e:
        raise ValueError(f"Invalid token header: {e}")
    if not kid:
        raise ValueError("Token header missing 'kid'")

    try:
        key = _signing_key(await _load_jwks(settings.auth0_domain), kid)
        if key is None:
            logger.info("Unknown kid=%s, refreshing signing keys", kid)
            key = _signing_key(await _load_jwks(settings.auth0_domain, refresh=True), kid)
    except httpx.HTTPError as e:
        raise ValueError(f"Could not fetch signing keys: {e}")
    if key is None:
        raise ValueError(f"Unable to find matching key for kid={kid}")

    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=settings.auth0_audience,
            issuer=f"https://{settings.auth0_domain}/",
        )
    except JWTError as e:
        raise ValueError(f"Token verification failed: {e}")
