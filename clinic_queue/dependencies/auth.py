"""
Authentication dependencies: Auth0 JWT verification.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_queue.config import get_settings
from clinic_queue.contracts.operator import OperatorContext
from clinic_queue.core.auth0 import verify_auth0_token
from clinic_queue.dependencies.db import get_db
from clinic_queue.models.operators import Operator

logger = logging.getLogger(__name__)

# Make HTTPBearer optional when auth is disabled
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """
    Verify Auth0 JWT and return basic user info.

    Returns dict with ``id``, ``email``, ``auth0_sub``.

    If AUTH_DISABLED=true in .env, returns a mock test user.
    """
    settings = get_settings()

    # Bypass Auth0 when disabled (for testing)
    if settings.auth_disabled:
        logger.warning("Auth0 disabled - using mock test user")
        return {
            "id": "test-user-id",
            "email": None,
            "auth0_sub": "auth0|test-user-id",
        }

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = await verify_auth0_token(credentials.credentials)
    except ValueError as e:
        logger.error("Auth0 token verification failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "id": payload.get("sub"),
        "email": payload.get("email", ""),
        "auth0_sub": payload.get("sub"),
    }


async def get_current_operator_record(
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Operator:
    """
    Resolve the authenticated user to an active Operator row by email.

    If AUTH_DISABLED=true and the mock user carries no email, returns the
    first active operator in the database (for testing).
    """
    settings = get_settings()
    email = user.get("email")

    if settings.auth_disabled and not email:
        logger.warning("No email on current user - returning first available operator")
        result = await db.execute(
            select(Operator)
            .where(Operator.is_active.is_(True))
            .order_by(Operator.created_at.asc())
            .limit(1)
        )
        operator = result.scalars().first()
        if not operator:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No operators in database. Create test data first.",
            )
        return operator

    result = await db.execute(
        select(Operator).where(Operator.email == email, Operator.is_active.is_(True))
    )
    operator = result.scalars().first()

    if not operator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No operator account found for this user",
        )

    return operator


async def get_operator_context(
    operator: Operator = Depends(get_current_operator_record),
) -> OperatorContext:
    """Explicit operator identity handed to the queue services."""
    return OperatorContext(
        operator_id=operator.id,
        username=operator.username,
        display_name=operator.display_name or operator.username,
        access_level=operator.access_level,
    )
