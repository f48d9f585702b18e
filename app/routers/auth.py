from __future__ import annotations

import jwt
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.logging import logger
from app.deps import DbDep, UserDep
from app.models.user import User
from app.schemas.auth import AuthMeResponse, RefreshRequest, TokenPair
from app.services.auth_service import (
    create_access_token,
    create_refresh_token,
    decode_token,
)

router = APIRouter()


@router.post("/refresh", response_model=TokenPair)
async def refresh_token(payload: RefreshRequest, db: DbDep) -> TokenPair:
    """Exchange a valid refresh token for a new token pair.

    The subject must still exist in the employee directory.
    """

    try:
        claims = decode_token(payload.refresh_token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if claims.get("typ") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        result = await db.execute(select(User).where(User.email == sub))
    except SQLAlchemyError:
        logger.warning("User lookup failed during token refresh", exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    user: User | None = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    access = create_access_token(
        subject=sub, extra_claims={"company_id": user.company_id, "role": user.role.value}
    )
    return TokenPair(access_token=access, refresh_token=create_refresh_token(subject=sub))


@router.get("/me", response_model=AuthMeResponse)
async def get_me(current_user: UserDep) -> AuthMeResponse:
    """Return identity of the authenticated user including role and company.

    Args:
        current_user: Injected authenticated user instance.

    Returns:
        The user's id, subject email, role and company.
    """

    return AuthMeResponse(
        id=current_user.id,
        sub=current_user.email,
        full_name=current_user.full_name,
        admin=bool(current_user.admin),
        company_id=current_user.company_id,
        role=current_user.role.value,
    )
