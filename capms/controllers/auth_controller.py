from fastapi import HTTPException, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from capms.core.config import settings
from capms.core.security import create_access_token, verify_password
from capms.models.audit_log import AuditAction
from capms.models.user import User
from capms.schemas.auth import LoginRequest, LoginResponse
from capms.schemas.user import UserOut
from capms.services import audit


async def login(payload: LoginRequest, db: AsyncSession) -> LoginResponse:
    """
    Login by email or registration number.

    Same error for unknown identifier and wrong password, and the password
    check always runs so response time does not reveal which one failed.
    """
    identifier = payload.identifier.strip()
    result = await db.execute(
        select(User).where(or_(User.email == identifier, User.registration_number == identifier))
    )
    user = result.scalars().first()

    password_ok = verify_password(payload.password, user.password_hash if user else None)

    if not user or not password_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not user.verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account not verified. Please contact admin.",
        )

    token = create_access_token(user.id, user.role.value)

    await audit.record(
        db,
        actor_id=user.id,
        action=AuditAction.USER_LOGIN,
        target_type="User",
        target_id=user.id,
        description="Login",
    )
    await db.refresh(user)

    return LoginResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserOut.model_validate(user),
    )
