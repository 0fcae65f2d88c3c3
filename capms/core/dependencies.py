from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from capms.core.database import get_db
from capms.core.security import decode_access_token
from capms.models.user import User, UserRole
from capms.services.scoping import Caller

bearer = HTTPBearer(auto_error=False)


def _not_authenticated_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing token",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    not_authenticated = _not_authenticated_exception()

    if not credentials:
        raise not_authenticated

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])

        if payload.get("type") != "access":
            raise not_authenticated

    except (JWTError, KeyError, ValueError):
        raise not_authenticated

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise not_authenticated

    if not user.verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account not verified",
        )

    return user


async def get_caller(user: User = Depends(get_current_user)) -> Caller:
    return Caller.from_user(user)


def require_roles(*roles: UserRole):
    """
    Role gate. Usage:
        caller: Caller = Depends(require_roles(UserRole.TEACHER, UserRole.ADMIN))
    """

    async def _guard(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in roles:
            allowed = " or ".join(r.value for r in roles)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Requires role: {allowed}",
            )
        return caller

    return _guard


require_reviewer = require_roles(UserRole.TEACHER, UserRole.ADMIN)
require_teacher = require_roles(UserRole.TEACHER)
require_admin = require_roles(UserRole.ADMIN)
