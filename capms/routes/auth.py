from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from capms.controllers.auth_controller import login
from capms.core.config import BRANCHES, SEMESTERS, SECTIONS
from capms.core.database import get_db
from capms.core.dependencies import get_current_user
from capms.models.user import User
from capms.schemas.auth import LoginRequest, LoginResponse, OptionsOut
from capms.schemas.user import UserOut

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login",
    description="""
Authenticate with email or registration number + password.
Returns a JWT Bearer token to use in all other requests.

**How to use the token:**
Add to request headers: `Authorization: Bearer <your_token>`
    """,
)
async def user_login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    return await login(payload, db)


@router.get("/me", response_model=UserOut, summary="Get Current User")
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/options", response_model=OptionsOut, summary="Branch / semester / section options")
async def options() -> OptionsOut:
    return OptionsOut(branches=BRANCHES, semesters=SEMESTERS, sections=SECTIONS)


@router.post(
    "/logout",
    summary="Logout",
    description="JWT tokens are stateless. To logout, delete the token on the client.",
)
async def logout() -> dict:
    return {"detail": "Logged out. Delete your token on the client side."}
