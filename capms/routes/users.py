from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from capms.controllers.user_controller import get_user, update_profile
from capms.core.database import get_db
from capms.core.dependencies import get_caller, get_current_user
from capms.models.user import User
from capms.schemas.user import ProfileUpdate, UserOut
from capms.services.scoping import Caller

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/profile", response_model=UserOut)
async def profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserOut)
async def edit_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await update_profile(db, current_user, payload)


@router.get("/{user_id}", response_model=UserOut)
async def user_detail(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return await get_user(db, caller, user_id)
