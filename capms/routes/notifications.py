from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from capms.controllers.notification_controller import list_notifications, mark_read, mark_all_read
from capms.core.database import get_db
from capms.core.dependencies import get_caller
from capms.schemas.notification import NotificationListOut, NotificationOut
from capms.services.scoping import Caller

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListOut)
async def notifications(
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    data = await list_notifications(db, caller, unread_only, limit, offset)
    data["items"] = [NotificationOut.model_validate(n) for n in data["items"]]
    return NotificationListOut(**data)


# declared before /{notification_id}/read so the literal path wins
@router.put("/read-all")
async def read_all(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    updated = await mark_all_read(db, caller)
    return {"updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def read_one(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return await mark_read(db, caller, notification_id)
