from fastapi import APIRouter, Depends

from ..database import serialize, serialize_many
from ..deps import AppContext, Pagination, get_context, get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def my_notifications(
    paging: Pagination = Depends(), user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    items = ctx.notifications.list_for_user(user, limit=paging.limit, offset=paging.skip)
    unread = ctx.db["notification"].count_documents({"user_id": user["_id"], "read_at": None})
    return {"notifications": serialize_many(items), "page": paging.page, "limit": paging.limit, "unread": unread}


@router.put("/{notification_id}/read")
def mark_read(notification_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return serialize(ctx.notifications.mark_read(user, notification_id))
