from fastapi import APIRouter, BackgroundTasks, Depends

from ..database import serialize, serialize_many
from ..deps import AppContext, Pagination, get_context, get_current_user
from ..payloads import PlaceOrderRequest
from .checkout import place_order

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
def my_orders(
    paging: Pagination = Depends(), user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    orders, total = ctx.orders.list_for_user(user, paging.skip, paging.limit)
    return paging.envelope(serialize_many(orders), total, key="orders")


@router.post("", status_code=201)
def create_order(
    body: PlaceOrderRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return place_order(ctx, user, body, background_tasks)


@router.get("/{order_id}")
def order_detail(order_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return serialize(ctx.orders.get_for_user(user, order_id))


@router.post("/{order_id}/cancel")
def cancel_order(order_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return {"message": "Order cancelled", "order": serialize(ctx.orders.cancel(user, order_id))}
