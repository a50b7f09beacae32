from fastapi import APIRouter, BackgroundTasks, Depends

from ..database import serialize
from ..deps import AppContext, get_context, get_current_user
from ..payloads import PlaceOrderRequest

router = APIRouter(prefix="/checkout", tags=["checkout"])


def place_order(ctx: AppContext, user: dict, body: PlaceOrderRequest, background_tasks: BackgroundTasks) -> dict:
    placed = ctx.checkout.place_order(user, body.address, body.service_request, body.payment_method)

    notify = ctx.notifications
    background_tasks.add_task(notify.dispatch, notify.order_confirmation, user, placed.order)
    for product in placed.low_stock:
        background_tasks.add_task(notify.dispatch, notify.low_stock_alert, product)

    return {
        "message": "Order placed successfully",
        "order": serialize(placed.order),
        "payment_id": str(placed.payment_id) if placed.payment_id else None,
    }


@router.post("/place", status_code=201)
def place(
    body: PlaceOrderRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return place_order(ctx, user, body, background_tasks)


@router.get("/shipping-options")
def shipping_options(user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return {"options": ctx.checkout.get_shipping_options()}
