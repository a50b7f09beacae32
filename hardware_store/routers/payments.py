from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request

from ..database import serialize
from ..deps import AppContext, get_context, get_current_user
from ..payloads import PaymentInitiateRequest
from ..services.payments import SUCCESS_EVENT, WebhookResult

router = APIRouter(prefix="/payments", tags=["payments"])


async def raw_body(request: Request) -> bytes:
    return await request.body()


def _result(result: WebhookResult, ctx: AppContext, background_tasks: BackgroundTasks) -> dict:
    if result.processed and result.event == SUCCESS_EVENT:
        notify = ctx.notifications
        background_tasks.add_task(notify.dispatch, notify.payment_confirmation, result.payment)
    return {
        "event": result.event,
        "processed": result.processed,
        "reference": result.reference,
        "status": result.payment["status"] if result.payment else None,
    }


@router.post("/initiate")
def initiate_payment(
    body: PaymentInitiateRequest, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    return ctx.payments.initiate(user, body.order_id, body.payment_method)


@router.get("/verify/{reference}")
def verify_payment(
    reference: str,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return _result(ctx.payments.verify(user, reference), ctx, background_tasks)


@router.get("/callback")
def payment_callback(
    background_tasks: BackgroundTasks,
    reference: str = Query(..., min_length=1),
    ctx: AppContext = Depends(get_context),
):
    # browser redirect from the provider; the outcome is re-read from the provider, never trusted from the URL
    return _result(ctx.payments.apply_provider_status(reference), ctx, background_tasks)


@router.post("/webhook")
def payment_webhook(
    background_tasks: BackgroundTasks,
    body: bytes = Depends(raw_body),
    x_paystack_signature: Optional[str] = Header(None),
    ctx: AppContext = Depends(get_context),
):
    return _result(ctx.payments.handle_webhook(body, x_paystack_signature), ctx, background_tasks)


@router.get("/{payment_id}/status")
def payment_status(payment_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    payment = ctx.payments.status(user, payment_id)
    return {"payment": serialize(payment), "status": payment["status"]}
