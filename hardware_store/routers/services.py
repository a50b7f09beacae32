"""Customer side of service requests (installation, repair and similar jobs)."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..database import serialize, serialize_many, utc_now
from ..deps import AppContext, Pagination, find_owned, get_context, get_current_user
from ..errors import ConflictError
from ..payloads import AcceptQuoteRequest, ServiceRequestCreate
from ..schemas import ServiceRequest, ServiceStatus

router = APIRouter(prefix="/services", tags=["services"])


@router.post("/request", status_code=201)
def create_request(
    body: ServiceRequestCreate, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    doc = ServiceRequest(
        user_id=user["_id"],
        type=body.type,
        details=body.details,
        location=body.location,
        requested_date=body.requested_date.isoformat() if body.requested_date else None,
        instructions=body.instructions,
    ).model_dump()
    doc["_id"] = ctx.db["service_request"].insert_one(doc).inserted_id
    return serialize(doc)


@router.get("/requests")
def my_requests(
    status: Optional[ServiceStatus] = None,
    paging: Pagination = Depends(),
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    query = {"user_id": user["_id"]}
    if status:
        query["status"] = status.value
    total = ctx.db["service_request"].count_documents(query)
    cursor = (
        ctx.db["service_request"].find(query).sort([("created_at", -1)]).skip(paging.skip).limit(paging.limit)
    )
    return paging.envelope(serialize_many(cursor), total, key="requests")


@router.get("/requests/{request_id}")
def get_request(request_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return serialize(find_owned(ctx.db["service_request"], request_id, user, "Service request"))


@router.post("/requests/{request_id}/accept-quote")
def accept_quote(
    request_id: str,
    body: Optional[AcceptQuoteRequest] = None,
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    request = find_owned(ctx.db["service_request"], request_id, user, "Service request")
    update = {"status": ServiceStatus.ACCEPTED.value, "updated_at": utc_now()}
    if body and body.notes:
        update["notes"] = body.notes
    result = ctx.db["service_request"].update_one(
        {"_id": request["_id"], "status": ServiceStatus.QUOTED.value}, {"$set": update}
    )
    if result.matched_count == 0:
        raise ConflictError(f"Only quoted requests can be accepted (current status: {request['status']})")
    return serialize(ctx.db["service_request"].find_one({"_id": request["_id"]}))
