from fastapi import APIRouter, Depends

from ..database import serialize, serialize_many, utc_now
from ..deps import AppContext, get_context, get_current_user, owned, public_user
from ..errors import NotFoundError
from ..payloads import AddressCreate, ProfileUpdate
from ..schemas import Address

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("")
def get_profile(user: dict = Depends(get_current_user)):
    return public_user(user)


@router.put("")
def update_profile(body: ProfileUpdate, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    update = body.model_dump(exclude_none=True)
    if update:
        update["updated_at"] = utc_now()
        ctx.db["user"].update_one({"_id": user["_id"]}, {"$set": update})
    return public_user(ctx.db["user"].find_one({"_id": user["_id"]}))


@router.get("/addresses")
def list_addresses(user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    cursor = ctx.db["address"].find({"user_id": user["_id"]}).sort([("is_default", -1), ("created_at", 1)])
    return {"addresses": serialize_many(cursor)}


@router.post("/addresses", status_code=201)
def add_address(body: AddressCreate, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    if body.is_default:
        ctx.db["address"].update_many({"user_id": user["_id"]}, {"$set": {"is_default": False}})
    doc = Address(user_id=user["_id"], **body.model_dump()).model_dump()
    doc["_id"] = ctx.db["address"].insert_one(doc).inserted_id
    return serialize(doc)


@router.delete("/addresses/{address_id}")
def delete_address(address_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    result = ctx.db["address"].delete_one(owned(user, address_id, "Address"))
    if result.deleted_count == 0:
        raise NotFoundError("Address")
    return {"message": "Address deleted"}
