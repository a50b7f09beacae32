"""Admin-only management and reporting endpoints."""

import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pymongo import ReturnDocument

from ..database import object_id, query_time, serialize, serialize_many, utc_now
from ..deps import AppContext, Pagination, get_context, public_user, require_admin
from ..errors import ConflictError, NotFoundError, ValidationError
from ..payloads import (
    CategoryCreate,
    CategoryUpdate,
    OrderStatusUpdate,
    ProductCreate,
    ProductUpdate,
    ServiceQuoteCreate,
    ServiceStatusUpdate,
    StockUpdate,
    UserRoleUpdate,
    UserStatusUpdate,
)
from ..schemas import (
    TERMINAL_SERVICE_STATUSES,
    Category,
    OrderStatus,
    Product,
    Role,
    ServiceStatus,
)
from ..services.orders import day_range
from .catalog import CATEGORIES_CACHE_KEY, sort_spec, text_match

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _get(ctx: AppContext, collection: str, doc_id: Any, label: str) -> dict:
    doc = ctx.db[collection].find_one({"_id": object_id(doc_id, label)})
    if not doc:
        raise NotFoundError(label)
    return doc


def _category_for(ctx: AppContext, category_id: str) -> dict:
    try:
        return _get(ctx, "category", category_id, "Category")
    except NotFoundError:
        raise ValidationError("Category does not exist")


def _ensure_unique(ctx: AppContext, collection: str, field: str, value: str, exclude=None) -> None:
    query: Dict[str, Any] = {field: value}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    if ctx.db[collection].find_one(query):
        raise ConflictError(f"{collection.capitalize()} with this {field} already exists")


# Categories
@router.get("/categories")
def list_categories(ctx: AppContext = Depends(get_context)):
    categories = []
    for category in ctx.db["category"].find().sort([("name", 1)]):
        row = serialize(category)
        row["product_count"] = ctx.db["product"].count_documents({"category_id": category["_id"]})
        categories.append(row)
    return {"categories": categories}


@router.post("/categories", status_code=201)
def create_category(body: CategoryCreate, ctx: AppContext = Depends(get_context)):
    _ensure_unique(ctx, "category", "slug", body.slug)
    doc = Category(**body.model_dump()).model_dump()
    doc["_id"] = ctx.db["category"].insert_one(doc).inserted_id
    ctx.cache.delete(CATEGORIES_CACHE_KEY)
    return serialize(doc)


@router.put("/categories/{category_id}")
def update_category(category_id: str, body: CategoryUpdate, ctx: AppContext = Depends(get_context)):
    category = _get(ctx, "category", category_id, "Category")
    update = body.model_dump(exclude_none=True)
    if "slug" in update:
        _ensure_unique(ctx, "category", "slug", update["slug"], exclude=category["_id"])
    if update:
        update["updated_at"] = utc_now()
        ctx.db["category"].update_one({"_id": category["_id"]}, {"$set": update})
        ctx.cache.delete(CATEGORIES_CACHE_KEY)
    return serialize(ctx.db["category"].find_one({"_id": category["_id"]}))


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, ctx: AppContext = Depends(get_context)):
    category = _get(ctx, "category", category_id, "Category")
    if ctx.db["product"].count_documents({"category_id": category["_id"]}):
        raise ConflictError("Cannot delete a category that still has products")
    ctx.db["category"].delete_one({"_id": category["_id"]})
    ctx.cache.delete(CATEGORIES_CACHE_KEY)
    return {"message": "Category deleted"}


# Products
@router.get("/products")
def list_products(
    category: Optional[str] = None,
    q: Optional[str] = None,
    active: Optional[bool] = None,
    sort: str = "created_at",
    order: str = "desc",
    paging: Pagination = Depends(),
    ctx: AppContext = Depends(get_context),
):
    sorting = sort_spec(sort, order)
    query: Dict[str, Any] = {}
    if category:
        cat = ctx.db["category"].find_one({"slug": category})
        if not cat:
            return paging.envelope([], 0, key="products")
        query["category_id"] = cat["_id"]
    if q:
        query.update(text_match(q, "name", "description", "sku"))
    if active is not None:
        query["is_active"] = active
    total = ctx.db["product"].count_documents(query)
    cursor = ctx.db["product"].find(query).sort(sorting).skip(paging.skip).limit(paging.limit)
    return paging.envelope(serialize_many(cursor), total, key="products")


@router.post("/products", status_code=201)
def create_product(body: ProductCreate, ctx: AppContext = Depends(get_context)):
    category = _category_for(ctx, body.category_id)
    _ensure_unique(ctx, "product", "sku", body.sku)
    _ensure_unique(ctx, "product", "slug", body.slug)
    doc = Product(**{**body.model_dump(), "category_id": category["_id"]}).model_dump()
    doc["_id"] = ctx.db["product"].insert_one(doc).inserted_id
    logger.info("Product %s (%s) created", doc["_id"], doc["sku"])
    return serialize(doc)


@router.put("/products/{product_id}")
def update_product(product_id: str, body: ProductUpdate, ctx: AppContext = Depends(get_context)):
    product = _get(ctx, "product", product_id, "Product")
    update = body.model_dump(exclude_none=True)
    if "sku" in update:
        _ensure_unique(ctx, "product", "sku", update["sku"], exclude=product["_id"])
    if "slug" in update:
        _ensure_unique(ctx, "product", "slug", update["slug"], exclude=product["_id"])
    if "category_id" in update:
        update["category_id"] = _category_for(ctx, update["category_id"])["_id"]
    if update:
        update["updated_at"] = utc_now()
        ctx.db["product"].update_one({"_id": product["_id"]}, {"$set": update})
    return serialize(ctx.db["product"].find_one({"_id": product["_id"]}))


@router.delete("/products/{product_id}")
def delete_product(product_id: str, ctx: AppContext = Depends(get_context)):
    product = _get(ctx, "product", product_id, "Product")
    if ctx.db["order"].count_documents({"items.product_id": product["_id"]}):
        raise ConflictError("Product is referenced by existing orders; deactivate it instead")
    ctx.db["cart"].update_many(
        {"items.product_id": product["_id"]}, {"$pull": {"items": {"product_id": product["_id"]}}}
    )
    ctx.db["wishlist"].delete_many({"product_id": product["_id"]})
    ctx.db["product"].delete_one({"_id": product["_id"]})
    logger.info("Product %s deleted", product["_id"])
    return {"message": "Product deleted"}


# Inventory
def _apply_stock_change(products, product_id, operation: str, quantity: int) -> Optional[tuple]:
    """Apply one atomic stock change, returning (previous, current) or None if the row moved."""
    stamp = {"updated_at": utc_now()}
    if operation == "set":
        before = products.find_one_and_update(
            {"_id": product_id},
            {"$set": {"stock_quantity": quantity, **stamp}},
            return_document=ReturnDocument.BEFORE,
        )
        return (before["stock_quantity"], quantity) if before else None

    delta = quantity if operation == "add" else -quantity
    query = {"_id": product_id}
    if operation == "subtract":
        query["stock_quantity"] = {"$gte": quantity}
    after = products.find_one_and_update(
        query, {"$inc": {"stock_quantity": delta}, "$set": stamp}, return_document=ReturnDocument.AFTER
    )
    if after:
        return after["stock_quantity"] - delta, after["stock_quantity"]
    if operation == "add":
        return None

    # subtracting more than is on hand floors at zero
    before = products.find_one_and_update(
        {"_id": product_id, "stock_quantity": {"$lt": quantity}},
        {"$set": {"stock_quantity": 0, **stamp}},
        return_document=ReturnDocument.BEFORE,
    )
    return (before["stock_quantity"], 0) if before else None


@router.put("/inventory/stock")
def update_stock(body: StockUpdate, ctx: AppContext = Depends(get_context)):
    product = _get(ctx, "product", body.product_id, "Product")
    change = _apply_stock_change(ctx.db["product"], product["_id"], body.operation, body.quantity)
    if change is None:
        raise ConflictError("Stock changed during the update, please retry")
    previous, current = change
    logger.info("Stock for %s: %d -> %d (%s)", product["sku"], previous, current, body.operation)
    return {
        "product_id": str(product["_id"]),
        "previous_quantity": previous,
        "stock_quantity": current,
    }


@router.get("/inventory/low-stock")
def low_stock(threshold: Optional[int] = Query(None, ge=0), ctx: AppContext = Depends(get_context)):
    limit = ctx.settings.low_stock_threshold if threshold is None else threshold
    cursor = ctx.db["product"].find({"is_active": True, "stock_quantity": {"$lt": limit}}).sort(
        [("stock_quantity", 1)]
    )
    products = serialize_many(cursor)
    return {"products": products, "threshold": limit, "count": len(products)}


# Orders
@router.get("/orders")
def list_orders(
    status: Optional[OrderStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    paging: Pagination = Depends(),
    ctx: AppContext = Depends(get_context),
):
    orders, total = ctx.orders.list_all(
        status.value if status else None, start_date, end_date, paging.skip, paging.limit
    )
    return paging.envelope(serialize_many(orders), total, key="orders")


@router.get("/orders/{order_id}")
def order_detail(order_id: str, ctx: AppContext = Depends(get_context)):
    return serialize(ctx.orders.get(order_id))


@router.put("/orders/{order_id}/status")
def update_order_status(
    order_id: str, body: OrderStatusUpdate, background_tasks: BackgroundTasks, ctx: AppContext = Depends(get_context)
):
    order = ctx.orders.update_status(order_id, body.status)
    notify = ctx.notifications
    background_tasks.add_task(notify.dispatch, notify.order_status_update, order, order["status"])
    return serialize(order)


# Service requests
@router.get("/services")
def list_service_requests(
    status: Optional[ServiceStatus] = None,
    type: Optional[str] = None,
    paging: Pagination = Depends(),
    ctx: AppContext = Depends(get_context),
):
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status.value
    if type:
        query["type"] = type
    total = ctx.db["service_request"].count_documents(query)
    cursor = (
        ctx.db["service_request"].find(query).sort([("created_at", -1)]).skip(paging.skip).limit(paging.limit)
    )
    return paging.envelope(serialize_many(cursor), total, key="requests")


@router.put("/services/{request_id}/status")
def update_service_status(request_id: str, body: ServiceStatusUpdate, ctx: AppContext = Depends(get_context)):
    request = _get(ctx, "service_request", request_id, "Service request")
    if request["status"] in TERMINAL_SERVICE_STATUSES:
        raise ConflictError(f"Service request is {request['status']} and can no longer change")
    update: Dict[str, Any] = {"status": body.status.value, "updated_at": utc_now()}
    if body.assigned_to:
        update["assigned_to"] = _get(ctx, "user", body.assigned_to, "User")["_id"]
    if body.scheduled_date:
        update["scheduled_date"] = body.scheduled_date.isoformat()
    if body.notes is not None:
        update["notes"] = body.notes
    result = ctx.db["service_request"].update_one(
        {"_id": request["_id"], "status": request["status"]}, {"$set": update}
    )
    if result.matched_count == 0:
        raise ConflictError("Service request changed concurrently; retry")
    return serialize(ctx.db["service_request"].find_one({"_id": request["_id"]}))


@router.post("/services/{request_id}/quote")
def quote_service(
    request_id: str, body: ServiceQuoteCreate, background_tasks: BackgroundTasks, ctx: AppContext = Depends(get_context)
):
    request = _get(ctx, "service_request", request_id, "Service request")
    quotable = (ServiceStatus.REQUESTED.value, ServiceStatus.QUOTED.value)
    if request["status"] not in quotable:
        raise ConflictError(f"Cannot quote a service request in {request['status']} status")
    update: Dict[str, Any] = {
        "status": ServiceStatus.QUOTED.value,
        "quote_amount": body.amount,
        "updated_at": utc_now(),
    }
    if body.notes is not None:
        update["notes"] = body.notes
    ctx.db["service_request"].update_one({"_id": request["_id"], "status": {"$in": list(quotable)}}, {"$set": update})
    request = ctx.db["service_request"].find_one({"_id": request["_id"]})
    notify = ctx.notifications
    background_tasks.add_task(notify.dispatch, notify.service_quote, request)
    return serialize(request)


# Users
@router.get("/users")
def list_users(
    role: Optional[Role] = None,
    search: Optional[str] = None,
    paging: Pagination = Depends(),
    ctx: AppContext = Depends(get_context),
):
    query: Dict[str, Any] = {}
    if role:
        query["role"] = role.value
    if search:
        query.update(text_match(search, "email", "full_name"))
    total = ctx.db["user"].count_documents(query)
    cursor = ctx.db["user"].find(query).sort([("created_at", -1)]).skip(paging.skip).limit(paging.limit)
    return paging.envelope([public_user(u) for u in cursor], total, key="users")


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: str, body: UserRoleUpdate, admin: dict = Depends(require_admin), ctx: AppContext = Depends(get_context)
):
    user = _get(ctx, "user", user_id, "User")
    if user["_id"] == admin["_id"]:
        raise ValidationError("You cannot change your own role")
    ctx.db["user"].update_one({"_id": user["_id"]}, {"$set": {"role": body.role.value, "updated_at": utc_now()}})
    return public_user(ctx.db["user"].find_one({"_id": user["_id"]}))


@router.put("/users/{user_id}/status")
def update_user_status(
    user_id: str, body: UserStatusUpdate, admin: dict = Depends(require_admin), ctx: AppContext = Depends(get_context)
):
    user = _get(ctx, "user", user_id, "User")
    if user["_id"] == admin["_id"] and not body.is_active:
        raise ValidationError("You cannot deactivate your own account")
    ctx.db["user"].update_one(
        {"_id": user["_id"]}, {"$set": {"is_active": body.is_active, "updated_at": utc_now()}}
    )
    return public_user(ctx.db["user"].find_one({"_id": user["_id"]}))


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: dict = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    user = _get(ctx, "user", user_id, "User")
    if user["_id"] == admin["_id"]:
        raise ValidationError("You cannot delete your own account")
    if ctx.db["order"].count_documents({"user_id": user["_id"]}):
        raise ConflictError("Cannot delete a user with existing orders; deactivate the account instead")
    for collection in ("cart", "wishlist", "address", "notification", "service_request"):
        ctx.db[collection].delete_many({"user_id": user["_id"]})
    ctx.db["user"].delete_one({"_id": user["_id"]})
    logger.info("User %s deleted by admin %s", user["_id"], admin["_id"])
    return {"message": "User deleted"}


# Reports
@router.get("/reports/sales")
def sales_report(start_date: date, end_date: date, ctx: AppContext = Depends(get_context)):
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")
    placed = day_range(start_date, end_date)

    delivered = list(
        ctx.db["order"].aggregate(
            [
                {"$match": {"status": OrderStatus.DELIVERED.value, "placed_at": placed}},
                {"$group": {"_id": None, "total": {"$sum": "$total"}}},
            ]
        )
    )
    top_products = list(
        ctx.db["order"].aggregate(
            [
                {"$match": {"placed_at": placed, "status": {"$ne": OrderStatus.CANCELLED.value}}},
                {"$unwind": "$items"},
                {
                    "$group": {
                        "_id": "$items.product_id",
                        "product_name": {"$first": "$items.name"},
                        "total_sold": {"$sum": "$items.quantity"},
                        "revenue": {"$sum": {"$multiply": ["$items.quantity", "$items.unit_price"]}},
                    }
                },
                {"$sort": {"total_sold": -1}},
                {"$limit": 10},
            ]
        )
    )
    return {
        "period": {"start": start_date, "end": end_date},
        "total_sales": round(delivered[0]["total"], 2) if delivered else 0,
        "order_count": ctx.db["order"].count_documents({"placed_at": placed}),
        "top_products": [
            {
                "product_id": str(row["_id"]),
                "product_name": row["product_name"],
                "total_sold": row["total_sold"],
                "revenue": round(row["revenue"], 2),
            }
            for row in top_products
        ],
    }


@router.get("/reports/inventory")
def inventory_report(ctx: AppContext = Depends(get_context)):
    threshold = ctx.settings.low_stock_threshold
    value = list(
        ctx.db["product"].aggregate(
            [
                {"$match": {"is_active": True}},
                {"$group": {"_id": None, "total": {"$sum": {"$multiply": ["$stock_quantity", "$price"]}}}},
            ]
        )
    )
    low = ctx.db["product"].find({"is_active": True, "stock_quantity": {"$lt": threshold}}).sort(
        [("stock_quantity", 1)]
    )
    return {
        "total_products": ctx.db["product"].count_documents({"is_active": True}),
        "total_inventory_value": round(value[0]["total"], 2) if value else 0,
        "low_stock_products": serialize_many(low),
        "low_stock_threshold": threshold,
    }


@router.get("/reports/users")
def users_report(ctx: AppContext = Depends(get_context)):
    users = ctx.db["user"]
    total = users.count_documents({})
    admins = users.count_documents({"role": Role.ADMIN.value})
    customers = users.count_documents({"role": Role.CUSTOMER.value})
    since = query_time(utc_now() - timedelta(days=30))
    active = len(ctx.db["order"].distinct("user_id", {"placed_at": {"$gte": since}}))

    def pct(n: int) -> float:
        return round(n / total * 100, 2) if total else 0.0

    return {
        "total_users": total,
        "admin_users": admins,
        "customer_users": customers,
        "active_users": active,
        "inactive_users": total - active,
        "admin_percentage": pct(admins),
        "customer_percentage": pct(customers),
    }
