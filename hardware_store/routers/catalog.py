"""Public catalog reads."""

import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder

from ..database import serialize, serialize_many
from ..deps import AppContext, Pagination, get_context
from ..errors import NotFoundError, ValidationError

router = APIRouter(prefix="/catalog", tags=["catalog"])

CATEGORIES_CACHE_KEY = "catalog:categories"
CATEGORIES_CACHE_TTL = 300

SORT_FIELDS = ("name", "price", "created_at", "stock_quantity")
SORT_ORDERS = {"asc": 1, "desc": -1}


def sort_spec(sort: str, order: str):
    """Translate user-supplied sort/order into a Mongo sort list, rejecting unknown fields."""
    if sort not in SORT_FIELDS:
        raise ValidationError(f"Invalid sort field '{sort}'. Allowed: {', '.join(SORT_FIELDS)}")
    if order.lower() not in SORT_ORDERS:
        raise ValidationError("Invalid sort order. Allowed: asc, desc")
    return [(sort, SORT_ORDERS[order.lower()]), ("_id", 1)]


def text_match(term: str, *fields: str) -> Dict[str, Any]:
    pattern = re.escape(term.strip())
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


def list_categories(ctx: AppContext):
    cached = ctx.cache.get_json(CATEGORIES_CACHE_KEY)
    if cached is not None:
        return cached
    categories = jsonable_encoder(serialize_many(ctx.db["category"].find().sort([("name", 1)])))
    ctx.cache.set_json(CATEGORIES_CACHE_KEY, categories, CATEGORIES_CACHE_TTL)
    return categories


@router.get("/categories")
def get_categories(ctx: AppContext = Depends(get_context)):
    return {"categories": list_categories(ctx)}


@router.get("/products")
def list_products(
    category: Optional[str] = None,
    q: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = None,
    sort: str = "created_at",
    order: str = "desc",
    paging: Pagination = Depends(),
    ctx: AppContext = Depends(get_context),
):
    sorting = sort_spec(sort, order)
    query: Dict[str, Any] = {"is_active": True}
    if category:
        cat = ctx.db["category"].find_one({"slug": category})
        if not cat:
            return paging.envelope([], 0, key="products")
        query["category_id"] = cat["_id"]
    if q:
        query.update(text_match(q, "name", "description"))
    price: Dict[str, float] = {}
    if min_price is not None:
        price["$gte"] = min_price
    if max_price is not None:
        price["$lte"] = max_price
    if price:
        query["price"] = price
    if in_stock:
        query["stock_quantity"] = {"$gt": 0}

    total = ctx.db["product"].count_documents(query)
    cursor = ctx.db["product"].find(query).sort(sorting).skip(paging.skip).limit(paging.limit)
    return paging.envelope(serialize_many(cursor), total, key="products")


@router.get("/products/{slug}")
def get_product(slug: str, ctx: AppContext = Depends(get_context)):
    product = ctx.db["product"].find_one({"slug": slug, "is_active": True})
    if not product:
        raise NotFoundError("Product")
    product["category"] = ctx.db["category"].find_one({"_id": product["category_id"]})
    return serialize(product)


@router.get("/search")
def search(
    q: str = Query(..., min_length=1),
    sort: str = "name",
    order: str = "asc",
    paging: Pagination = Depends(),
    ctx: AppContext = Depends(get_context),
):
    sorting = sort_spec(sort, order)
    query = {"is_active": True, **text_match(q, "name", "description", "sku")}
    total = ctx.db["product"].count_documents(query)
    cursor = ctx.db["product"].find(query).sort(sorting).skip(paging.skip).limit(paging.limit)
    return {**paging.envelope(serialize_many(cursor), total, key="products"), "query": q}
