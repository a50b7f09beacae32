"""Cart and wishlist. Both are scoped to the calling user."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from ..database import object_id, serialize, utc_now
from ..deps import AppContext, get_context, get_current_user, owned
from ..errors import ConflictError, InsufficientStockError, NotFoundError, ProductUnavailableError
from ..payloads import CartItemAdd, CartItemUpdate, WishlistAdd
from ..schemas import Cart, CartItem, Wishlist

router = APIRouter(tags=["cart"])


def _sellable_product(ctx: AppContext, product_id: Any) -> dict:
    product = ctx.db["product"].find_one({"_id": object_id(product_id, "Product")})
    if not product:
        raise NotFoundError("Product")
    if not product.get("is_active", True):
        raise ProductUnavailableError(product["name"])
    return product


def _check_stock(product: dict, quantity: int) -> None:
    if product["stock_quantity"] < quantity:
        raise InsufficientStockError(product["name"], product["stock_quantity"], quantity)


def _cart(ctx: AppContext, user: dict) -> dict:
    cart = ctx.db["cart"].find_one({"user_id": user["_id"]})
    if cart:
        return cart
    doc = Cart(user_id=user["_id"]).model_dump()
    try:
        doc["_id"] = ctx.db["cart"].insert_one(doc).inserted_id
        return doc
    except DuplicateKeyError:
        return ctx.db["cart"].find_one({"user_id": user["_id"]})


def cart_view(ctx: AppContext, user: dict) -> Dict[str, Any]:
    cart = _cart(ctx, user)
    items = cart.get("items", [])
    products = {
        p["_id"]: p for p in ctx.db["product"].find({"_id": {"$in": [i["product_id"] for i in items]}})
    }
    lines: List[Dict[str, Any]] = []
    for item in items:
        product = products.get(item["product_id"])
        line = serialize(item)
        line["line_total"] = round(item["quantity"] * item["unit_price"], 2)
        line["product"] = (
            {
                "id": str(product["_id"]),
                "name": product["name"],
                "slug": product["slug"],
                "price": product["price"],
                "images": product.get("images", []),
                "stock_quantity": product["stock_quantity"],
                "is_active": product.get("is_active", True),
            }
            if product
            else None
        )
        lines.append(line)
    return {
        "id": str(cart["_id"]),
        "items": lines,
        "item_count": sum(item["quantity"] for item in items),
        "total": round(sum(line["line_total"] for line in lines), 2),
    }


# Cart
@router.get("/cart")
def get_cart(user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return cart_view(ctx, user)


@router.post("/cart/items", status_code=201)
def add_to_cart(body: CartItemAdd, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    product = _sellable_product(ctx, body.product_id)
    cart = _cart(ctx, user)
    existing = next((i for i in cart.get("items", []) if i["product_id"] == product["_id"]), None)

    if existing:
        quantity = existing["quantity"] + body.quantity
        _check_stock(product, quantity)
        ctx.db["cart"].update_one(
            {"_id": cart["_id"], "items.id": existing["id"]},
            {"$set": {"items.$.quantity": quantity, "updated_at": utc_now()}},
        )
    else:
        _check_stock(product, body.quantity)
        item = CartItem(product_id=product["_id"], quantity=body.quantity, unit_price=product["price"])
        ctx.db["cart"].update_one(
            {"_id": cart["_id"]},
            {"$push": {"items": item.model_dump()}, "$set": {"updated_at": utc_now()}},
        )
    return cart_view(ctx, user)


@router.put("/cart/items/{item_id}")
def update_cart_item(
    item_id: str, body: CartItemUpdate, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    item_oid = object_id(item_id, "Cart item")
    cart = ctx.db["cart"].find_one({"user_id": user["_id"], "items.id": item_oid})
    if not cart:
        raise NotFoundError("Cart item")
    item = next(i for i in cart["items"] if i["id"] == item_oid)
    product = _sellable_product(ctx, item["product_id"])
    _check_stock(product, body.quantity)
    ctx.db["cart"].update_one(
        {"_id": cart["_id"], "items.id": item_oid},
        {"$set": {"items.$.quantity": body.quantity, "updated_at": utc_now()}},
    )
    return cart_view(ctx, user)


@router.delete("/cart/items/{item_id}")
def remove_cart_item(item_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    item_oid = object_id(item_id, "Cart item")
    result = ctx.db["cart"].update_one(
        {"user_id": user["_id"], "items.id": item_oid},
        {"$pull": {"items": {"id": item_oid}}, "$set": {"updated_at": utc_now()}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Cart item")
    return cart_view(ctx, user)


@router.delete("/cart")
def clear_cart(user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    ctx.db["cart"].update_one({"user_id": user["_id"]}, {"$set": {"items": [], "updated_at": utc_now()}})
    return {"message": "Cart cleared"}


# Wishlist
@router.get("/wishlist")
def get_wishlist(user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    entries = list(ctx.db["wishlist"].find({"user_id": user["_id"]}).sort([("created_at", -1)]))
    products = {
        p["_id"]: p for p in ctx.db["product"].find({"_id": {"$in": [e["product_id"] for e in entries]}})
    }
    items = []
    for entry in entries:
        row = serialize(entry)
        row["product"] = serialize(products.get(entry["product_id"]))
        items.append(row)
    return {"items": items}


@router.post("/wishlist/items", status_code=201)
def add_to_wishlist(body: WishlistAdd, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    product = ctx.db["product"].find_one({"_id": object_id(body.product_id, "Product")})
    if not product:
        raise NotFoundError("Product")
    if ctx.db["wishlist"].find_one({"user_id": user["_id"], "product_id": product["_id"]}):
        raise ConflictError("Product already in wishlist")
    doc = Wishlist(user_id=user["_id"], product_id=product["_id"]).model_dump()
    try:
        doc["_id"] = ctx.db["wishlist"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise ConflictError("Product already in wishlist")
    return serialize(doc)


@router.delete("/wishlist/items/{entry_id}")
def remove_from_wishlist(entry_id: str, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    result = ctx.db["wishlist"].delete_one(owned(user, entry_id, "Wishlist item"))
    if result.deleted_count == 0:
        raise NotFoundError("Wishlist item")
    return {"message": "Removed from wishlist"}
