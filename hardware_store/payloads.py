"""Request bodies for the HTTP API."""
from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from .schemas import (
    OrderStatus,
    Role,
    ServiceDetails,
    ServiceSnapshot,
    ShippingAddress,
    ServiceStatus,
)

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "ProfileUpdate",
    "AddressCreate",
    "CartItemAdd",
    "CartItemUpdate",
    "WishlistAdd",
    "ShippingAddress",
    "ServiceDetails",
    "ServiceSnapshot",
    "PlaceOrderRequest",
    "PaymentInitiateRequest",
    "ServiceRequestCreate",
    "AcceptQuoteRequest",
    "CategoryCreate",
    "CategoryUpdate",
    "ProductCreate",
    "ProductUpdate",
    "StockUpdate",
    "OrderStatusUpdate",
    "ServiceStatusUpdate",
    "ServiceQuoteCreate",
    "UserRoleUpdate",
    "UserStatusUpdate",
]


# Auth
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


# Profile
class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None


class AddressCreate(ShippingAddress):
    is_default: bool = False


# Cart / wishlist
class CartItemAdd(BaseModel):
    product_id: str
    quantity: int = Field(1, gt=0)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., gt=0)


class WishlistAdd(BaseModel):
    product_id: str


# Checkout / payments
class PlaceOrderRequest(BaseModel):
    address: ShippingAddress
    service_request: Optional[ServiceSnapshot] = None
    payment_method: str = "paystack"


class PaymentInitiateRequest(BaseModel):
    order_id: str
    payment_method: str = "paystack"


# Service requests
class ServiceRequestCreate(BaseModel):
    type: str = Field(..., min_length=1)
    details: ServiceDetails = ServiceDetails()
    location: str = Field(..., min_length=1)
    requested_date: Optional[date] = None
    instructions: str = ""


class AcceptQuoteRequest(BaseModel):
    notes: Optional[str] = None


# Admin
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)


class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    category_id: str
    description: str = ""
    price: float = Field(..., ge=0)
    stock_quantity: int = Field(0, ge=0)
    images: List[str] = []
    is_active: bool = True


class ProductUpdate(BaseModel):
    sku: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    category_id: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    is_active: Optional[bool] = None


class StockUpdate(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=0)
    operation: Literal["add", "subtract", "set"]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class ServiceStatusUpdate(BaseModel):
    status: ServiceStatus
    assigned_to: Optional[str] = None
    scheduled_date: Optional[date] = None
    notes: Optional[str] = None


class ServiceQuoteCreate(BaseModel):
    amount: float = Field(..., gt=0)
    notes: Optional[str] = None


class UserRoleUpdate(BaseModel):
    role: Role


class UserStatusUpdate(BaseModel):
    is_active: bool
