"""
Database Schemas for the hardware store

Each Pydantic model represents a MongoDB collection.
Collection name is the snake_case of the class name.
Cart and order line items are embedded in their parent document.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from .database import utc_now


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


CANCELLABLE_ORDER_STATUSES = (OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ServiceStatus(str, Enum):
    REQUESTED = "requested"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BILLED = "billed"
    CANCELLED = "cancelled"


TERMINAL_SERVICE_STATUSES = (ServiceStatus.BILLED.value, ServiceStatus.CANCELLED.value)


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, use_enum_values=True)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class User(Document):
    email: str
    password_hash: str
    full_name: str
    phone: Optional[str] = None
    role: Role = Role.CUSTOMER
    is_active: bool = True
    reset_token: Optional[str] = None
    reset_token_expiry: Optional[datetime] = None


class Address(Document):
    user_id: ObjectId
    label: str
    line: str
    city: str
    country: str
    is_default: bool = False


class Category(Document):
    name: str
    slug: str


class Product(Document):
    sku: str
    name: str
    slug: str
    category_id: ObjectId
    description: str = ""
    price: float = Field(..., ge=0)
    stock_quantity: int = Field(0, ge=0)
    images: List[str] = []
    is_active: bool = True


class CartItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: ObjectId = Field(default_factory=ObjectId)
    product_id: ObjectId
    quantity: int = Field(..., gt=0)
    # price captured when the item was first added
    unit_price: float = Field(..., ge=0)
    added_at: datetime = Field(default_factory=utc_now)


class Cart(Document):
    user_id: ObjectId
    items: List[CartItem] = []


class Wishlist(Document):
    user_id: ObjectId
    product_id: ObjectId


class ShippingAddress(BaseModel):
    label: str = Field(..., min_length=1)
    line: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class ServiceDetails(BaseModel):
    description: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[int] = Field(None, gt=0)
    preferred_time: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None


class ServiceSnapshot(BaseModel):
    type: str = Field(..., min_length=1)
    details: ServiceDetails = ServiceDetails()


class OrderItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: ObjectId = Field(default_factory=ObjectId)
    product_id: ObjectId
    name: str
    sku: str
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


class Order(Document):
    user_id: ObjectId
    total: float
    status: OrderStatus = OrderStatus.PENDING
    address: ShippingAddress
    service_request: Optional[ServiceSnapshot] = None
    items: List[OrderItem]
    placed_at: datetime = Field(default_factory=utc_now)


class Payment(Document):
    order_id: ObjectId
    user_id: ObjectId
    provider: str
    reference: str
    amount: float
    status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None


class Notification(Document):
    user_id: Optional[ObjectId] = None
    channel: NotificationChannel
    subject: Optional[str] = None
    message: str
    status: NotificationStatus = NotificationStatus.PENDING
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


class ServiceRequest(Document):
    user_id: ObjectId
    type: str
    details: ServiceDetails = ServiceDetails()
    location: str
    requested_date: Optional[str] = None
    instructions: str = ""
    status: ServiceStatus = ServiceStatus.REQUESTED
    quote_amount: Optional[float] = None
    assigned_to: Optional[ObjectId] = None
    scheduled_date: Optional[str] = None
    notes: Optional[str] = None
