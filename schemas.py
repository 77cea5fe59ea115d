"""
Database Schemas

MongoDB collection schemas defined as Pydantic models.
Each Pydantic model represents a collection in the database.
Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Livestock -> "livestock" collection
- Order -> "order" collection
- AdminNotification -> "admin_notification" collection
- PaymentProof -> "payment_proof" collection
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# -----------------------------
# ENUMS
# -----------------------------
class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class LivestockStatus(str, Enum):
    AVAILABLE = "Available"
    SOLD = "Sold"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SOLD = "Sold"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    PAYMENT_REJECTED = "Payment Rejected"


# -----------------------------
# USER STATE (embedded in User)
# -----------------------------
class CartItem(BaseModel):
    """Snapshot of a livestock listing taken when it was added to the cart."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="Livestock id")
    name: str
    price: float
    breed: Optional[str] = None
    type: Optional[str] = None
    selected: bool = True


class Address(BaseModel):
    label: str = ""
    name: str
    line1: str
    line2: str = ""
    city: str
    state: str
    pincode: str
    phone: str


class Notification(BaseModel):
    id: str
    title: str
    message: str
    icon: Optional[str] = None
    color: Optional[str] = None
    timestamp: int = Field(..., description="Epoch milliseconds")
    seen: bool = False


# -----------------------------
# USERS
# -----------------------------
class User(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password: str = Field(..., description="bcrypt hash")
    role: UserRole = UserRole.USER
    cart: List[CartItem] = Field(default_factory=list)
    wishlist: List[str] = Field(default_factory=list, description="Livestock ids")
    addresses: List[Address] = Field(default_factory=list)
    notifications: List[Notification] = Field(default_factory=list)


# -----------------------------
# LIVESTOCK
# -----------------------------
class LivestockImage(BaseModel):
    data: bytes
    content_type: str


class Livestock(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., description="Listing name")
    type: str = Field(..., description="Goat or Sheep")
    breed: str = Field("", description="Breed")
    age: str = Field("", description="Free-form age, e.g. '8 months'")
    weight: str = Field("N/A", description="Free-form weight, e.g. '32 kg'")
    price: float = Field(..., ge=0, description="Price in rupees")
    images: List[LivestockImage] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    status: LivestockStatus = LivestockStatus.AVAILABLE


# -----------------------------
# ORDERS
# -----------------------------
class OrderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="Livestock id")
    name: str = ""
    price: float = 0
    breed: Optional[str] = None
    type: Optional[str] = None
    weight: Optional[str] = None


class PaymentProofImage(BaseModel):
    data: bytes
    content_type: str
    sha256: str


class Order(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    customer: str
    user_id: str
    date: str
    items: List[OrderItem]
    address: Address
    total: float = Field(ge=0)
    status: OrderStatus = OrderStatus.PENDING
    payment_proof: Optional[PaymentProofImage] = None
    rejection_reason: str = ""
    cancellation_reason: str = ""


# -----------------------------
# ADMIN NOTIFICATIONS
# -----------------------------
class AdminNotification(BaseModel):
    title: str
    message: str
    kind: str = Field(..., description="new_order, proof_reuploaded, order_expired, ...")
    order_id: Optional[str] = None
    seen: bool = False


# -----------------------------
# PAYMENT PROOF HASHES
# -----------------------------
class PaymentProof(BaseModel):
    hash: str = Field(..., description="sha256 of the uploaded proof image")
    order_id: str
    user_id: str


# -----------------------------
# REQUEST BODIES
# -----------------------------
class RegisterIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserStateIn(BaseModel):
    cart: Optional[List[CartItem]] = None
    wishlist: Optional[List[str]] = None
    addresses: Optional[List[Address]] = None
    notifications: Optional[List[Notification]] = None


class OrderStatusIn(BaseModel):
    status: OrderStatus


class RejectIn(BaseModel):
    reason: Optional[str] = None


class PaymentCreateIn(BaseModel):
    amount: float = Field(..., gt=0)


class CurrentUser(BaseModel):
    id: str
    email: str
    name: str
