"""
Database Schemas for Sustain Sports

Server-owned models correspond to MongoDB collections. The collection name is the lowercase of the class name.

Example: class Product -> collection "product"

Order, Review and wishlist/cart snapshots are owned by the client and are only
ever serialized to client-side storage.
"""
from enum import Enum
from typing import ClassVar, FrozenSet, List, Optional

from pydantic import AwareDatetime, BaseModel, EmailStr, Field


class OrderStatus(str, Enum):
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class DonationStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    DISAPPROVED = "Disapproved"


# Server-owned collections

class User(BaseModel):
    name: str
    email: EmailStr
    hashed_password: str
    is_admin: bool = False


class Category(BaseModel):
    name: str = Field(..., min_length=1)


class Product(BaseModel):
    user: Optional[str] = Field(None, description="Id of the admin who created the product")
    name: str
    category: str = Field(..., description="Category document id as string")
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    description: str
    full_description: Optional[str] = None
    image: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    eco_tag: Optional[str] = None
    in_stock: bool = True
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    features: List[str] = Field(default_factory=list)


class Donation(BaseModel):
    user: str
    item_name: str
    item_description: str
    status: DonationStatus = DonationStatus.PENDING
    promo_code: Optional[str] = None


# Request payloads

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProductUpdate(BaseModel):
    """Partial product update.

    Only fields present in the request body are applied, so falsy values such
    as 0, false or an empty list overwrite the stored value.
    """
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    full_description: Optional[str] = None
    image: Optional[str] = None
    images: Optional[List[str]] = None
    eco_tag: Optional[str] = None
    in_stock: Optional[bool] = None
    features: Optional[List[str]] = None

    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"original_price", "full_description", "image", "eco_tag"})

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class DonationIn(BaseModel):
    item_name: str = Field(..., min_length=1)
    item_description: str = Field(..., min_length=1)


class DonationStatusUpdate(BaseModel):
    status: str


# Client-owned records

class ProductSnapshot(BaseModel):
    """Product fields captured when an item is put in the cart or wishlist."""
    id: str
    name: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = None
    image: Optional[str] = None
    eco_tag: Optional[str] = None


class CartLine(ProductSnapshot):
    quantity: int = Field(1, ge=1)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class ShippingAddress(BaseModel):
    name: str
    address: str
    phone: str = ""


class BillingAddress(BaseModel):
    name: str
    address: str


class Order(BaseModel):
    id: str
    user_email: str
    date: AwareDatetime
    status: OrderStatus = OrderStatus.PROCESSING
    items: List[CartLine]
    subtotal: float
    discount: float = 0.0
    tax: float
    shipping: float = 0.0
    total: float
    shipping_address: ShippingAddress
    billing_address: BillingAddress
    shipping_method: str = "Free Shipping"
    payment_method: str
    tracking_number: Optional[str] = None
    cancellation_reason: Optional[str] = None


class Review(BaseModel):
    id: int
    product_id: str
    name: str
    rating: int = Field(..., ge=1, le=5)
    comment: str
    date: AwareDatetime
    verified: bool = True
    user_id: Optional[str] = None
