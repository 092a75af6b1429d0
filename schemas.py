"""
Database Schemas for the shawl & scarf storefront

Each persisted Pydantic model corresponds to a MongoDB collection. Collection
name is the lowercase class name ("user", "product", "order"). References to
other documents are stored as string ids.

The request and query models further down validate input at the API boundary.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

Category = Literal["شال", "روسری", "سایر"]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
PaymentMethod = Literal["zarinpal", "cash_on_delivery"]

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
CANCELLABLE_STATUSES = ("pending", "confirmed", "processing")


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "ایران"


class User(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=5)
    password_hash: str = Field(..., description="BCrypt hash of the password")
    address: Address = Field(default_factory=Address)
    is_admin: bool = False
    is_active: bool = True
    order_history: List[str] = Field(default_factory=list, description="Order ids")
    favorites: List[str] = Field(default_factory=list, description="Product ids")


class ProductImage(BaseModel):
    url: str
    alt: Optional[str] = None
    is_primary: bool = False


class ProductColor(BaseModel):
    name: str
    hex: Optional[str] = None
    stock: int = Field(0, ge=0)


class ProductSize(BaseModel):
    name: str
    dimensions: Optional[str] = None
    stock: int = Field(0, ge=0)


class Review(BaseModel):
    user_id: str
    user_name: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    category: Category
    subcategory: Optional[str] = None
    images: List[ProductImage] = Field(default_factory=list)
    colors: List[ProductColor] = Field(default_factory=list)
    sizes: List[ProductSize] = Field(default_factory=list)
    material: Optional[str] = None
    brand: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0)
    is_active: bool = True
    is_featured: bool = False
    reviews: List[Review] = Field(default_factory=list)
    average_rating: float = 0
    total_reviews: int = 0
    sold_count: int = 0
    view_count: int = 0


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    color: Optional[str] = None
    size: Optional[str] = None
    image: Optional[str] = None


class ShippingAddress(BaseModel):
    first_name: str
    last_name: str
    phone: str
    street: str
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "ایران"


class PaymentDetails(BaseModel):
    transaction_id: Optional[str] = None
    authority: Optional[str] = None
    ref_id: Optional[str] = None
    payment_date: Optional[datetime] = None


class StatusEntry(BaseModel):
    status: OrderStatus
    date: datetime
    note: Optional[str] = None


class Order(BaseModel):
    user_id: str
    order_number: str
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    discount_amount: float = 0
    shipping_cost: float = 0
    final_amount: float
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = "zarinpal"
    payment_status: PaymentStatus = "pending"
    payment_details: PaymentDetails = Field(default_factory=PaymentDetails)
    order_status: OrderStatus = "pending"
    status_history: List[StatusEntry] = Field(default_factory=list)
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    notes: Optional[str] = None


# Request bodies
class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=5)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class OrderItemIn(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    color: Optional[str] = None
    size: Optional[str] = None
    name: Optional[str] = Field(None, description="Display name, only used in error messages")


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = "zarinpal"
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    cancel_reason: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    note: Optional[str] = None


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    category: Category
    subcategory: Optional[str] = None
    images: List[ProductImage] = Field(default_factory=list)
    colors: List[ProductColor] = Field(default_factory=list)
    sizes: List[ProductSize] = Field(default_factory=list)
    material: Optional[str] = None
    brand: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0)
    is_active: bool = True
    is_featured: bool = False


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    category: Optional[Category] = None
    subcategory: Optional[str] = None
    images: Optional[List[ProductImage]] = None
    colors: Optional[List[ProductColor]] = None
    sizes: Optional[List[ProductSize]] = None
    material: Optional[str] = None
    brand: Optional[str] = None
    tags: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None

    @field_validator(
        "name", "description", "price", "category", "images", "colors", "sizes", "tags",
        "stock", "is_active", "is_featured",
    )
    @classmethod
    def not_null(cls, value):
        # omitted means unchanged; an explicit null would wipe a required field
        if value is None:
            raise ValueError("این فیلد نمی‌تواند خالی باشد")
        return value


# Query string configuration
class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class ProductQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1, le=100)
    category: Optional[Category] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    search: Optional[str] = None
    sort_by: Literal["created_at", "price", "average_rating", "sold_count", "view_count", "name"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    is_featured: Optional[bool] = None


class AdminProductQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    category: Optional[Category] = None
    search: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None


class AdminOrderQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    status: Optional[OrderStatus] = None
