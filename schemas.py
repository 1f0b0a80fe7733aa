"""
Schemas for the storefront gateway

Each model mirrors one backend entity or request body. The backend speaks
camelCase JSON with Mongo ``_id`` keys; models expose snake_case attributes
and serialize back to the wire names. Unknown fields are kept so that a
re-serialized document never loses backend data.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

PHONE_PATTERN = r"^\+?[\d\s-]{10,}$"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Envelope(BaseModel):
    """The ``{ success, data, message }`` wrapper every backend response uses."""
    model_config = ConfigDict(extra="allow")

    success: bool = False
    data: Any = None
    message: Optional[str] = None


# ----------------------- Catalog -----------------------
class AttributeOption(ApiModel):
    value: str
    price_modifier: float = 0


class ProductAttributes(ApiModel):
    color: List[AttributeOption] = []
    size: List[AttributeOption] = []
    weight: List[AttributeOption] = []


class Category(ApiModel):
    id: str = Field(..., alias="_id")
    name: str
    slug: str
    description: Optional[str] = None
    parent_category: Optional[Union[str, Dict[str, Any]]] = None
    is_active: bool = True


class SellerRef(ApiModel):
    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    shop_name: Optional[str] = None
    email: Optional[str] = None


class Product(ApiModel):
    id: str = Field(..., alias="_id")
    title: str
    slug: str
    description: str = ""
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[Union[str, Category]] = None
    seller_id: Optional[Union[str, SellerRef]] = None
    brand: Optional[str] = None
    images: List[str] = []
    stock: int = 0
    attributes: Optional[ProductAttributes] = None
    rating_avg: float = 0
    rating_count: int = 0
    is_active: bool = True


class Pagination(BaseModel):
    page: int = 1
    limit: int = 10
    total: int = 0
    pages: int = 0


# ----------------------- Cart -----------------------
class CartProduct(ApiModel):
    id: str = Field(..., alias="_id")
    title: str
    slug: str
    price: float
    discount_price: Optional[float] = None
    images: List[str]
    stock: int


class CartItem(ApiModel):
    product_id: CartProduct
    quantity: int = Field(..., ge=1)
    price_at_time: float


class Cart(ApiModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: Optional[str] = None
    items: List[CartItem] = []


class CouponApplication(ApiModel):
    code: str
    discount_type: Literal["percentage", "fixed"]
    discount_value: float
    discount_amount: float
    final_amount: float


class CartTotals(BaseModel):
    subtotal: float
    shipping: float
    discount: float = 0
    total: float


# ----------------------- Coupons -----------------------
class Coupon(ApiModel):
    id: Optional[str] = Field(None, alias="_id")
    code: str
    discount_type: Literal["percentage", "fixed"]
    discount_value: float = Field(..., ge=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    max_discount_amount: Optional[float] = Field(None, ge=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True
    usage_limit: Optional[int] = Field(None, ge=1)
    usage_count: int = 0

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


# ----------------------- Addresses -----------------------
class Address(ApiModel):
    id: str = Field(..., alias="_id")
    full_name: str
    phone: str
    country: str
    state: str
    city: str
    street: str
    postal_code: str
    is_default: bool = False


# ----------------------- Orders -----------------------
class OrderItem(ApiModel):
    product_id: Union[str, Dict[str, Any]]
    title: str
    quantity: int
    price: float


class ShippingAddress(ApiModel):
    full_name: str
    phone: str
    country: str = ""
    state: str = ""
    city: str = ""
    street: str = ""
    postal_code: str = ""


class DeliveryPersonnel(ApiModel):
    name: str
    phone: str
    vehicle_number: Optional[str] = None


class GPSLocation(ApiModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timestamp: Optional[datetime] = None


class Order(ApiModel):
    id: str = Field(..., alias="_id")
    user_id: Optional[Union[str, Dict[str, Any]]] = None
    order_items: List[OrderItem] = []
    total_amount: float = 0
    payment_method: Optional[str] = None
    payment_status: str = "pending"
    order_status: str = "placed"
    shipping_address: Optional[ShippingAddress] = None
    delivery_personnel: Optional[DeliveryPersonnel] = None
    current_location: Optional[GPSLocation] = None
    delivery_date: Optional[datetime] = None
    delivery_time_slot: Optional[Literal["morning", "afternoon", "evening"]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ----------------------- People -----------------------
class User(ApiModel):
    id: str = Field(..., alias="_id")
    name: str
    email: str
    role: str = "customer"
    phone: Optional[str] = None
    shop_name: Optional[str] = None
    business_description: Optional[str] = None
    is_seller_active: Optional[bool] = None
    created_at: Optional[datetime] = None


class Review(ApiModel):
    id: str = Field(..., alias="_id")
    user_id: Optional[Union[str, Dict[str, Any]]] = None
    product_id: Optional[Union[str, Dict[str, Any]]] = None
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    created_at: Optional[datetime] = None


class Message(ApiModel):
    id: str = Field(..., alias="_id")
    sender_id: Optional[Union[str, Dict[str, Any]]] = None
    receiver_id: Optional[Union[str, Dict[str, Any]]] = None
    subject: str = ""
    message: str = ""
    is_read: bool = False


class Notification(ApiModel):
    id: str = Field(..., alias="_id")
    user_id: Optional[str] = None
    title: str
    message: str
    type: str = "info"
    is_read: bool = False
    link: Optional[str] = None
    related_id: Optional[str] = None
    created_at: Optional[datetime] = None


# ----------------------- Request bodies -----------------------
class LoginBody(BaseModel):
    email: EmailStr
    password: str


class RegisterBody(ApiModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class ProfileBody(ApiModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class BecomeSellerBody(ApiModel):
    shop_name: str = Field(..., min_length=3)
    business_description: Optional[str] = Field(None, max_length=500)


class SellerSettingsBody(ApiModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    shop_name: Optional[str] = Field(None, min_length=3)
    business_description: Optional[str] = Field(None, max_length=500)


class UserCreateBody(ApiModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Literal["customer", "seller", "admin", "superadmin"] = "customer"
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    shop_name: Optional[str] = Field(None, min_length=3)
    business_description: Optional[str] = Field(None, max_length=500)


class UserUpdateBody(ApiModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    role: Optional[Literal["customer", "seller", "admin", "superadmin"]] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    shop_name: Optional[str] = Field(None, min_length=3)
    business_description: Optional[str] = Field(None, max_length=500)


class AddressBody(ApiModel):
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    country: str = "Nepal"
    state: str
    city: str
    street: str
    postal_code: str
    is_default: bool = False


class ProductBody(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0, allow_inf_nan=False)
    discount_price: Optional[float] = Field(None, ge=0)
    category_id: str
    brand: Optional[str] = None
    images: List[str] = []
    stock: int = Field(..., ge=0, strict=True)
    attributes: Optional[ProductAttributes] = None


class ProductUpdateBody(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    discount_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    brand: Optional[str] = None
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0, strict=True)
    attributes: Optional[ProductAttributes] = None
    is_active: Optional[bool] = None


class CouponBody(ApiModel):
    code: str = Field(..., min_length=1)
    discount_type: Literal["percentage", "fixed"]
    discount_value: float = Field(..., ge=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    max_discount_amount: Optional[float] = Field(None, ge=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True
    usage_limit: Optional[int] = Field(None, ge=1)

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class CouponCodeBody(BaseModel):
    code: str = Field(..., min_length=1)


class ReviewBody(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class CartItemBody(ApiModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class QuantityBody(BaseModel):
    quantity: int


class CheckoutBody(ApiModel):
    shipping_address_id: Optional[str] = None
    payment_method: Literal["cod", "esewa"] = "cod"
    delivery_date: Optional[str] = None
    delivery_time_slot: Literal["morning", "afternoon", "evening"] = "morning"
    notes: Optional[str] = None


class OrderStatusBody(ApiModel):
    order_status: Optional[Literal["placed", "confirmed", "shipped", "delivered", "cancelled"]] = None
    payment_status: Optional[Literal["pending", "paid", "failed"]] = None


class TrackingBody(ApiModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    delivery_personnel: Optional[DeliveryPersonnel] = None


class MessageBody(ApiModel):
    receiver_id: str
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    product_id: Optional[str] = None


# ----------------------- Push events -----------------------
class StatusUpdateEvent(ApiModel):
    order_id: str
    status: Optional[str] = None
    order_status: Optional[str] = None
    payment_status: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def new_status(self) -> Optional[str]:
        return self.order_status or self.status


class OrderUpdateEvent(ApiModel):
    order_id: str
    message: Optional[str] = None
    order_data: Dict[str, Any] = {}


class TrackingUpdateEvent(ApiModel):
    order_id: str
    current_location: Optional[GPSLocation] = None
    delivery_personnel: Optional[DeliveryPersonnel] = None


class NotificationEvent(ApiModel):
    id: Optional[str] = None
    title: str
    message: str
    type: str = "info"
    is_read: bool = False
    related_id: Optional[str] = None
    created_at: Optional[datetime] = None
