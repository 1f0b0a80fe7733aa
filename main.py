from datetime import datetime, timezone
from typing import List, Optional

import jwt
import structlog
from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

import config
import order_status
import pricing
from api_client import ApiClient, ApiError, build_session
from formatting import format_percentage, format_phone, normalize_image_url, slugify, truncate
from schemas import (
    Address,
    AddressBody,
    ApiModel,
    BecomeSellerBody,
    CartItemBody,
    Category,
    CheckoutBody,
    Coupon,
    CouponApplication,
    CouponBody,
    CouponCodeBody,
    LoginBody,
    Message,
    MessageBody,
    Order,
    OrderStatusBody,
    Pagination,
    Product,
    ProductBody,
    ProductUpdateBody,
    ProfileBody,
    QuantityBody,
    RegisterBody,
    Review,
    ReviewBody,
    SellerSettingsBody,
    TrackingBody,
    User,
    UserCreateBody,
    UserUpdateBody,
)
from stores import CartStore, NotificationStore, WishlistStore

config.configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Storefront Gateway")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------- Utils -----------------------
SELLER_ROLES = {"seller", "superadmin"}
ADMIN_ROLES = {"admin", "superadmin"}
DASHBOARD_PREFIXES = ("/admin", "/seller")
PENDING_STATUSES = {"placed", "confirmed"}
MESSAGE_PREVIEW = 50
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

security = HTTPBearer(auto_error=False)
session = build_session()


@app.exception_handler(ApiError)
def api_error_handler(request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(ValidationError)
def backend_shape_handler(request, exc: ValidationError):
    logger.warning("backend_payload_invalid", path=request.url.path, errors=exc.error_count())
    return JSONResponse(status_code=502, content={"detail": "Invalid response from backend"})


def decode_token(token: str) -> dict:
    """Read the backend-issued JWT.

    The signature is checked only when JWT_SECRET is configured; the backend
    verifies every forwarded request regardless.
    """
    try:
        if config.JWT_SECRET:
            return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
        return jwt.decode(token, options={"verify_signature": False, "verify_exp": True})
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_api(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> ApiClient:
    token = credentials.credentials if credentials else None
    return ApiClient(token=token, session=session)


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> dict:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload = decode_token(credentials.credentials)
    user_id = payload.get("userId") or payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return {"id": user_id, "role": payload.get("role", "customer")}


def get_seller(user=Depends(get_current_user)) -> dict:
    if user["role"] not in SELLER_ROLES:
        raise HTTPException(status_code=403, detail="Seller access required")
    return user


def get_admin(user=Depends(get_current_user)) -> dict:
    if user["role"] not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin only")
    return user


def items_of(data, key: str) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key) or []
    return []


def parse_all(model, data, key: str) -> list:
    return [model.model_validate(d) for d in items_of(data, key)]


def present(product: Product) -> Product:
    return product.model_copy(update={"images": [normalize_image_url(u) for u in product.images]})


def parse_products(data) -> List[Product]:
    return [present(p) for p in parse_all(Product, data, "products")]


def store_failed(store) -> HTTPException:
    state = store.state
    return HTTPException(status_code=state["error_status"] or 400, detail=state["error"] or "Request failed")


def summarize_orders(orders: List[Order], limit: int = 5) -> dict:
    recent = []
    for o in orders[:limit]:
        customer = o.user_id.get("name") if isinstance(o.user_id, dict) else None
        first = o.order_items[0].title if o.order_items else None
        recent.append({
            "id": o.id,
            "customer": customer or "Guest",
            "product": first or "Multiple items",
            "amount": o.total_amount,
            "status": o.order_status,
            "date": o.created_at.date().isoformat() if o.created_at else None,
        })
    return {
        "total_revenue": round(sum(o.total_amount for o in orders), 2),
        "total_orders": len(orders),
        "pending_orders": sum(1 for o in orders if o.order_status in PENDING_STATUSES),
        "recent_orders": recent,
    }


# ----------------------- Models -----------------------
class WishlistBody(ApiModel):
    product_id: str


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "Storefront gateway running"}


@app.get("/health")
def health(api: ApiClient = Depends(get_api)):
    reachable = api.ping()
    return {
        "gateway": "✅ Running",
        "backend": "✅ Reachable" if reachable else "❌ Unreachable",
        "backend_url": api.base_url,
    }


# ----------------------- Layout -----------------------
@app.get("/layout")
def layout(path: str = "/"):
    dashboard = path.startswith(DASHBOARD_PREFIXES)
    return {"path": path, "navbar": not dashboard, "footer": not dashboard}


# ----------------------- Auth -----------------------
@app.post("/auth/login")
def login(body: LoginBody, api: ApiClient = Depends(get_api)):
    data = api.auth.login(body.email, body.password)
    return {"token": data["token"], "user": User.model_validate(data["user"])}


@app.post("/auth/register", status_code=201)
def register(body: RegisterBody, api: ApiClient = Depends(get_api)):
    data = api.auth.register(body.to_wire())
    if isinstance(data, dict) and "user" in data:
        return {"token": data.get("token"), "user": User.model_validate(data["user"])}
    return {"token": None, "user": User.model_validate(data)}


# ----------------------- Storefront -----------------------
@app.get("/home")
def home(api: ApiClient = Depends(get_api)):
    products = api.products.list(limit=8, sort="-createdAt")
    categories = api.categories.list()
    return {
        "featured": parse_products(products),
        "categories": parse_all(Category, categories, "categories"),
    }


@app.get("/products")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    category: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    search: Optional[str] = None,
    sort: Optional[str] = None,
    api: ApiClient = Depends(get_api),
):
    data = api.products.list(
        page=page, limit=limit, category=category, brand=brand,
        min_price=min_price, max_price=max_price, search=search, sort=sort,
    )
    pagination = data.get("pagination") if isinstance(data, dict) else None
    return {
        "products": parse_products(data),
        "pagination": Pagination.model_validate(pagination or {"page": page, "limit": limit}),
    }


@app.get("/search")
def search(q: str = Query(..., min_length=1), page: int = Query(1, ge=1), api: ApiClient = Depends(get_api)):
    data = api.products.list(search=q, page=page)
    return {"query": q, "products": parse_products(data)}


@app.get("/products/{slug}")
def product_detail(
    slug: str,
    color: Optional[str] = None,
    size: Optional[str] = None,
    weight: Optional[str] = None,
    api: ApiClient = Depends(get_api),
):
    product = present(Product.model_validate(api.products.get(slug)))
    try:
        reviews = parse_all(Review, api.reviews.for_product(product.id), "reviews")
    except ApiError as e:
        logger.warning("reviews_unavailable", product=product.id, error=e.message)
        reviews = []
    selections = {"color": color, "size": size, "weight": weight}
    base = pricing.base_price(product)
    return {
        "product": product,
        "reviews": reviews,
        "price": pricing.final_price(product, selections),
        "discount_label": f"{format_percentage(product.price - base, product.price)} OFF" if base < product.price else None,
        "in_stock": product.stock > 0,
    }


@app.post("/products/{slug}/reviews", status_code=201)
def create_review(slug: str, body: ReviewBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    product = Product.model_validate(api.products.get(slug))
    data = api.reviews.create(product.id, body.rating, body.comment)
    return Review.model_validate(data)


@app.get("/categories")
def list_categories(api: ApiClient = Depends(get_api)):
    return {"categories": parse_all(Category, api.categories.list(), "categories")}


@app.get("/categories/{slug}")
def category_detail(slug: str, page: int = Query(1, ge=1), api: ApiClient = Depends(get_api)):
    data = api.categories.get(slug)
    category = Category.model_validate(data["category"] if "category" in data else data)
    products = api.products.list(category=category.id, page=page)
    return {"category": category, "products": parse_products(products)}


# ----------------------- Cart -----------------------
def cart_view(store: CartStore, applied: Optional[CouponApplication] = None, coupon_error: Optional[str] = None):
    lines = []
    for item in store.items:
        stock = item.product_id.stock
        lines.append({
            "product_id": item.product_id.id,
            "image": normalize_image_url(item.product_id.images[0]) if item.product_id.images else None,
            "quantity": item.quantity,
            "line_total": round(item.price_at_time * item.quantity, 2),
            "can_decrement": item.quantity > 1,
            "can_increment": item.quantity < stock,
            "low_stock": f"Only {stock} left in stock" if stock < 10 else None,
        })
    discount = applied.discount_amount if applied else 0
    return {
        "cart": store.cart,
        "lines": lines,
        "item_count": store.item_count,
        "totals": store.totals(discount),
        "coupon": applied,
        "coupon_error": coupon_error,
    }


def load_cart(api: ApiClient) -> CartStore:
    store = CartStore(api)
    if not store.fetch():
        raise store_failed(store)
    return store


@app.get("/cart")
def get_cart(coupon: Optional[str] = None, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = load_cart(api)
    applied, coupon_error = None, None
    if coupon and store.subtotal > 0:
        try:
            applied = CouponApplication.model_validate(api.coupons.apply(coupon, store.subtotal))
        except ApiError as e:
            coupon_error = e.message
    return cart_view(store, applied, coupon_error)


@app.post("/cart/items")
def add_to_cart(body: CartItemBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = CartStore(api)
    if not store.add_item(body.product_id, body.quantity):
        raise store_failed(store)
    return cart_view(store)


@app.put("/cart/items/{product_id}")
def update_cart_item(product_id: str, body: QuantityBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = load_cart(api)
    item = store.find(product_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not in cart")
    stock = item.product_id.stock
    if stock < 1:
        raise HTTPException(status_code=400, detail="Product is out of stock")
    if pricing.clamp_quantity(body.quantity, stock) != body.quantity:
        raise HTTPException(status_code=400, detail=f"Quantity must be between 1 and {stock}")
    if body.quantity != item.quantity and not store.update_quantity(product_id, body.quantity):
        raise store_failed(store)
    return cart_view(store)


@app.delete("/cart/items/{product_id}")
def remove_cart_item(product_id: str, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = CartStore(api)
    if not store.remove_item(product_id):
        raise store_failed(store)
    return cart_view(store)


@app.delete("/cart")
def clear_cart(user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = CartStore(api)
    if not store.clear():
        raise store_failed(store)
    return cart_view(store)


@app.post("/cart/coupon")
def apply_coupon(body: CouponCodeBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    code = body.code.strip()
    if not code:
        raise HTTPException(status_code=400, detail="Please enter a coupon code")
    store = load_cart(api)
    if store.subtotal <= 0:
        raise HTTPException(status_code=400, detail="Cart is empty")
    applied = CouponApplication.model_validate(api.coupons.apply(code, store.subtotal))
    return cart_view(store, applied)


# ----------------------- Checkout -----------------------
def sorted_addresses(api: ApiClient) -> List[Address]:
    addresses = parse_all(Address, api.addresses.list(), "addresses")
    return sorted(addresses, key=lambda a: not a.is_default)


@app.get("/checkout")
def checkout_summary(user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = load_cart(api)
    addresses = sorted_addresses(api)
    return {
        "cart": store.cart,
        "totals": store.totals(),
        "addresses": addresses,
        "selected_address_id": addresses[0].id if addresses else None,
    }


@app.post("/checkout", status_code=201)
def place_order(body: CheckoutBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    if not body.shipping_address_id:
        raise HTTPException(status_code=400, detail="Please select a delivery address")
    if not body.delivery_date:
        raise HTTPException(status_code=400, detail="Please select a delivery date")
    payload = {
        "shippingAddressId": body.shipping_address_id,
        "paymentMethod": "cash_on_delivery" if body.payment_method == "cod" else body.payment_method,
        "deliveryDate": body.delivery_date,
        "deliveryTimeSlot": body.delivery_time_slot,
    }
    if body.notes:
        payload["notes"] = body.notes
    try:
        order = Order.model_validate(api.orders.create(payload))
    except ApiError as e:
        if "no longer available" in e.message:
            store = CartStore(api)
            store.fetch()
            raise HTTPException(status_code=409, detail={"message": e.message, "cart": jsonable_encoder(cart_view(store))})
        raise
    logger.info("order_placed", order_id=order.id, payment_method=payload["paymentMethod"])
    notices = ["Your order has been placed successfully!"]
    if body.payment_method == "esewa":
        notices.insert(0, "eSewa Payment Demo: Payment successful!")
    return {"order": order, "notices": notices, "redirect": f"/orders/{order.id}"}


# ----------------------- Orders -----------------------
@app.get("/orders")
def my_orders(user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    orders = parse_all(Order, api.orders.mine(), "orders")
    return {"orders": [{"order": o, "status_label": order_status.label(o.order_status)} for o in orders]}


@app.get("/orders/{order_id}")
def order_detail(order_id: str, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    order = Order.model_validate(api.orders.get(order_id))
    return {
        "order": order,
        "status_label": order_status.label(order.order_status),
        "steps": order_status.progress_steps(order.order_status),
        "can_cancel": order_status.can_cancel(order.order_status),
    }


# ----------------------- Account -----------------------
@app.get("/profile")
def profile(user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    return User.model_validate(api.auth.me())


@app.put("/profile")
def update_profile(body: ProfileBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    return User.model_validate(api.auth.update_me(body.to_wire()))


@app.post("/profile/become-seller")
def become_seller(body: BecomeSellerBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    if user["role"] in SELLER_ROLES:
        raise HTTPException(status_code=400, detail="Already a seller")
    data = api.auth.become_seller(body.to_wire())
    if isinstance(data, dict) and "user" in data:
        return {"token": data.get("token"), "user": User.model_validate(data["user"])}
    return {"token": None, "user": User.model_validate(data)}


@app.get("/addresses")
def list_addresses(user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    return {"addresses": sorted_addresses(api)}


@app.post("/addresses", status_code=201)
def add_address(body: AddressBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    return Address.model_validate(api.addresses.add(body.to_wire()))


@app.put("/addresses/{address_id}")
def update_address(address_id: str, body: AddressBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    return Address.model_validate(api.addresses.update(address_id, body.to_wire()))


@app.delete("/addresses/{address_id}")
def delete_address(address_id: str, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    api.addresses.delete(address_id)
    return {"ok": True}


@app.get("/wishlist")
def get_wishlist(user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = WishlistStore(api)
    if not store.fetch():
        raise store_failed(store)
    return {"items": [present(p) for p in store.items], "count": store.item_count}


@app.post("/wishlist")
def add_to_wishlist(body: WishlistBody, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = WishlistStore(api)
    if not store.add_item(body.product_id):
        raise store_failed(store)
    return {"items": [present(p) for p in store.items], "count": store.item_count}


@app.delete("/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = WishlistStore(api)
    if not store.remove_item(product_id):
        raise store_failed(store)
    return {"items": [present(p) for p in store.items], "count": store.item_count}


# ----------------------- Notifications -----------------------
def notifications_view(store: NotificationStore) -> dict:
    return {"notifications": store.notifications, "unread_count": store.unread_count}


def load_notifications(api: ApiClient, unread_only: bool = False) -> NotificationStore:
    store = NotificationStore(api)
    if not store.fetch(unread_only=unread_only):
        raise store_failed(store)
    return store


@app.get("/notifications")
def list_notifications(unread_only: bool = False, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    return notifications_view(load_notifications(api, unread_only))


@app.put("/notifications/read-all")
def read_all_notifications(user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = NotificationStore(api)
    if not store.mark_all_as_read():
        raise store_failed(store)
    return notifications_view(load_notifications(api))


@app.put("/notifications/{notification_id}/read")
def read_notification(notification_id: str, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = NotificationStore(api)
    if not store.mark_as_read(notification_id):
        raise store_failed(store)
    return notifications_view(load_notifications(api))


@app.delete("/notifications/{notification_id}")
def delete_notification(notification_id: str, user=Depends(get_current_user), api: ApiClient = Depends(get_api)):
    store = NotificationStore(api)
    if not store.delete(notification_id):
        raise store_failed(store)
    return notifications_view(load_notifications(api))


# ----------------------- Seller -----------------------
def seller_products(api: ApiClient, seller_id: str) -> List[Product]:
    return parse_products(api.products.list(seller_id=seller_id, limit=50))


def reviews_for(api: ApiClient, products: List[Product], limit: Optional[int] = None) -> List[Review]:
    reviews = []
    for product in products[:10] if limit else products:
        try:
            reviews.extend(parse_all(Review, api.reviews.for_product(product.id), "reviews"))
        except ApiError as e:
            logger.warning("reviews_unavailable", product=product.id, error=e.message)
    reviews.sort(key=lambda r: r.created_at or EPOCH, reverse=True)
    return reviews[:limit] if limit else reviews


@app.get("/seller/dashboard")
def seller_dashboard(user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    products = seller_products(api, user["id"])
    orders = parse_all(Order, api.orders.seller_orders(), "orders")
    stats = summarize_orders(orders)
    stats["total_products"] = len(products)
    stats["recent_reviews"] = reviews_for(api, products, limit=5)
    return stats


@app.get("/seller/products")
def list_seller_products(user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    return {"products": seller_products(api, user["id"])}


@app.post("/seller/products", status_code=201)
def create_product(body: ProductBody, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    payload = body.to_wire()
    payload["slug"] = slugify(body.title)
    return Product.model_validate(api.products.create(payload))


@app.put("/seller/products/{product_id}")
def update_product(product_id: str, body: ProductUpdateBody, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    payload = body.to_wire()
    if not payload:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return Product.model_validate(api.products.update(product_id, payload))


@app.delete("/seller/products/{product_id}")
def delete_product(product_id: str, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    api.products.delete(product_id)
    return {"ok": True}


@app.post("/seller/uploads")
def upload_images(images: List[UploadFile] = File(...), user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    files = [(f.filename, f.file.read(), f.content_type or "application/octet-stream") for f in images]
    return {"files": api.upload.multiple(files)}


@app.get("/seller/orders")
def list_seller_orders(user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    orders = parse_all(Order, api.orders.seller_orders(), "orders")
    return {
        "orders": [
            {"order": o, "next_status": order_status.next_status(o.order_status), "can_cancel": order_status.can_cancel(o.order_status)}
            for o in orders
        ]
    }


@app.put("/seller/orders/{order_id}/status")
def update_order_status(order_id: str, body: OrderStatusBody, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    if body.order_status is None and body.payment_status is None:
        raise HTTPException(status_code=400, detail="orderStatus or paymentStatus is required")
    data = api.orders.update_status(order_id, body.order_status, body.payment_status)
    logger.info("order_status_updated", order_id=order_id, order_status=body.order_status, payment_status=body.payment_status)
    return Order.model_validate(data)


@app.put("/seller/orders/{order_id}/tracking")
def update_tracking(order_id: str, body: TrackingBody, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    data = api.orders.update_tracking(order_id, body.to_wire())
    return Order.model_validate(data)


@app.get("/seller/reviews")
def list_seller_reviews(user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    reviews = reviews_for(api, seller_products(api, user["id"]))
    average = round(sum(r.rating for r in reviews) / len(reviews), 1) if reviews else 0
    return {"reviews": reviews, "count": len(reviews), "average_rating": average}


@app.patch("/seller/settings")
def update_seller_settings(body: SellerSettingsBody, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    payload = body.to_wire()
    if not payload:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return User.model_validate(api.auth.update_me(payload))


@app.get("/seller/messages")
def list_messages(box: str = Query("inbox", pattern="^(inbox|sent)$"), user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    data = api.messages.inbox() if box == "inbox" else api.messages.sent()
    messages = parse_all(Message, data, "messages")
    return {
        "messages": [{"message": m, "preview": truncate(m.message, MESSAGE_PREVIEW)} for m in messages],
        "unread": sum(1 for m in messages if not m.is_read),
    }


@app.post("/seller/messages", status_code=201)
def send_message(body: MessageBody, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    return Message.model_validate(api.messages.send(body.to_wire()))


@app.patch("/seller/messages/{message_id}/read")
def mark_message_read(message_id: str, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    api.messages.mark_read(message_id)
    return {"ok": True}


@app.delete("/seller/messages/{message_id}")
def delete_message(message_id: str, user=Depends(get_seller), api: ApiClient = Depends(get_api)):
    api.messages.delete(message_id)
    return {"ok": True}


# ----------------------- Admin -----------------------
@app.get("/admin/dashboard")
def admin_dashboard(user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    products = items_of(api.products.list(limit=50), "products")
    orders = parse_all(Order, api.orders.all_orders(), "orders")
    customers = items_of(api.users.list(role="customer"), "users")
    sellers = items_of(api.users.list(role="seller"), "users")
    stats = summarize_orders(orders)
    stats.update({
        "total_products": len(products),
        "total_customers": len(customers),
        "total_sellers": len(sellers),
    })
    return stats


def coupon_entry(coupon: Coupon, amount: Optional[float] = None) -> dict:
    problem = pricing.coupon_problem(coupon, amount)
    entry = {"coupon": coupon, "state": "usable" if problem is None else problem}
    if amount is not None and problem is None:
        entry["preview_discount"] = pricing.compute_discount(amount, coupon)
    return entry


@app.get("/admin/coupons")
def list_coupons(amount: Optional[float] = Query(None, gt=0), user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    coupons = parse_all(Coupon, api.coupons.list(), "coupons")
    return {"coupons": [coupon_entry(c, amount) for c in coupons]}


@app.post("/admin/coupons", status_code=201)
def create_coupon(body: CouponBody, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    return coupon_entry(Coupon.model_validate(api.coupons.create(body.to_wire())))


@app.put("/admin/coupons/{coupon_id}")
def update_coupon(coupon_id: str, body: CouponBody, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    return coupon_entry(Coupon.model_validate(api.coupons.update(coupon_id, body.to_wire())))


@app.delete("/admin/coupons/{coupon_id}")
def delete_coupon(coupon_id: str, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    api.coupons.delete(coupon_id)
    return {"ok": True}


@app.get("/admin/customers")
def list_customers(user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    customers = parse_all(User, api.users.list(role="customer"), "users")
    return {"customers": customers, "count": len(customers)}


def list_users(api: ApiClient, role: Optional[str] = None, page: int = 1, limit: int = 20,
               search: Optional[str] = None) -> dict:
    data = api.users.list(role=role, page=page, limit=limit, search=search)
    pagination = data.get("pagination") if isinstance(data, dict) else None
    return {
        "users": parse_all(User, data, "users"),
        "pagination": Pagination.model_validate(pagination or {"page": page, "limit": limit}),
    }


@app.get("/admin/users")
def admin_users(
    role: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    user=Depends(get_admin),
    api: ApiClient = Depends(get_api),
):
    return list_users(api, role, page, limit, search)


@app.post("/admin/users", status_code=201)
def create_user(body: UserCreateBody, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    data = api.users.create(body.to_wire())
    created = User.model_validate(data["user"] if isinstance(data, dict) and "user" in data else data)
    logger.info("user_created", user_id=created.id, role=created.role)
    return created


@app.get("/admin/users/{user_id}")
def admin_user_detail(user_id: str, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    return User.model_validate(api.users.get(user_id))


@app.patch("/admin/users/{user_id}")
def update_user(user_id: str, body: UserUpdateBody, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    payload = body.to_wire()
    if not payload:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return User.model_validate(api.users.update(user_id, payload))


@app.delete("/admin/users/{user_id}")
def delete_user(user_id: str, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    api.users.delete(user_id)
    logger.info("user_deleted", user_id=user_id)
    return {"ok": True}


@app.get("/admin/sellers")
def admin_sellers(
    page: int = Query(1, ge=1),
    search: Optional[str] = None,
    user=Depends(get_admin),
    api: ApiClient = Depends(get_api),
):
    listing = list_users(api, "seller", page, 20, search)
    sellers = [
        {"seller": s, "phone": format_phone(s.phone) if s.phone else None, "active": s.is_seller_active is not False}
        for s in listing["users"]
    ]
    return {"sellers": sellers, "pagination": listing["pagination"]}


@app.patch("/admin/sellers/{user_id}/toggle")
def toggle_seller(user_id: str, user=Depends(get_admin), api: ApiClient = Depends(get_api)):
    seller = User.model_validate(api.users.toggle_seller(user_id))
    logger.info("seller_toggled", user_id=seller.id, active=seller.is_seller_active)
    return seller


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
