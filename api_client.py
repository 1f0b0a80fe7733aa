"""
Backend API client

Every page of the storefront talks to the backend through this one layer.
Responses use the ``{ success, data, message }`` envelope; any failure,
whether a transport error, a non-2xx status or ``success: false``, is
raised as ``ApiError`` carrying the status the caller should surface.
"""
from typing import Any, Dict, Iterable, Optional, Tuple

import requests
import structlog
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

import config
from schemas import Envelope

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def build_session(total: int = config.RETRY_TOTAL, backoff: float = config.RETRY_BACKOFF) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=total,
        connect=total,
        read=total,
        backoff_factor=backoff,
        status_forcelist=(502, 503, 504),
        allowed_methods=frozenset({"GET", "HEAD", "OPTIONS"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _clean(params: Optional[dict]) -> Optional[dict]:
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None and v != ""}


class _Resource:
    def __init__(self, client: "ApiClient"):
        self._c = client


class AuthApi(_Resource):
    def register(self, body: dict):
        return self._c.post("/api/auth/register", json=body)

    def login(self, email: str, password: str):
        return self._c.post("/api/auth/login", json={"email": email, "password": password})

    def me(self):
        return self._c.get("/api/auth/me")

    def update_me(self, body: dict):
        return self._c.patch("/api/auth/me", json=body)

    def change_password(self, current_password: str, new_password: str):
        return self._c.put(
            "/api/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    def become_seller(self, body: dict):
        return self._c.post("/api/auth/become-seller", json=body)


class ProductsApi(_Resource):
    def list(self, page=None, limit=None, category=None, brand=None, min_price=None,
             max_price=None, search=None, sort=None, seller_id=None):
        params = {
            "page": page,
            "limit": limit,
            "category": category,
            "brand": brand,
            "minPrice": min_price,
            "maxPrice": max_price,
            "search": search,
            "sort": sort,
            "sellerId": seller_id,
        }
        return self._c.get("/api/products", params=params)

    def get(self, slug: str):
        return self._c.get(f"/api/products/{slug}")

    def create(self, body: dict):
        return self._c.post("/api/products", json=body)

    def update(self, product_id: str, body: dict):
        return self._c.put(f"/api/products/id/{product_id}", json=body)

    def delete(self, product_id: str):
        return self._c.delete(f"/api/products/id/{product_id}")


class CategoriesApi(_Resource):
    def list(self, page=None, limit=None):
        return self._c.get("/api/categories", params={"page": page, "limit": limit})

    def get(self, slug: str):
        return self._c.get(f"/api/categories/{slug}")


class CartApi(_Resource):
    def get(self):
        return self._c.get("/api/cart")

    def add(self, product_id: str, quantity: int = 1):
        return self._c.post("/api/cart/add", json={"productId": product_id, "quantity": quantity})

    def update(self, product_id: str, quantity: int):
        return self._c.put("/api/cart/update", json={"productId": product_id, "quantity": quantity})

    def remove(self, product_id: str):
        return self._c.delete(f"/api/cart/remove/{product_id}")

    def clear(self):
        return self._c.delete("/api/cart/clear")


class CouponsApi(_Resource):
    def list(self):
        return self._c.get("/api/coupons")

    def create(self, body: dict):
        return self._c.post("/api/coupons", json=body)

    def update(self, coupon_id: str, body: dict):
        return self._c.put(f"/api/coupons/{coupon_id}", json=body)

    def delete(self, coupon_id: str):
        return self._c.delete(f"/api/coupons/{coupon_id}")

    def apply(self, code: str, order_amount: float):
        return self._c.post("/api/coupons/apply", json={"code": code.strip().upper(), "orderAmount": order_amount})


class OrdersApi(_Resource):
    def create(self, body: dict):
        return self._c.post("/api/orders", json=body)

    def mine(self):
        return self._c.get("/api/orders")

    def get(self, order_id: str):
        return self._c.get(f"/api/orders/{order_id}")

    def update_status(self, order_id: str, order_status: Optional[str] = None, payment_status: Optional[str] = None):
        body = _clean({"orderStatus": order_status, "paymentStatus": payment_status})
        return self._c.put(f"/api/orders/{order_id}/status", json=body or {})

    def update_tracking(self, order_id: str, body: dict):
        return self._c.put(f"/api/orders/{order_id}/tracking", json=body)

    def seller_orders(self):
        return self._c.get("/api/orders/seller/my-orders")

    def all_orders(self):
        return self._c.get("/api/orders/admin/all")


class AddressesApi(_Resource):
    def list(self):
        return self._c.get("/api/addresses")

    def add(self, body: dict):
        return self._c.post("/api/addresses", json=body)

    def update(self, address_id: str, body: dict):
        return self._c.put(f"/api/addresses/{address_id}", json=body)

    def delete(self, address_id: str):
        return self._c.delete(f"/api/addresses/{address_id}")


class ReviewsApi(_Resource):
    def for_product(self, product_id: str):
        return self._c.get("/api/reviews", params={"productId": product_id})

    def create(self, product_id: str, rating: int, comment: str):
        return self._c.post("/api/reviews", json={"productId": product_id, "rating": rating, "comment": comment})

    def delete(self, review_id: str):
        return self._c.delete(f"/api/reviews/{review_id}")


class WishlistApi(_Resource):
    def get(self):
        return self._c.get("/api/wishlist")

    def add(self, product_id: str):
        return self._c.post("/api/wishlist/add", json={"productId": product_id})

    def remove(self, product_id: str):
        return self._c.delete(f"/api/wishlist/remove/{product_id}")


class MessagesApi(_Resource):
    def inbox(self):
        return self._c.get("/api/messages/inbox")

    def sent(self):
        return self._c.get("/api/messages/sent")

    def send(self, body: dict):
        return self._c.post("/api/messages", json=body)

    def mark_read(self, message_id: str):
        return self._c.patch(f"/api/messages/{message_id}/read")

    def delete(self, message_id: str):
        return self._c.delete(f"/api/messages/{message_id}")


class UsersApi(_Resource):
    def list(self, role: Optional[str] = None, page=None, limit=None, search=None):
        return self._c.get("/api/users", params={"role": role, "page": page, "limit": limit, "search": search})

    def get(self, user_id: str):
        return self._c.get(f"/api/users/{user_id}")

    def create(self, body: dict):
        return self._c.post("/api/admin/users", json=body)

    def update(self, user_id: str, body: dict):
        return self._c.patch(f"/api/users/{user_id}", json=body)

    def delete(self, user_id: str):
        return self._c.delete(f"/api/users/{user_id}")

    def toggle_seller(self, user_id: str):
        return self._c.patch(f"/api/users/{user_id}/toggle-seller")


class NotificationsApi(_Resource):
    def list(self, unread_only: bool = False, page=None, limit=None) -> Envelope:
        """The unread count rides on the envelope itself, so the whole envelope is returned."""
        params = {"unreadOnly": "true" if unread_only else None, "page": page, "limit": limit}
        return self._c.envelope("GET", "/api/notifications", params=params)

    def mark_read(self, notification_id: str):
        return self._c.put(f"/api/notifications/{notification_id}/read")

    def mark_all_read(self):
        return self._c.put("/api/notifications/read-all")

    def delete(self, notification_id: str):
        return self._c.delete(f"/api/notifications/{notification_id}")


class UploadApi(_Resource):
    def multiple(self, files: Iterable[Tuple[str, bytes, str]]):
        payload = [("images", (name, content, content_type)) for name, content, content_type in files]
        return self._c.post("/api/upload/multiple", files=payload)


class ApiClient:
    def __init__(self, token: Optional[str] = None, base_url: str = config.API_URL,
                 session: Optional[requests.Session] = None, timeout: float = config.REQUEST_TIMEOUT):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.session = session or build_session()
        self.timeout = timeout

        self.auth = AuthApi(self)
        self.products = ProductsApi(self)
        self.categories = CategoriesApi(self)
        self.cart = CartApi(self)
        self.coupons = CouponsApi(self)
        self.orders = OrdersApi(self)
        self.addresses = AddressesApi(self)
        self.reviews = ReviewsApi(self)
        self.wishlist = WishlistApi(self)
        self.messages = MessagesApi(self)
        self.users = UsersApi(self)
        self.notifications = NotificationsApi(self)
        self.upload = UploadApi(self)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def envelope(self, method: str, path: str, params: Optional[dict] = None, **kwargs) -> Envelope:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(
                method, url, params=_clean(params), headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.warning("backend_unreachable", method=method, path=path, error=str(e))
            raise ApiError("Backend unavailable", 503) from e

        try:
            envelope = Envelope.model_validate(r.json())
        except ValueError as e:
            logger.warning("backend_bad_response", method=method, path=path, status=r.status_code)
            raise ApiError("Invalid response from backend", 502) from e

        if r.status_code >= 300 or not envelope.success:
            status = r.status_code if r.status_code >= 400 else 400
            message = envelope.message or "Request failed"
            logger.info("backend_error", method=method, path=path, status=status, message=message)
            raise ApiError(message, status)
        return envelope

    def request(self, method: str, path: str, params: Optional[dict] = None, **kwargs) -> Any:
        return self.envelope(method, path, params=params, **kwargs).data

    def get(self, path: str, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs):
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs):
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs):
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.request("DELETE", path, **kwargs)

    def ping(self) -> bool:
        try:
            self.session.get(f"{self.base_url}/", timeout=self.timeout)
            return True
        except requests.RequestException:
            return False
