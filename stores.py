"""
Client state stores

Each store is an explicit container: read through ``state`` (a snapshot),
write through the store's own methods, observe through ``subscribe``.
Server-backed stores mirror whatever the last API response returned and
never raise API failures to their callers; the failure is logged and kept
in ``state["error"]``.
"""
import json
import os
from datetime import datetime, timedelta, timezone
from collections.abc import MutableMapping
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import structlog
from pydantic import ValidationError

import pricing
from api_client import ApiClient, ApiError
from schemas import Cart, CartItem, CartTotals, Notification, NotificationEvent, Product, User

logger = structlog.get_logger(__name__)

AUTH_KEY = "auth-storage"
GUEST_WISHLIST_KEY = "guest-wishlist"
TEMP_PREFIX = "temp_"
# a pushed notification repeating one already shown within this window is dropped
DUPLICATE_WINDOW = timedelta(seconds=5)

Listener = Callable[[Dict[str, Any]], None]


class FileStorage(MutableMapping):
    """A JSON file presented as a mapping; every write is flushed to disk."""

    def __init__(self, path: str):
        self.path = path
        self._data: Dict[str, Any] = {}
        if os.path.exists(path):
            try:
                with open(path, encoding="utf-8") as f:
                    self._data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("storage_unreadable", path=path, error=str(e))
                self._data = {}

    def _flush(self):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f)

    def __getitem__(self, key):
        return self._data[key]

    def __setitem__(self, key, value):
        self._data[key] = value
        self._flush()

    def __delitem__(self, key):
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


class Store:
    def __init__(self, **initial):
        self._state: Dict[str, Any] = dict(initial)
        self._listeners: List[Listener] = []

    @property
    def state(self) -> Dict[str, Any]:
        return dict(self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes):
        self._state.update(changes)
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)


# ----------------------- Auth -----------------------
class AuthStore(Store):
    def __init__(self, storage: Optional[MutableMapping] = None):
        self.storage = storage if storage is not None else {}
        saved = self.storage.get(AUTH_KEY) or {}
        token = saved.get("token")
        super().__init__(user=saved.get("user"), token=token, is_authenticated=bool(token))

    @property
    def token(self) -> Optional[str]:
        return self._state["token"]

    @property
    def user(self) -> Optional[User]:
        raw = self._state["user"]
        return User.model_validate(raw) if raw else None

    @property
    def is_authenticated(self) -> bool:
        return self._state["is_authenticated"]

    def _persist(self):
        if self._state["token"]:
            self.storage[AUTH_KEY] = {"user": self._state["user"], "token": self._state["token"]}
        elif AUTH_KEY in self.storage:
            del self.storage[AUTH_KEY]

    def set_auth(self, user: Union[User, dict], token: str):
        if isinstance(user, User):
            user = user.model_dump(by_alias=True, mode="json")
        self._set(user=user, token=token, is_authenticated=True)
        self._persist()

    def set_user(self, user: Union[User, dict]):
        if isinstance(user, User):
            user = user.model_dump(by_alias=True, mode="json")
        self._set(user=user)
        self._persist()

    def clear_auth(self):
        self._set(user=None, token=None, is_authenticated=False)
        self._persist()


# ----------------------- Cart -----------------------
def normalize_cart(raw: Optional[dict]) -> Optional[Cart]:
    """Parse a backend cart, dropping items whose product is not populated."""
    if not raw:
        return None
    items = []
    for item in raw.get("items") or []:
        try:
            items.append(CartItem.model_validate(item))
        except ValidationError:
            logger.debug("cart_item_dropped", product=item.get("productId") if isinstance(item, dict) else None)
    return Cart.model_validate({"_id": raw.get("_id"), "userId": raw.get("userId"), "items": items})


class CartStore(Store):
    def __init__(self, api: ApiClient):
        super().__init__(cart=None, loading=False, error=None, error_status=None)
        self.api = api

    @property
    def cart(self) -> Optional[Cart]:
        return self._state["cart"]

    @property
    def items(self) -> List[CartItem]:
        cart = self.cart
        return list(cart.items) if cart else []

    @property
    def item_count(self) -> int:
        return pricing.item_count(self.items)

    @property
    def subtotal(self) -> float:
        return pricing.subtotal_of(self.items)

    @property
    def total(self) -> float:
        return self.totals().total

    def totals(self, discount: float = 0) -> CartTotals:
        return pricing.cart_totals(self.subtotal, discount)

    def find(self, product_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id.id == product_id:
                return item
        return None

    def set_cart(self, raw: Optional[dict]):
        self._set(cart=normalize_cart(raw), error=None, error_status=None)

    def _call(self, action: str, fn, *args) -> bool:
        try:
            data = fn(*args)
        except ApiError as e:
            logger.warning("cart_action_failed", action=action, status=e.status_code, error=e.message)
            self._set(error=e.message, error_status=e.status_code)
            return False
        if action == "clear":
            self._set(cart=None, error=None, error_status=None)
        else:
            self.set_cart(data)
        return True

    def fetch(self) -> bool:
        if not self.api.is_authenticated:
            return False
        self._set(loading=True)
        try:
            return self._call("fetch", self.api.cart.get)
        finally:
            self._set(loading=False)

    def add_item(self, product_id: str, quantity: int = 1) -> bool:
        if not self.api.is_authenticated:
            self._set(error="Please login to add items to cart", error_status=401)
            return False
        return self._call("add", self.api.cart.add, product_id, quantity)

    def update_quantity(self, product_id: str, quantity: int) -> bool:
        if not self.api.is_authenticated:
            return False
        item = self.find(product_id)
        if item is not None:
            if item.product_id.stock < 1:
                self._set(error="Product is out of stock", error_status=400)
                return False
            clamped = pricing.clamp_quantity(quantity, item.product_id.stock)
            if clamped != quantity:
                logger.info("cart_quantity_clamped", product=product_id, requested=quantity, applied=clamped)
            if clamped == item.quantity:
                return False
            quantity = clamped
        elif quantity < 1:
            return False
        return self._call("update", self.api.cart.update, product_id, quantity)

    def remove_item(self, product_id: str) -> bool:
        if not self.api.is_authenticated:
            return False
        return self._call("remove", self.api.cart.remove, product_id)

    def clear(self) -> bool:
        if not self.api.is_authenticated:
            return False
        return self._call("clear", self.api.cart.clear)


# ----------------------- Wishlist -----------------------
def _products(raw: Optional[list]) -> List[Product]:
    products = []
    for p in raw or []:
        try:
            products.append(Product.model_validate(p))
        except ValidationError:
            logger.debug("wishlist_item_dropped", product=p if isinstance(p, str) else None)
    return products


class WishlistStore(Store):
    """Server-backed wishlist for signed-in users, storage-backed for guests."""

    def __init__(self, api: ApiClient, storage: Optional[MutableMapping] = None):
        super().__init__(items=[], loading=False, error=None, error_status=None)
        self.api = api
        self.storage = storage if storage is not None else {}

    @property
    def items(self) -> List[Product]:
        return list(self._state["items"])

    @property
    def item_count(self) -> int:
        return len(self._state["items"])

    def is_in_wishlist(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self._state["items"])

    def _save_guest(self, items: List[Product]):
        self.storage[GUEST_WISHLIST_KEY] = [p.model_dump(by_alias=True, mode="json") for p in items]
        self._set(items=items)

    def _server(self, action: str, fn, *args) -> bool:
        try:
            data = fn(*args)
        except ApiError as e:
            logger.warning("wishlist_action_failed", action=action, status=e.status_code, error=e.message)
            self._set(error=e.message, error_status=e.status_code)
            return False
        self._set(items=_products((data or {}).get("products")), error=None, error_status=None)
        return True

    def fetch(self) -> bool:
        if not self.api.is_authenticated:
            self._set(items=_products(self.storage.get(GUEST_WISHLIST_KEY)))
            return True
        self._set(loading=True)
        try:
            return self._server("fetch", self.api.wishlist.get)
        finally:
            self._set(loading=False)

    def add_item(self, product: Union[Product, str]) -> bool:
        """Add a product; guests must pass the full product so it can be stored."""
        if not self.api.is_authenticated:
            if isinstance(product, str):
                self._set(error="Product details required for guest wishlist", error_status=400)
                return False
            if not self.is_in_wishlist(product.id):
                self._save_guest(self.items + [product])
            return True
        product_id = product if isinstance(product, str) else product.id
        return self._server("add", self.api.wishlist.add, product_id)

    def remove_item(self, product_id: str) -> bool:
        if not self.api.is_authenticated:
            self._save_guest([p for p in self.items if p.id != product_id])
            return True
        return self._server("remove", self.api.wishlist.remove, product_id)

    def clear(self):
        self._set(items=[])
        self.storage.pop(GUEST_WISHLIST_KEY, None)

    def merge_guest_wishlist(self) -> int:
        """Push guest items to the server after login; returns how many were sent."""
        if not self.api.is_authenticated:
            return 0
        guest = _products(self.storage.get(GUEST_WISHLIST_KEY))
        self.fetch()
        if not guest:
            return 0
        sent = 0
        for product in guest:
            if not self.is_in_wishlist(product.id) and self.add_item(product):
                sent += 1
        self.storage.pop(GUEST_WISHLIST_KEY, None)
        return sent


# ----------------------- Notifications -----------------------
def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class NotificationStore(Store):
    """The signed-in user's notifications.

    Pushed notifications that the server has not returned yet carry a
    ``temp_`` id and live only here; a fetch keeps the ones newer than the
    previous fetch so a push arriving mid-request is not lost.
    """

    def __init__(self, api: ApiClient):
        super().__init__(notifications=[], unread_count=0, loading=False, error=None, error_status=None,
                         last_fetch=None)
        self.api = api

    @property
    def notifications(self) -> List[Notification]:
        return list(self._state["notifications"])

    @property
    def unread_count(self) -> int:
        return self._state["unread_count"]

    def _fail(self, action: str, e: ApiError) -> bool:
        logger.warning("notification_action_failed", action=action, status=e.status_code, error=e.message)
        self._set(error=e.message, error_status=e.status_code)
        return False

    def _replace(self, notifications: List[Notification], **changes):
        unread = sum(1 for n in notifications if not n.is_read)
        self._set(notifications=notifications, unread_count=unread, **changes)

    def fetch(self, unread_only: bool = False) -> bool:
        if not self.api.is_authenticated:
            return False
        self._set(loading=True)
        try:
            envelope = self.api.notifications.list(unread_only=unread_only)
        except ApiError as e:
            return self._fail("fetch", e)
        finally:
            self._set(loading=False)

        server = []
        for raw in envelope.data or []:
            try:
                server.append(Notification.model_validate(raw))
            except ValidationError:
                logger.debug("notification_dropped", notification=raw.get("_id") if isinstance(raw, dict) else None)

        since = self._state["last_fetch"]
        pending = [
            n for n in self._state["notifications"]
            if n.id.startswith(TEMP_PREFIX) and (since is None or _aware(n.created_at) > since)
        ]
        merged, seen = [], set()
        for n in pending + server:
            if n.id not in seen:
                seen.add(n.id)
                merged.append(n)

        reported = (envelope.model_extra or {}).get("unreadCount")
        unread = reported if isinstance(reported, int) and reported else sum(1 for n in merged if not n.is_read)
        self._set(notifications=merged, unread_count=unread, error=None, error_status=None,
                  last_fetch=datetime.now(timezone.utc))
        return True

    def mark_as_read(self, notification_id: str) -> bool:
        if not notification_id.startswith(TEMP_PREFIX):
            try:
                self.api.notifications.mark_read(notification_id)
            except ApiError as e:
                return self._fail("mark_read", e)
        updated = [
            n.model_copy(update={"is_read": True}) if n.id == notification_id else n
            for n in self._state["notifications"]
        ]
        self._replace(updated, error=None, error_status=None)
        return True

    def mark_all_as_read(self) -> bool:
        try:
            self.api.notifications.mark_all_read()
        except ApiError as e:
            return self._fail("mark_all_read", e)
        self._replace([n.model_copy(update={"is_read": True}) for n in self._state["notifications"]],
                      error=None, error_status=None)
        return True

    def delete(self, notification_id: str) -> bool:
        if not notification_id.startswith(TEMP_PREFIX):
            try:
                self.api.notifications.delete(notification_id)
            except ApiError as e:
                return self._fail("delete", e)
        self._replace([n for n in self._state["notifications"] if n.id != notification_id],
                      error=None, error_status=None)
        return True

    def is_duplicate(self, event: NotificationEvent) -> bool:
        arrived = _aware(event.created_at)
        for n in self._state["notifications"]:
            if event.id and n.id == event.id:
                return True
            if (n.title == event.title and n.message == event.message
                    and abs(_aware(n.created_at) - arrived) < DUPLICATE_WINDOW):
                return True
        return False

    def add_notification(self, event: NotificationEvent) -> bool:
        """Put a pushed notification first; returns False when it was a repeat."""
        if self.is_duplicate(event):
            logger.debug("notification_duplicate", title=event.title)
            return False
        created = _aware(event.created_at)
        notification = Notification.model_validate({
            "_id": event.id or f"{TEMP_PREFIX}{int(created.timestamp() * 1000)}",
            "title": event.title,
            "message": event.message,
            "type": event.type,
            "isRead": event.is_read,
            "relatedId": event.related_id,
            "createdAt": created,
        })
        self._replace([notification] + self._state["notifications"])
        return True
