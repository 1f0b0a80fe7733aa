import json
from datetime import datetime, timedelta, timezone

from schemas import NotificationEvent, Product
from stores import (
    AUTH_KEY,
    GUEST_WISHLIST_KEY,
    AuthStore,
    CartStore,
    FileStorage,
    NotificationStore,
    WishlistStore,
    normalize_cart,
)
from conftest import cart_payload, product_payload

USER = {"_id": "user-1", "name": "Sita", "email": "sita@mail.com", "role": "customer"}


# ----------------------- Auth -----------------------
def test_auth_store_persists_and_restores():
    storage = {}
    store = AuthStore(storage)
    assert not store.is_authenticated
    store.set_auth(USER, "tok")
    assert storage[AUTH_KEY] == {"user": USER, "token": "tok"}

    restored = AuthStore(storage)
    assert restored.is_authenticated
    assert restored.token == "tok"
    assert restored.user.name == "Sita"


def test_auth_store_clear_removes_persisted_entry():
    storage = {}
    store = AuthStore(storage)
    store.set_auth(USER, "tok")
    store.clear_auth()
    assert AUTH_KEY not in storage
    assert store.user is None
    assert not store.is_authenticated


def test_auth_store_notifies_until_unsubscribed():
    store = AuthStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)
    store.set_auth(USER, "tok")
    unsubscribe()
    store.clear_auth()
    assert len(seen) == 1
    assert seen[0]["token"] == "tok"


def test_file_storage_round_trips_through_disk(tmp_path):
    path = tmp_path / "state" / "auth.json"
    AuthStore(FileStorage(str(path))).set_auth(USER, "tok")
    assert json.loads(path.read_text())[AUTH_KEY]["token"] == "tok"
    assert AuthStore(FileStorage(str(path))).is_authenticated


def test_file_storage_ignores_corrupt_file(tmp_path):
    path = tmp_path / "auth.json"
    path.write_text("{not json")
    assert len(FileStorage(str(path))) == 0


# ----------------------- Cart -----------------------
def test_normalize_cart_drops_unpopulated_items():
    raw = cart_payload((product_payload(), 2), ("p-deleted", 1))
    cart = normalize_cart(raw)
    assert [item.product_id.id for item in cart.items] == ["p1"]
    assert normalize_cart(None) is None


def test_cart_store_counts_and_totals(backend, make_api):
    backend.add("GET", "/api/cart", cart_payload(
        (product_payload(), 2),
        (product_payload(pid="p2", title="Rain Jacket", price=1000), 1),
    ))
    store = CartStore(make_api())
    assert store.fetch()
    assert store.item_count == 3
    assert store.subtotal == 4000
    totals = store.totals(500)
    assert (totals.shipping, totals.total) == (100, 3600)
    assert store.state["loading"] is False


def test_update_quantity_is_clamped_to_stock(backend, make_api):
    backend.add("GET", "/api/cart", cart_payload((product_payload(stock=3), 1)))
    backend.add("PUT", "/api/cart/update", cart_payload((product_payload(stock=3), 3)))
    store = CartStore(make_api())
    store.fetch()
    assert store.update_quantity("p1", 10)
    sent = json.loads(backend.calls_to("PUT", "/api/cart/update")[0].body)
    assert sent == {"productId": "p1", "quantity": 3}
    assert store.find("p1").quantity == 3


def test_update_quantity_skips_noop(backend, make_api):
    backend.add("GET", "/api/cart", cart_payload((product_payload(stock=3), 3)))
    store = CartStore(make_api())
    store.fetch()
    assert not store.update_quantity("p1", 7)
    assert not store.update_quantity("p1", 3)
    assert backend.calls_to("PUT", "/api/cart/update") == []


def test_update_quantity_refuses_out_of_stock_item(backend, make_api):
    backend.add("GET", "/api/cart", cart_payload((product_payload(stock=0), 1)))
    store = CartStore(make_api())
    store.fetch()
    assert not store.update_quantity("p1", 1)
    assert store.state["error"] == "Product is out of stock"
    assert store.state["error_status"] == 400
    assert backend.calls_to("PUT", "/api/cart/update") == []


def test_cart_failure_is_kept_in_state(backend, make_api):
    backend.add("POST", "/api/cart/add", status=400, success=False, message="Insufficient stock")
    store = CartStore(make_api())
    assert not store.add_item("p1", 9)
    assert store.state["error"] == "Insufficient stock"
    assert store.state["error_status"] == 400


def test_guest_cannot_add_to_cart(backend, make_api):
    store = CartStore(make_api(token=None))
    assert not store.add_item("p1")
    assert store.state["error_status"] == 401
    assert backend.calls == []


def test_clear_empties_cart(backend, make_api):
    backend.add("GET", "/api/cart", cart_payload((product_payload(), 1)))
    backend.add("DELETE", "/api/cart/clear", None)
    store = CartStore(make_api())
    store.fetch()
    assert store.clear()
    assert store.items == []
    assert store.total == 0


# ----------------------- Wishlist -----------------------
def test_guest_wishlist_lives_in_storage(make_api):
    storage = {}
    store = WishlistStore(make_api(token=None), storage)
    product = Product.model_validate(product_payload())
    assert store.add_item(product)
    assert store.add_item(product)
    assert store.item_count == 1
    assert storage[GUEST_WISHLIST_KEY][0]["_id"] == "p1"
    assert store.remove_item("p1")
    assert storage[GUEST_WISHLIST_KEY] == []


def test_guest_wishlist_needs_product_details(make_api):
    store = WishlistStore(make_api(token=None))
    assert not store.add_item("p1")
    assert store.state["error_status"] == 400


def test_guest_wishlist_is_merged_after_login(backend, make_api):
    storage = {GUEST_WISHLIST_KEY: [product_payload(), product_payload(pid="p2", title="Rain Jacket")]}
    backend.add("GET", "/api/wishlist", {"products": [product_payload(pid="p2", title="Rain Jacket")]})
    backend.add("POST", "/api/wishlist/add", {"products": [
        product_payload(pid="p2", title="Rain Jacket"),
        product_payload(),
    ]})
    store = WishlistStore(make_api(), storage)
    assert store.merge_guest_wishlist() == 1
    assert GUEST_WISHLIST_KEY not in storage
    assert store.is_in_wishlist("p1")
    assert len(backend.calls_to("POST", "/api/wishlist/add")) == 1


# ----------------------- Notifications -----------------------
def notification(nid="n1", read=False, title="Order Shipped"):
    return {"_id": nid, "title": title, "message": "On the way", "isRead": read,
            "createdAt": "2024-05-01T10:00:00Z"}


def envelope(*items, **extra):
    return json.dumps(dict({"success": True, "data": list(items)}, **extra))


def test_notification_fetch_counts_unread_when_not_reported(backend, make_api):
    backend.add("GET", "/api/notifications", raw=envelope(notification(), notification("n2", read=True)))
    store = NotificationStore(make_api())
    assert store.fetch()
    assert [n.id for n in store.notifications] == ["n1", "n2"]
    assert store.unread_count == 1
    assert store.state["last_fetch"] is not None


def test_notification_fetch_keeps_pushes_since_last_fetch(backend, make_api):
    backend.add("GET", "/api/notifications", raw=envelope(notification(), unreadCount=1))
    store = NotificationStore(make_api())
    store.fetch()
    store.add_notification(NotificationEvent(title="Order Delivered", message="Enjoy"))
    store.fetch()
    assert [n.title for n in store.notifications] == ["Order Delivered", "Order Shipped"]


def test_notification_fetch_drops_pushes_older_than_last_fetch(backend, make_api):
    backend.add("GET", "/api/notifications", raw=envelope(notification()))
    store = NotificationStore(make_api())
    old = datetime.now(timezone.utc) - timedelta(minutes=5)
    store.add_notification(NotificationEvent(title="Old", message="stale", created_at=old))
    store.fetch()
    store.fetch()
    assert [n.title for n in store.notifications] == ["Order Shipped"]


def test_notification_fetch_dedupes_pushed_and_served(backend, make_api):
    backend.add("GET", "/api/notifications", raw=envelope(notification()))
    store = NotificationStore(make_api())
    store.add_notification(NotificationEvent(id="n1", title="Order Shipped", message="On the way"))
    store.fetch()
    assert [n.id for n in store.notifications] == ["n1"]


def test_temporary_notification_is_read_locally(backend, make_api):
    store = NotificationStore(make_api())
    store.add_notification(NotificationEvent(title="Hi", message="there"))
    temp_id = store.notifications[0].id
    assert store.mark_as_read(temp_id)
    assert store.unread_count == 0
    assert store.delete(temp_id)
    assert store.notifications == []
    assert backend.calls == []


def test_mark_all_as_read_recounts(backend, make_api):
    backend.add("GET", "/api/notifications", raw=envelope(notification(), notification("n2")))
    backend.add("PUT", "/api/notifications/read-all", None)
    store = NotificationStore(make_api())
    store.fetch()
    assert store.unread_count == 2
    assert store.mark_all_as_read()
    assert store.unread_count == 0
    assert all(n.is_read for n in store.notifications)


def test_notification_failure_is_kept_in_state(backend, make_api):
    backend.add("DELETE", "/api/notifications/n1", status=404, success=False, message="Notification not found")
    store = NotificationStore(make_api())
    assert not store.delete("n1")
    assert store.state["error_status"] == 404


def test_guest_has_no_notifications(backend, make_api):
    assert not NotificationStore(make_api(token=None)).fetch()
    assert backend.calls == []
