"""
Terminal client: sign in, look at the cart and notifications, follow an order live.

    storefront login EMAIL PASSWORD
    storefront cart
    storefront track ORDER_ID
    storefront notifications [--unread]
    storefront logout
"""
import argparse
import sys

import structlog
from socketio.exceptions import ConnectionError as SocketConnectionError

import config
import order_status
from api_client import ApiClient, ApiError
from formatting import format_phone, format_price
from schemas import Order, User
from stores import AuthStore, CartStore, FileStorage, NotificationStore, WishlistStore
from tracking import DeliveryTrackingView, NotificationFeed, OrderLiveView, RealtimeChannel

logger = structlog.get_logger(__name__)


def login(auth: AuthStore, email: str, password: str) -> int:
    api = ApiClient()
    try:
        data = api.auth.login(email, password)
    except ApiError as e:
        print(f"Login failed: {e.message}")
        return 1
    user = User.model_validate(data["user"])
    auth.set_auth(user, data["token"])
    # guest wishlist items collected before signing in go to the account
    WishlistStore(ApiClient(token=auth.token), auth.storage).merge_guest_wishlist()
    print(f"Signed in as {user.name} ({user.role})")
    return 0


def logout(auth: AuthStore) -> int:
    auth.clear_auth()
    print("Signed out")
    return 0


def show_cart(auth: AuthStore) -> int:
    store = CartStore(ApiClient(token=auth.token))
    if not store.fetch():
        print(store.state["error"] or "Please login first")
        return 1
    if not store.items:
        print("Your cart is empty")
        return 0
    for item in store.items:
        product = item.product_id
        print(f"{item.quantity} x {product.title}  {format_price(item.price_at_time * item.quantity)}")
    totals = store.totals()
    print(f"Subtotal {format_price(totals.subtotal)}")
    print(f"Shipping {format_price(totals.shipping)}")
    print(f"Total    {format_price(totals.total)}")
    return 0


def show_notifications(auth: AuthStore, unread_only: bool = False) -> int:
    store = NotificationStore(ApiClient(token=auth.token))
    if not store.fetch(unread_only=unread_only):
        print(store.state["error"] or "Please login first")
        return 1
    if not store.notifications:
        print("No notifications")
        return 0
    for n in store.notifications:
        marker = " " if n.is_read else "*"
        print(f"{marker} {n.title}: {n.message}")
    print(f"{store.unread_count} unread")
    return 0


def print_delivery(state):
    location = state["current_location"]
    if location:
        print(f"Location {location.latitude:.5f}, {location.longitude:.5f}")
    courier = state["delivery_personnel"]
    if courier:
        print(f"Courier {courier.name} {format_phone(courier.phone)}")


def track(auth: AuthStore, order_id: str) -> int:
    if not auth.is_authenticated:
        print("Please login first")
        return 1
    api = ApiClient(token=auth.token)
    try:
        order = Order.model_validate(api.orders.get(order_id))
    except ApiError as e:
        print(f"Could not load order: {e.message}")
        return 1
    print(f"Order {order.id}: {order_status.label(order.order_status)} ({order.payment_status})")

    channel = RealtimeChannel(config.SOCKET_URL, auth.token)
    try:
        channel.connect()
    except SocketConnectionError as e:
        logger.error("realtime_unavailable", order_id=order_id, error=str(e))
        print("Live updates unavailable")
        return 1
    live = OrderLiveView(channel, order_id, order, notify=print)
    delivery = DeliveryTrackingView(channel, order_id, order.current_location, order.delivery_personnel)
    delivery.subscribe(print_delivery)
    feed = NotificationFeed(channel, NotificationStore(api), notify=print)
    try:
        with live, delivery, feed:
            channel.wait()
    except KeyboardInterrupt:
        pass
    finally:
        channel.disconnect()
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="storefront")
    sub = parser.add_subparsers(dest="command", required=True)
    p = sub.add_parser("login")
    p.add_argument("email")
    p.add_argument("password")
    sub.add_parser("logout")
    sub.add_parser("cart")
    p = sub.add_parser("track")
    p.add_argument("order_id")
    p = sub.add_parser("notifications")
    p.add_argument("--unread", action="store_true")
    args = parser.parse_args(argv)

    config.configure_logging()
    auth = AuthStore(FileStorage(config.AUTH_STORAGE_PATH))
    if args.command == "login":
        return login(auth, args.email, args.password)
    if args.command == "logout":
        return logout(auth)
    if args.command == "cart":
        return show_cart(auth)
    if args.command == "notifications":
        return show_notifications(auth, args.unread)
    return track(auth, args.order_id)


if __name__ == "__main__":
    sys.exit(main())
