"""
Live order updates and notifications over the realtime channel.

A view joins the order's tracking room when opened and leaves it when
closed. Between the two it folds pushed events into its state; once closed
it ignores anything the transport still delivers. Dropped connections are
not retried: updates simply stop until the view is reopened.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import socketio
import structlog
from pydantic import ValidationError

import config
import order_status
from schemas import (
    DeliveryPersonnel,
    GPSLocation,
    NotificationEvent,
    Order,
    OrderUpdateEvent,
    StatusUpdateEvent,
    TrackingUpdateEvent,
)
from stores import NotificationStore, Store

logger = structlog.get_logger(__name__)

TRACK_ORDER = "track:order"
UNTRACK_ORDER = "untrack:order"
STATUS_UPDATED = "order:status-updated"
ORDER_UPDATED = "order:updated"
TRACKING_UPDATED = "delivery:tracking-updated"
NOTIFICATION_NEW = "notification:new"

# fields an order:updated push may carry, by wire name
MERGEABLE_FIELDS = ("orderStatus", "paymentStatus", "updatedAt")

Handler = Callable[[Any], None]


class RealtimeChannel:
    """Socket.IO connection shared by every live view of one session."""

    def __init__(self, url: str = config.SOCKET_URL, token: Optional[str] = None,
                 client: Optional[socketio.Client] = None):
        self.url = url
        self.token = token
        self.client = client or socketio.Client(reconnection=False)
        self._handlers: Dict[str, list] = {}
        self.client.on("connect", self._on_connect)
        self.client.on("disconnect", self._on_disconnect)
        self.client.on("connect_error", self._on_connect_error)

    @property
    def is_connected(self) -> bool:
        return bool(self.client.connected)

    def connect(self):
        self.client.connect(self.url, auth={"token": self.token}, transports=["websocket", "polling"])

    def disconnect(self):
        self.client.disconnect()

    def wait(self):
        self.client.wait()

    def _on_connect(self):
        logger.info("realtime_connected", url=self.url)

    def _on_disconnect(self, *args):
        logger.info("realtime_disconnected", url=self.url)

    def _on_connect_error(self, error):
        logger.error("realtime_connect_error", url=self.url, error=str(error))

    def _dispatcher(self, event: str):
        def dispatch(data=None):
            for handler in list(self._handlers.get(event, [])):
                handler(data)
        return dispatch

    def on(self, event: str, handler: Handler):
        if event not in self._handlers:
            self._handlers[event] = []
            self.client.on(event, self._dispatcher(event))
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Handler):
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, data: Any = None) -> bool:
        if not self.is_connected:
            logger.debug("realtime_emit_dropped", event_name=event)
            return False
        self.client.emit(event, data)
        return True


class _RoomView(Store):
    """Base for views that hold one order's tracking room open."""

    events: Dict[str, str] = {}

    def __init__(self, channel, order_id: str, **initial):
        super().__init__(**initial)
        self.channel = channel
        self.order_id = order_id
        self.active = False

    def open(self):
        if self.active:
            return self
        for event, method in self.events.items():
            self.channel.on(event, getattr(self, method))
        self.channel.emit(TRACK_ORDER, self.order_id)
        self.active = True
        logger.info("order_room_joined", order_id=self.order_id, view=type(self).__name__)
        return self

    def close(self):
        if not self.active:
            return
        self.active = False
        for event, method in self.events.items():
            self.channel.off(event, getattr(self, method))
        self.channel.emit(UNTRACK_ORDER, self.order_id)
        logger.info("order_room_left", order_id=self.order_id, view=type(self).__name__)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _parse(self, model, data, event: str):
        if not self.active:
            return None
        try:
            parsed = model.model_validate(data)
        except ValidationError as e:
            logger.warning("push_event_malformed", event_name=event, errors=e.error_count())
            return None
        if parsed.order_id != self.order_id:
            logger.debug("push_event_ignored", event_name=event, order_id=parsed.order_id, viewing=self.order_id)
            return None
        logger.debug("push_event_received", event_name=event, order_id=parsed.order_id)
        return parsed


class OrderLiveView(_RoomView):
    """Keeps a displayed order's status fields in step with pushed events.

    ``order:status-updated`` overwrites the order status and raises one
    toast. ``order:updated`` merges only the fields present in the push,
    leaving every other field of the order untouched.
    """

    events = {STATUS_UPDATED: "handle_status_update", ORDER_UPDATED: "handle_order_update"}

    def __init__(self, channel, order_id: str, order: Optional[Order] = None,
                 notify: Optional[Callable[[str], None]] = None):
        super().__init__(channel, order_id, order=order, last_toast=None)
        self.notify = notify

    @property
    def order(self) -> Optional[Order]:
        return self._state["order"]

    def load(self, order: Order):
        if order.id != self.order_id:
            raise ValueError(f"order {order.id} is not {self.order_id}")
        self._set(order=order)

    def _merged(self, changes: Dict[str, Any]) -> Optional[Order]:
        order = self.order
        if order is None:
            return None
        data = order.model_dump(by_alias=True)
        data.update(changes)
        try:
            return Order.model_validate(data)
        except ValidationError as e:
            logger.warning("push_event_malformed", order_id=self.order_id, fields=sorted(changes), errors=e.error_count())
            return None

    def handle_status_update(self, data):
        event = self._parse(StatusUpdateEvent, data, STATUS_UPDATED)
        if event is None:
            return
        status = event.new_status
        if not status:
            return
        order = self.order
        if order is not None:
            order = self._merged({"orderStatus": status})
            if order is None:
                return
        message = order_status.toast_message(status)
        self._set(order=order, last_toast=message)
        logger.info("order_toast", order_id=self.order_id, status=status, message=message)
        if self.notify:
            self.notify(message)

    def handle_order_update(self, data):
        event = self._parse(OrderUpdateEvent, data, ORDER_UPDATED)
        if event is None or self.order is None:
            return
        changes = {k: event.order_data[k] for k in MERGEABLE_FIELDS if event.order_data.get(k)}
        if not changes:
            return
        merged = self._merged(changes)
        if merged is not None:
            self._set(order=merged)


class DeliveryTrackingView(_RoomView):
    events = {TRACKING_UPDATED: "handle_tracking_update"}

    def __init__(self, channel, order_id: str, current_location: Optional[GPSLocation] = None,
                 delivery_personnel: Optional[DeliveryPersonnel] = None):
        super().__init__(
            channel,
            order_id,
            current_location=current_location,
            delivery_personnel=delivery_personnel,
            last_updated=None,
        )

    @property
    def current_location(self) -> Optional[GPSLocation]:
        return self._state["current_location"]

    @property
    def delivery_personnel(self) -> Optional[DeliveryPersonnel]:
        return self._state["delivery_personnel"]

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._state["last_updated"]

    def handle_tracking_update(self, data):
        event = self._parse(TrackingUpdateEvent, data, TRACKING_UPDATED)
        if event is None:
            return
        changes = {"last_updated": datetime.now(timezone.utc)}
        if event.current_location:
            changes["current_location"] = event.current_location
        if event.delivery_personnel:
            changes["delivery_personnel"] = event.delivery_personnel
        self._set(**changes)


class NotificationFeed:
    """Feeds ``notification:new`` pushes into a notification store.

    The backend puts every socket in its user's room on connect, so the
    feed only listens; there is no room to join or leave.
    """

    def __init__(self, channel, store: NotificationStore, notify: Optional[Callable[[str], None]] = None):
        self.channel = channel
        self.store = store
        self.notify = notify
        self.active = False

    def open(self):
        if not self.active:
            self.channel.on(NOTIFICATION_NEW, self.handle_notification)
            self.active = True
        return self

    def close(self):
        if self.active:
            self.active = False
            self.channel.off(NOTIFICATION_NEW, self.handle_notification)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def handle_notification(self, data):
        if not self.active:
            return
        try:
            event = NotificationEvent.model_validate(data)
        except ValidationError as e:
            logger.warning("push_event_malformed", event_name=NOTIFICATION_NEW, errors=e.error_count())
            return
        if not self.store.add_notification(event):
            return
        logger.info("notification_received", title=event.title, type=event.type)
        if self.notify:
            self.notify(f"🔔 {event.message}")
