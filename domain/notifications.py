"""Notifications raised from live order snapshots.

A watcher sits on one subscription. The first snapshot after subscribing is
only recorded, so pre-existing orders do not flood the user on page load or
reconnect. After that each snapshot is compared with the one before it.
"""

import asyncio
from enum import Enum
import logging
from typing import Callable, TypeAlias
import uuid

from domain.models import Order, Status


logger = logging.getLogger(__name__)


DEFAULT_TTL = 5.0


class NotificationKind(Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class Notification:
    def __init__(
        self,
        *,
        id: str,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.info,
    ) -> None:
        self.id = id
        self.title = title
        self.message = message
        self.kind = kind

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, title={self.title})>"

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.kind.value,
        }


NotificationListener: TypeAlias = Callable[[str, Notification], None]


class NotificationCenter:
    """Toasts currently on screen. They expire on their own after `ttl`."""

    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        self.ttl = ttl
        self.notifications: list[Notification] = []
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[NotificationListener] = []

    def add_listener(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _emit(self, event: str, notification: Notification) -> None:
        for listener in list(self._listeners):
            listener(event, notification)

    def notify(
        self,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.info,
    ) -> Notification:
        notification = Notification(
            id=uuid.uuid4().hex[:8], title=title, message=message, kind=kind
        )
        self.notifications.append(notification)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, %s will not expire.", notification.id)
        else:
            self._timers[notification.id] = loop.call_later(
                self.ttl, self.dismiss, notification.id
            )
        self._emit("added", notification)
        return notification

    def dismiss(self, id: str) -> None:
        timer = self._timers.pop(id, None)
        if timer is not None:
            timer.cancel()
        for notification in self.notifications:
            if notification.id == id:
                self.notifications.remove(notification)
                self._emit("dismissed", notification)
                return


class OrderWatcher:
    def __init__(self, center: NotificationCenter) -> None:
        self.center = center
        self.previous: dict[str, Order] = {}
        self.initial = True

    def reset(self) -> None:
        """Next snapshot becomes the baseline again."""
        self.previous = {}
        self.initial = True

    def __call__(self, orders: list[Order]) -> list[Notification]:
        fired = [] if self.initial else self.compare(orders)
        self.initial = False
        self.previous = {o.id: o for o in orders}
        return fired

    def compare(self, orders: list[Order]) -> list[Notification]:
        raise NotImplementedError


class CustomerOrderWatcher(OrderWatcher):
    def compare(self, orders: list[Order]) -> list[Notification]:
        fired: list[Notification] = []
        for order in orders:
            prev = self.previous.get(order.id)
            if prev is None or prev.status == order.status:
                continue
            if order.status is Status.ready:
                fired.append(
                    self.center.notify(
                        "Order Ready!",
                        f"Your list at {order.shop_phone} has been prepared.",
                        NotificationKind.success,
                    )
                )
            elif order.status is Status.rejected:
                fired.append(
                    self.center.notify(
                        "Order Not Accepted",
                        "A vendor was unable to fulfill your request.",
                        NotificationKind.error,
                    )
                )
        return fired


class OwnerOrderWatcher(OrderWatcher):
    def compare(self, orders: list[Order]) -> list[Notification]:
        return [
            self.center.notify(
                "New Order Received",
                f"{order.customer_name} has sent a new shopping list.",
                NotificationKind.info,
            )
            for order in orders
            if order.id not in self.previous and order.status is Status.pending
        ]
