import logging
from typing import Awaitable, Callable, TypeAlias

from domain.models import Item, Order, Profile, Status
from domain.store import SERVER_TIMESTAMP, DocumentSnapshot, DocumentStore, Unsubscribe


logger = logging.getLogger(__name__)


ORDERS = "orders"


OrdersListener: TypeAlias = Callable[[list[Order]], Awaitable[None] | None]


class OrderNotFound(Exception):
    pass


def orders_from_snapshot(docs: list[DocumentSnapshot]) -> list[Order]:
    orders = [Order.from_document(d.id, d.data) for d in docs]
    # Newest first. Orders still waiting on a timestamp sort last.
    orders.sort(key=lambda o: o.timestamp or "", reverse=True)
    return orders


class OrderRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def create_order(
        self,
        shop_phone: str,
        customer: Profile,
        items: list[Item],
    ) -> str:
        """Always a new pending order. Finding an open one is the caller's job."""
        id = await self.store.add(
            ORDERS,
            {
                "customerName": customer.name,
                "customerPhone": customer.phone,
                "shopPhone": shop_phone,
                "items": [i.to_dict() for i in items],
                "timestamp": SERVER_TIMESTAMP,
                "status": Status.pending.value,
            },
        )
        logger.info("Order %s sent to %s by %s", id, shop_phone, customer.phone)
        return id

    async def get(self, order_id: str) -> Order:
        data = await self.store.get(ORDERS, order_id)
        if data is None:
            raise OrderNotFound(order_id)
        return Order.from_document(order_id, data)

    async def subscribe_by_shop(
        self,
        shop_phone: str,
        listener: OrdersListener,
    ) -> Unsubscribe:
        return await self._subscribe({"shopPhone": shop_phone}, listener)

    async def subscribe_by_customer(
        self,
        customer_phone: str,
        listener: OrdersListener,
    ) -> Unsubscribe:
        return await self._subscribe({"customerPhone": customer_phone}, listener)

    async def _subscribe(
        self,
        where: dict[str, str],
        listener: OrdersListener,
    ) -> Unsubscribe:
        def on_snapshot(docs: list[DocumentSnapshot]) -> Awaitable[None] | None:
            return listener(orders_from_snapshot(docs))

        return await self.store.subscribe(ORDERS, where, on_snapshot)

    async def set_status(self, order_id: str, status: Status) -> None:
        if not order_id:
            return
        await self.store.update(ORDERS, order_id, {"status": status.value})

    async def set_items(self, order_id: str, items: list[Item]) -> None:
        if not order_id:
            return
        await self.store.update(ORDERS, order_id, {"items": [i.to_dict() for i in items]})
