"""Customer and shop owner use cases on top of the order engine.

Writes to the store are fire-and-log: a failed write is logged and the local
view keeps its optimistic state.
"""

import inspect
import logging
from typing import Awaitable, Callable, TypeAlias

from domain.availability import items_for_store_type, merge_availability, toggle_item
from domain.cache import LocalCache
from domain.geocoding import Geocoder
from domain.lifecycle import can_edit_items, is_active, is_terminal, validate_transition
from domain.llm_service import LLMService, RecipeGenerationError
from domain.models import (
    Item,
    Order,
    Profile,
    Recipe,
    RecipeForm,
    Role,
    ShopProximity,
    ShoppingList,
    Status,
)
from domain.notifications import (
    CustomerOrderWatcher,
    NotificationCenter,
    NotificationKind,
    OwnerOrderWatcher,
)
from domain.orders import OrderNotFound, OrderRepository
from domain.profiles import ProfileRepository
from domain.proximity import nearest, rank_shops
from domain.store import Unsubscribe


logger = logging.getLogger(__name__)


SnapshotListener: TypeAlias = Callable[[list[Order]], Awaitable[None] | None]


async def find_profile(
    phone: str,
    role: Role,
    *,
    profiles: ProfileRepository,
) -> Profile | None:
    """None means a new user."""
    try:
        return await profiles.get_by_phone(phone, role)
    except Exception:
        logger.exception("Error checking phone %s", phone)
        return None


async def sign_in(
    profile: Profile,
    *,
    profiles: ProfileRepository,
    geocoder: Geocoder,
    cache: LocalCache | None = None,
) -> Profile:
    if not profile.has_coordinates:
        coords = await geocoder.geocode(profile.location)
        if coords is not None:
            profile.lat, profile.lng = coords
    await profiles.sync(profile)
    if cache is not None:
        cache.save_profile(profile)
    logger.info("Signed in %r", profile)
    return profile


class _Session:
    def __init__(self, profile: Profile, *, notifications: NotificationCenter) -> None:
        self.profile = profile
        self.notifications = notifications
        self.orders: list[Order] = []
        self.listeners: list[SnapshotListener] = []
        self._unsubscribe: Unsubscribe | None = None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    async def _publish(self) -> None:
        for listener in list(self.listeners):
            res = listener(self.orders)
            if inspect.isawaitable(res):
                await res

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class CustomerSession(_Session):
    def __init__(
        self,
        profile: Profile,
        *,
        orders: OrderRepository,
        profiles: ProfileRepository,
        llm: LLMService,
        notifications: NotificationCenter,
    ) -> None:
        super().__init__(profile, notifications=notifications)
        self.repo = orders
        self.profiles = profiles
        self.llm = llm
        self.watcher = CustomerOrderWatcher(notifications)
        self.recipe: Recipe | None = None
        self.error: str | None = None
        self.shops: list[ShopProximity] = []

    async def start(self) -> None:
        if self.started:
            return
        self._unsubscribe = await self.repo.subscribe_by_customer(
            self.profile.phone, self._on_orders
        )

    async def _on_orders(self, orders: list[Order]) -> None:
        self.watcher(orders)
        self.orders = orders
        await self._publish()

    def stop(self) -> None:
        super().stop()
        self.watcher.reset()

    async def generate(self, form: RecipeForm) -> Recipe | None:
        self.error = None
        try:
            self.recipe = await self.llm.generate_recipe(form)
        except RecipeGenerationError as e:
            self.error = str(e)
            return None
        return self.recipe

    async def load_nearby_shops(self) -> list[ShopProximity]:
        if not self.profile.has_coordinates:
            return self.shops
        try:
            owners = await self.profiles.list_owners()
        except Exception:
            logger.exception("Proximity calculation failed")
            return self.shops
        self.shops = rank_shops(
            self.profile.lat, self.profile.lng, owners  # pyright: ignore[reportArgumentType]
        )
        return self.shops

    def active_order_for(self, shop_phone: str) -> Order | None:
        return next(
            (o for o in self.orders if o.shop_phone == shop_phone and is_active(o.status)),
            None,
        )

    async def send_or_update(self, shop: ShopProximity) -> str | None:
        """Update the open order to this shop, or send a new one.

        Returns the order id, or None when nothing was written.
        """
        if self.recipe is None:
            return None
        items = items_for_store_type(self.recipe.shopping_list, shop.store_type)
        if not items:
            self.notifications.notify(
                "Nothing To Send",
                f"No relevant items for this {shop.store_type} in your current list.",
                NotificationKind.warning,
            )
            return None

        existing = self.active_order_for(shop.phone)
        try:
            if existing is not None:
                await self.repo.set_items(existing.id, merge_availability(items, existing.items))
                return existing.id
            items = merge_availability(items, [])
            id = await self.repo.create_order(shop.phone, self.profile, items)
        except Exception:
            logger.exception("Failed to sync list to %s", shop.phone)
            self.notifications.notify(
                "Sync Failed",
                "Failed to sync list. Please try again.",
                NotificationKind.error,
            )
            return None

        if all(o.id != id for o in self.orders):
            # Not subscribed yet, keep our own view current.
            self.orders.insert(
                0,
                Order(
                    id=id,
                    customer_name=self.profile.name,
                    customer_phone=self.profile.phone,
                    shop_phone=shop.phone,
                    items=items,
                ),
            )
        return id

    async def send_to_nearest(self, n: int) -> list[str]:
        ids: list[str] = []
        for shop in nearest(self.shops, n):
            id = await self.send_or_update(shop)
            if id is not None:
                ids.append(id)
        return ids

    async def edit_shopping_list(self, shopping_list: ShoppingList) -> None:
        """Replace the list and push it to every open order, keeping stock marks."""
        if self.recipe is None:
            return
        self.recipe.shopping_list = shopping_list
        for order in [o for o in self.orders if can_edit_items(o.status)]:
            shop = next((s for s in self.shops if s.phone == order.shop_phone), None)
            if shop is None:
                continue
            items = items_for_store_type(shopping_list, shop.store_type)
            if not items:
                continue
            try:
                await self.repo.set_items(order.id, merge_availability(items, order.items))
            except Exception:
                logger.exception("Failed to sync items for order %s", order.id)


class OwnerBoard(_Session):
    """A shop's incoming orders.

    Orders the owner rejects or completes are hidden for the rest of the
    session, whatever later snapshots say.
    """

    def __init__(
        self,
        profile: Profile,
        *,
        orders: OrderRepository,
        notifications: NotificationCenter,
        cache: LocalCache | None = None,
    ) -> None:
        super().__init__(profile, notifications=notifications)
        self.repo = orders
        self.cache = cache
        self.watcher = OwnerOrderWatcher(notifications)
        self.hidden: set[str] = set()

    def _visible(self, orders: list[Order]) -> list[Order]:
        return [o for o in orders if o.id not in self.hidden and not is_terminal(o.status)]

    def _save(self) -> None:
        if self.cache is not None:
            self.cache.save_orders(self.profile.phone, self.orders)

    async def start(self) -> None:
        if self.started:
            return
        if self.cache is not None:
            self.orders = self._visible(self.cache.load_orders(self.profile.phone))
            await self._publish()
        self._unsubscribe = await self.repo.subscribe_by_shop(
            self.profile.phone, self._on_orders
        )

    async def _on_orders(self, orders: list[Order]) -> None:
        visible = self._visible(orders)
        self.watcher(visible)
        self.orders = visible
        self._save()
        await self._publish()

    def stop(self) -> None:
        super().stop()
        self.watcher.reset()

    @property
    def pending_orders(self) -> list[Order]:
        return [o for o in self.orders if o.status is Status.pending]

    @property
    def active_orders(self) -> list[Order]:
        return [o for o in self.orders if o.status in (Status.accepted, Status.ready)]

    def get(self, order_id: str) -> Order:
        for order in self.orders:
            if order.id == order_id:
                return order
        raise OrderNotFound(order_id)

    async def update_status(self, order_id: str, status: Status) -> None:
        """Raises LifecycleError for a move the owner is not offered."""
        order = self.get(order_id)
        validate_transition(order.status, status, Role.owner)

        if is_terminal(status):
            self.hidden.add(order_id)
            self.orders = [o for o in self.orders if o.id != order_id]
        else:
            order.status = status
        self._save()

        try:
            await self.repo.set_status(order_id, status)
        except Exception:
            logger.exception("Status update failed for order %s", order_id)

    async def toggle_item(self, order_id: str, index: int) -> list[Item] | None:
        order = self.get(order_id)
        items = toggle_item(order, index)
        if items is None:
            return None
        order.items = items
        self._save()
        try:
            await self.repo.set_items(order_id, items)
        except Exception:
            logger.exception("Availability update failed for order %s", order_id)
        return items
