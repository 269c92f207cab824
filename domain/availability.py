"""Item availability.

Customers rewrite the whole items array when they edit their list, shops
rewrite it when they toggle stock. The only thing that stops one side from
wiping the other's stock marks is merging by item name before writing.
"""

from domain.lifecycle import can_review_items
from domain.models import Item, Order, ShoppingList, StoreType


def as_store_type(value: StoreType | str | None) -> StoreType | None:
    if value is None or isinstance(value, StoreType):
        return value
    try:
        return StoreType(value)
    except ValueError:
        return None


def items_for_store_type(
    shopping_list: ShoppingList,
    store_type: StoreType | str | None,
) -> list[Item]:
    match as_store_type(store_type):
        case StoreType.supermarket:
            return [*shopping_list.vegetable_shop, *shopping_list.grocery_shop]
        case StoreType.vegetables:
            return list(shopping_list.vegetable_shop)
        case StoreType.grocery:
            return list(shopping_list.grocery_shop)
        case _:
            return []


def merge_availability(new_items: list[Item], existing_items: list[Item]) -> list[Item]:
    """Carry `available` over from `existing_items` by exact name.

    First match wins. An unmatched or unreviewed item comes out unreviewed.
    Items missing from `new_items` are dropped.
    """
    merged: list[Item] = []
    for item in new_items:
        existing = next((e for e in existing_items if e.name == item.name), None)
        available = existing.available if existing is not None else None
        merged.append(item.with_availability(available))
    return merged


def next_availability(current: bool | None) -> bool:
    # unreviewed -> in stock -> out of stock -> in stock ...
    return current is not True


def toggle_item(order: Order, index: int) -> list[Item] | None:
    """New items array with one item's stock flag advanced, or None if the
    order's status does not allow reviewing items."""
    if not can_review_items(order.status):
        return None
    if not 0 <= index < len(order.items):
        raise IndexError(f"Order {order.id} has no item {index}.")
    items = list(order.items)
    items[index] = items[index].with_availability(next_availability(items[index].available))
    return items
