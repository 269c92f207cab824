import json
from types import SimpleNamespace
from typing import Any

import pytest

from domain.models import Item, Profile, Recipe, Role, ShoppingList, StoreType
from domain.notifications import NotificationCenter
from domain.orders import OrderRepository
from domain.profiles import ProfileRepository
from domain.store import MemoryDocumentStore


RECIPE = {
    "recipeTitle": "Aloo Gobi",
    "cookTime": "35 mins",
    "nutrition": {"calories": 320, "protein": 8, "carbs": 40, "fat": 14},
    "ingredients": [
        {"name": "Potato", "amount": "2 medium"},
        {"name": "Cauliflower", "amount": "1 small head"},
        {"name": "Turmeric", "amount": "1/2 tsp"},
    ],
    "steps": ["Chop the vegetables.", "Fry the spices.", "Cook covered."],
    "substitutions": ["Use sweet potato instead of potato."],
    "shoppingList": {
        "VegetableShop": [
            {"name": "Potato", "quantity": 500, "unit": "g"},
            {"name": "Cauliflower", "quantity": 1, "unit": "kg"},
        ],
        "GroceryShop": [
            {"name": "Turmeric", "quantity": 100, "unit": "g"},
        ],
    },
}


def item(name: str, available: bool | None = None, quantity: float = 100) -> Item:
    return Item(name=name, quantity=quantity, unit="g", available=available)


def customer(phone: str = "9000000001", **kwargs: Any) -> Profile:
    return Profile(
        role=Role.customer,
        name=kwargs.pop("name", "Asha"),
        phone=phone,
        location=kwargs.pop("location", "Indiranagar, Bengaluru"),
        **kwargs,
    )


def owner(
    phone: str = "9000000002",
    store_type: StoreType = StoreType.supermarket,
    **kwargs: Any,
) -> Profile:
    return Profile(
        role=Role.owner,
        name=kwargs.pop("name", "Ravi"),
        phone=phone,
        location=kwargs.pop("location", "Koramangala, Bengaluru"),
        shop_name=kwargs.pop("shop_name", "Ravi Stores"),
        store_type=store_type,
        **kwargs,
    )


def recipe(shopping_list: ShoppingList | None = None) -> Recipe:
    r = Recipe.from_dict(RECIPE)
    if shopping_list is not None:
        r.shopping_list = shopping_list
    return r


class FakeLLM:
    def __init__(self, result: Recipe | Exception | None = None) -> None:
        self.result = recipe() if result is None else result
        self.calls = 0

    async def generate_recipe(self, form: Any) -> Recipe:
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeCompletions:
    def __init__(self, content: str | None) -> None:
        self.content = content
        self.kwargs: dict[str, Any] = {}

    async def create(self, **kwargs: Any) -> Any:
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_openai(content: str | dict[str, Any] | None) -> Any:
    if isinstance(content, dict):
        content = json.dumps(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(content)))


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def orders(store: MemoryDocumentStore) -> OrderRepository:
    return OrderRepository(store)


@pytest.fixture
def profiles(store: MemoryDocumentStore) -> ProfileRepository:
    return ProfileRepository(store)


@pytest.fixture
def center() -> NotificationCenter:
    return NotificationCenter()
