from enum import Enum
from typing import Any, Self, TypeAlias

import markdown2  # pyright: ignore[reportMissingTypeStubs]


Document: TypeAlias = dict[str, Any]


class Role(Enum):
    customer = "customer"
    owner = "owner"

    @property
    def collection(self) -> str:
        return "owners" if self is Role.owner else "customers"


class StoreType(Enum):
    grocery = "Grocery"
    vegetables = "Vegetable & Fruits"
    supermarket = "Supermarket"


class Status(Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    ready = "ready"
    completed = "completed"


class Item:
    """A shopping list line.

    `available` is tri-state: None means the shop has not reviewed the item
    yet and the key is left out of the stored document entirely.
    """

    def __init__(
        self,
        *,
        name: str,
        quantity: float,
        unit: str,
        available: bool | None = None,
    ) -> None:
        self.name = name
        self.quantity = quantity
        self.unit = unit
        self.available = available

    def __repr__(self) -> str:
        return f"<Item(name={self.name}, available={self.available})>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @classmethod
    def from_dict(cls, data: Document) -> Self:
        return cls(
            name=data["name"],
            quantity=data.get("quantity", 0),
            unit=data.get("unit", ""),
            available=data.get("available"),
        )

    def to_dict(self) -> Document:
        data: Document = {
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
        }
        if self.available is not None:
            data["available"] = self.available
        return data

    def with_availability(self, available: bool | None) -> "Item":
        return Item(
            name=self.name,
            quantity=self.quantity,
            unit=self.unit,
            available=available,
        )


class ShoppingList:
    def __init__(
        self,
        *,
        vegetable_shop: list[Item] | None = None,
        grocery_shop: list[Item] | None = None,
    ) -> None:
        self.vegetable_shop = [] if vegetable_shop is None else vegetable_shop
        self.grocery_shop = [] if grocery_shop is None else grocery_shop

    @classmethod
    def from_dict(cls, data: Document) -> Self:
        return cls(
            vegetable_shop=[Item.from_dict(i) for i in data.get("VegetableShop", [])],
            grocery_shop=[Item.from_dict(i) for i in data.get("GroceryShop", [])],
        )

    def to_dict(self) -> Document:
        return {
            "VegetableShop": [i.to_dict() for i in self.vegetable_shop],
            "GroceryShop": [i.to_dict() for i in self.grocery_shop],
        }


class Profile:
    def __init__(
        self,
        *,
        role: Role,
        name: str,
        phone: str,
        location: str = "",
        lat: float | None = None,
        lng: float | None = None,
        shop_name: str | None = None,
        store_type: StoreType | None = None,
    ) -> None:
        self.role = role
        self.name = name
        self.phone = phone
        self.location = location
        self.lat = lat
        self.lng = lng
        self.shop_name = shop_name
        self.store_type = store_type

    def __repr__(self) -> str:
        return f"<Profile(role={self.role.value}, phone={self.phone})>"

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @classmethod
    def from_dict(cls, data: Document) -> Self:
        store_type = data.get("storeType") or None
        return cls(
            role=Role(data["role"]),
            name=data["name"],
            phone=data["phone"],
            location=data.get("location") or "",
            lat=data.get("lat"),
            lng=data.get("lng"),
            shop_name=data.get("shopName") or None,
            store_type=StoreType(store_type) if store_type else None,
        )

    def to_dict(self) -> Document:
        data: Document = {
            "role": self.role.value,
            "name": self.name,
            "phone": self.phone,
            "location": self.location,
            "lat": self.lat,
            "lng": self.lng,
        }
        if self.role is Role.owner:
            data["shopName"] = self.shop_name or ""
            data["storeType"] = self.store_type.value if self.store_type else ""
        return data


class Order:
    def __init__(
        self,
        *,
        id: str,
        customer_name: str,
        customer_phone: str,
        shop_phone: str,
        items: list[Item],
        status: Status = Status.pending,
        timestamp: str | None = None,
    ) -> None:
        self.id = id
        self.customer_name = customer_name
        self.customer_phone = customer_phone
        self.shop_phone = shop_phone
        self.items = items
        self.status = status
        self.timestamp = timestamp

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status.value})>"

    @classmethod
    def from_document(cls, id: str, data: Document) -> Self:
        return cls(
            id=id,
            customer_name=data.get("customerName", ""),
            customer_phone=data.get("customerPhone", ""),
            shop_phone=data.get("shopPhone", ""),
            items=[Item.from_dict(i) for i in data.get("items") or []],
            status=Status(data.get("status", Status.pending.value)),
            timestamp=data.get("timestamp"),
        )

    def to_dict(self) -> Document:
        return {
            "id": self.id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "shopPhone": self.shop_phone,
            "items": [i.to_dict() for i in self.items],
            "status": self.status.value,
            "timestamp": self.timestamp,
        }


class ShopProximity:
    def __init__(
        self,
        *,
        shop_name: str,
        phone: str,
        distance: float,
        store_type: str,
    ) -> None:
        self.shop_name = shop_name
        self.phone = phone
        self.distance = distance
        self.store_type = store_type

    def __repr__(self) -> str:
        return f"<ShopProximity(phone={self.phone}, distance={self.distance:.2f})>"

    def to_dict(self) -> Document:
        return {
            "shopName": self.shop_name,
            "phone": self.phone,
            "distance": round(self.distance, 2),
            "storeType": self.store_type,
        }


class RecipeForm:
    def __init__(self, *, dish_name: str, people_count: int, restrictions: str = "") -> None:
        if not dish_name.strip():
            raise ValueError("Provide a dish name.")
        if people_count < 1:
            raise ValueError("People count must be at least one.")
        self.dish_name = dish_name.strip()
        self.people_count = people_count
        self.restrictions = restrictions.strip()


class Recipe:
    def __init__(
        self,
        *,
        title: str,
        cook_time: str,
        nutrition: dict[str, float],
        ingredients: list[dict[str, str]],
        steps: list[str],
        substitutions: list[str],
        shopping_list: ShoppingList,
    ) -> None:
        self.title = title
        self.cook_time = cook_time
        self.nutrition = nutrition
        self.ingredients = ingredients
        self.steps = steps
        self.substitutions = substitutions
        self.shopping_list = shopping_list

    def __repr__(self) -> str:
        return f"<Recipe(title={self.title})>"

    @classmethod
    def from_dict(cls, data: Document) -> Self:
        return cls(
            title=data["recipeTitle"],
            cook_time=data["cookTime"],
            nutrition=data["nutrition"],
            ingredients=data["ingredients"],
            steps=data["steps"],
            substitutions=data.get("substitutions", []),
            shopping_list=ShoppingList.from_dict(data["shoppingList"]),
        )

    def to_dict(self) -> Document:
        return {
            "recipeTitle": self.title,
            "cookTime": self.cook_time,
            "nutrition": self.nutrition,
            "ingredients": self.ingredients,
            "steps": self.steps,
            "substitutions": self.substitutions,
            "shoppingList": self.shopping_list.to_dict(),
        }

    @property
    def markdown(self) -> str:
        lines = [f"## {self.title}", "", f"⏰ Cook time: {self.cook_time}", ""]
        lines += ["#### 📝 Ingredients", ""]
        lines += [f"- {i['name']} ({i['amount']})" for i in self.ingredients]
        lines += ["", "#### ✅ Instructions", ""]
        lines += [f"{n}. {step}" for n, step in enumerate(self.steps, start=1)]
        if self.substitutions:
            lines += ["", "#### 🔁 Substitutions", ""]
            lines += [f"- {s}" for s in self.substitutions]
        return "\n".join(lines)

    @property
    def html(self) -> str:
        return markdown2.markdown(  # pyright: ignore[reportUnknownVariableType, reportUnknownMemberType]
            self.markdown
        )
