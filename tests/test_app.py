from pathlib import Path
from typing import Any, Iterator

import httpx
import pytest
from starlette.applications import Starlette
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import config
from app.app import create_app
from domain.geocoding import Geocoder
from domain.llm_service import RecipeGenerationError
from domain.store import DocumentStore, MemoryDocumentStore
from tests.conftest import FakeLLM


CUSTOMER = {
    "role": "customer",
    "name": "Asha",
    "phone": "90000 00001",
    "location": "Indiranagar, Bengaluru",
    "lat": 12.97,
    "lng": 77.64,
}


OWNER = {
    "role": "owner",
    "name": "Ravi",
    "phone": "9000000002",
    "location": "Koramangala, Bengaluru",
    "lat": 12.93,
    "lng": 77.62,
    "shopName": "Ravi Stores",
    "storeType": "Supermarket",
}


def geocoder() -> Geocoder:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/reverse":
            return httpx.Response(200, json={"display_name": "Indiranagar, Bengaluru"})
        return httpx.Response(200, json=[{"lat": "12.97", "lon": "77.64"}])

    return Geocoder(
        http_client=httpx.AsyncClient(
            base_url="https://geo.test/", transport=httpx.MockTransport(handler)
        )
    )


def make_app(
    tmp_path: Path,
    store: DocumentStore | None = None,
    llm: Any = None,
) -> Starlette:
    cfg = config.Config(
        cache_dir=tmp_path,
        store_backend=config.StoreBackend.memory,
        notification_ttl=60,
    )
    return create_app(
        cfg,
        store=MemoryDocumentStore() if store is None else store,
        llm=FakeLLM() if llm is None else llm,
        geocoder=geocoder(),
    )


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    with TestClient(make_app(tmp_path)) as client:
        yield client


def signed_in(client: TestClient) -> str:
    assert client.post("/sign-in", json=OWNER).status_code == 200
    assert client.post("/sign-in", json=CUSTOMER).status_code == 200
    resp = client.post("/customers/9000000001/recipe", json={"dishName": "Aloo Gobi"})
    assert resp.status_code == 200
    assert client.get("/customers/9000000001/shops").status_code == 200
    resp = client.post("/customers/9000000001/shops/9000000002/order")
    assert resp.status_code == 200
    return resp.json()["orderId"]


def test_profile_lookup(client: TestClient) -> None:
    assert client.get("/profiles/customer/9000000001").json() == {"exists": False}
    client.post("/sign-in", json=CUSTOMER)
    resp = client.get("/profiles/customer/9000000001").json()
    assert resp["exists"] is True
    assert resp["profile"]["phone"] == "9000000001"


def test_sign_in_validation(client: TestClient) -> None:
    assert client.post("/sign-in", json={**CUSTOMER, "phone": "123"}).status_code == 400
    assert client.post("/sign-in", json={"role": "customer"}).status_code == 400
    assert client.post("/sign-in", json={**OWNER, "storeType": "Bakery"}).status_code == 400


def test_locate(client: TestClient) -> None:
    resp = client.get("/locate", params={"lat": 12.97, "lng": 77.64})
    assert resp.json()["location"] == "Indiranagar, Bengaluru"
    assert client.get("/locate").status_code == 400


def test_sign_in_required(client: TestClient) -> None:
    assert client.get("/customers/9000000001/orders").status_code == 404
    assert client.get("/owners/9000000002/orders").status_code == 404


def test_recipe_and_shops(client: TestClient) -> None:
    client.post("/sign-in", json=OWNER)
    client.post("/sign-in", json=CUSTOMER)

    resp = client.post(
        "/customers/9000000001/recipe", json={"dishName": "Aloo Gobi", "peopleCount": 2}
    )
    assert resp.status_code == 200
    assert resp.json()["recipeTitle"] == "Aloo Gobi"
    assert "<h2>" in resp.json()["html"]

    assert client.post("/customers/9000000001/recipe", json={"dishName": ""}).status_code == 400

    [shop] = client.get("/customers/9000000001/shops").json()
    assert shop["phone"] == "9000000002"
    assert shop["storeType"] == "Supermarket"
    assert shop["distance"] > 0


def test_recipe_failure(tmp_path: Path) -> None:
    llm = FakeLLM(RecipeGenerationError("Failed to generate recipe. Please try again."))
    with TestClient(make_app(tmp_path, llm=llm)) as client:
        client.post("/sign-in", json=CUSTOMER)
        resp = client.post("/customers/9000000001/recipe", json={"dishName": "Dal"})
        assert resp.status_code == 502
        assert resp.json() == {"error": "Failed to generate recipe. Please try again."}


def test_order_flow(client: TestClient) -> None:
    id = signed_in(client)
    # Sending again updates the same order.
    again = client.post("/customers/9000000001/shops/9000000002/order").json()
    assert again["orderId"] == id

    board = client.get("/owners/9000000002/orders").json()
    assert [o["id"] for o in board["pending"]] == [id]
    assert board["active"] == []

    status = "/owners/9000000002/orders/%s/status"
    toggle = "/owners/9000000002/orders/%s/items/%d/toggle"

    assert client.post(toggle % (id, 0)).status_code == 409
    assert client.post(status % id, json={"status": "ready"}).status_code == 409
    assert client.post(status % id, json={"status": "shipped"}).status_code == 400
    assert client.post(status % "missing", json={"status": "accepted"}).status_code == 404

    board = client.post(status % id, json={"status": "accepted"}).json()
    assert [o["id"] for o in board["active"]] == [id]

    items = client.post(toggle % (id, 0)).json()
    assert items[0]["available"] is True
    assert "available" not in items[1]
    assert client.post(toggle % (id, 99)).status_code == 400

    [order] = client.get("/customers/9000000001/orders").json()
    assert order["status"] == "accepted"
    assert order["items"][0]["available"] is True

    client.post(status % id, json={"status": "ready"})
    board = client.post(status % id, json={"status": "completed"}).json()
    assert board == {"pending": [], "active": []}
    [order] = client.get("/customers/9000000001/orders").json()
    assert order["status"] == "completed"


def test_edit_shopping_list(client: TestClient) -> None:
    client.post("/sign-in", json=CUSTOMER)
    edit = {"VegetableShop": [{"name": "Onion", "quantity": 200, "unit": "g"}]}
    assert client.put("/customers/9000000001/shopping-list", json=edit).status_code == 409

    id = signed_in(client)
    assert client.put("/customers/9000000001/shopping-list", json=edit).status_code == 200
    [order] = client.get("/customers/9000000001/orders").json()
    assert order["id"] == id
    assert [i["name"] for i in order["items"]] == ["Onion"]


def test_notifications(client: TestClient) -> None:
    id = signed_in(client)
    resp = client.post(
        f"/owners/9000000002/orders/{id}/status", json={"status": "rejected"}
    )
    assert resp.status_code == 200

    resp = client.delete("/notifications/customer/9000000001/missing")
    titles = [n["title"] for n in resp.json()]
    assert titles == ["Welcome Back", "Order Not Accepted"]


def test_live_updates(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/live/owner/9000000002") as ws:
            ws.receive_json()

    client.post("/sign-in", json=OWNER)
    client.post("/sign-in", json=CUSTOMER)
    client.post("/customers/9000000001/recipe", json={"dishName": "Aloo Gobi"})
    client.get("/customers/9000000001/shops")

    with client.websocket_connect("/live/owner/9000000002") as ws:
        assert ws.receive_json() == {"type": "orders", "orders": []}
        client.post("/customers/9000000001/shops/9000000002/order")
        messages = [ws.receive_json(), ws.receive_json()]

    notification = next(m for m in messages if m["type"] == "notification")
    assert notification["event"] == "added"
    assert notification["notification"]["title"] == "New Order Received"
    orders = next(m for m in messages if m["type"] == "orders")
    assert orders["orders"][0]["customerName"] == "Asha"


def test_sessions_restored_from_cache(tmp_path: Path) -> None:
    store = MemoryDocumentStore()
    with TestClient(make_app(tmp_path, store)) as client:
        client.post("/sign-in", json=OWNER)
        client.post("/sign-in", json=CUSTOMER)
        client.post("/sign-out/customer/9000000001")

    with TestClient(make_app(tmp_path, store)) as client:
        assert client.get("/owners/9000000002/orders").status_code == 200
        assert client.get("/customers/9000000001/orders").status_code == 404


def test_send_to_nearest_and_actions(client: TestClient) -> None:
    client.post("/sign-in", json=OWNER)
    client.post("/sign-in", json={**OWNER, "phone": "9000000003", "lat": 14.0})
    client.post("/sign-in", json=CUSTOMER)
    assert client.post("/customers/9000000001/nearest/1/order").status_code == 409

    client.post("/customers/9000000001/recipe", json={"dishName": "Aloo Gobi"})
    resp = client.post("/customers/9000000001/nearest/1/order")
    assert len(resp.json()["orderIds"]) == 1

    [order] = client.get("/owners/9000000002/orders").json()["pending"]
    assert order["actions"] == ["accepted", "rejected"]
    assert client.get("/owners/9000000003/orders").json()["pending"] == []


def test_starts_with_malformed_cache(tmp_path: Path) -> None:
    (tmp_path / "portionPerfect_owner.json").write_text('{"name": "x"}')
    (tmp_path / "portionPerfect_customer.json").write_text('{"role": "customer"}')
    with TestClient(make_app(tmp_path)) as client:
        assert client.get("/owners/9000000002/orders").status_code == 404
        assert client.post("/sign-in", json=OWNER).status_code == 200
