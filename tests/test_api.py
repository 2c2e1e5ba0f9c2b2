import pytest
from fastapi.testclient import TestClient

from shoebot.app import create_app
from shoebot.errors import LanguageModelError
from tests.conftest import FakeLanguageModel

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def llm():
    return FakeLanguageModel()


@pytest.fixture
def client(settings, llm):
    return TestClient(create_app(settings, language_model=llm))


def add_vans(client, size=9):
    return client.post("/api/cart", json={"product_id": "p007", "size": size}, headers=HEADERS)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "shoebot", "products": 12}


def test_requests_without_user_are_rejected(client):
    for method, path in [("get", "/api/cart"), ("delete", "/api/cart"), ("post", "/api/checkout"), ("get", "/api/orders")]:
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Authentication required"}
    response = client.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 401


def test_empty_chat_message_is_invalid(client):
    response = client.post("/api/chat", json={"message": ""}, headers=HEADERS)
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Invalid request."


def test_chat_conversation(client):
    first = client.post("/api/chat", json={"message": "hello"}, headers=HEADERS)
    assert first.status_code == 200
    assert first.json()["response"] == "What type of shoes do you need?"

    second = client.post("/api/chat", json={"message": "add Vans Old Skool size 9"}, headers=HEADERS)
    body = second.json()
    assert body["success"] is True
    assert body["response"] == "I've added the Vans Old Skool in size 9 to your cart."
    assert body["cart"]["items"][0]["product_id"] == "p007"
    assert [product["id"] for product in body["products"]] == ["p007"]

    history = client.get("/api/chat-history", headers=HEADERS).json()["data"]
    assert [message["role"] for message in history["messages"]] == ["user", "bot", "user", "bot"]


def test_chat_checkout_returns_order_id(client):
    client.post("/api/chat", json={"message": "hello"}, headers=HEADERS)
    client.post("/api/chat", json={"message": "add Vans Old Skool size 9"}, headers=HEADERS)
    body = client.post("/api/chat", json={"message": "checkout"}, headers=HEADERS).json()
    assert body["order_id"]
    assert body["cart"] is None
    orders = client.get("/api/orders", headers=HEADERS).json()["data"]
    assert [order["id"] for order in orders] == [body["order_id"]]


def test_chat_model_failure_is_an_apology(client, llm):
    client.post("/api/chat", json={"message": "hello"}, headers=HEADERS)
    llm.error = LanguageModelError("timeout")
    response = client.post("/api/chat", json={"message": "what do you sell?"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["response"].startswith("Sorry, something went wrong")


def test_products_filtered_by_category(client):
    all_products = client.get("/api/products").json()["data"]
    assert len(all_products) == 12
    skate = client.get("/api/products", params={"category": "skate"}).json()["data"]
    assert [product["name"] for product in skate] == ["Vans Old Skool"]


def test_empty_cart_view(client):
    body = client.get("/api/cart", headers=HEADERS).json()
    assert body == {"success": True, "data": {"user_id": "user-1", "items": []}}


def test_add_to_cart_merges_lines(client):
    assert add_vans(client).json()["message"] == "Item added to cart"
    data = add_vans(client).json()["data"]
    assert len(data["items"]) == 1
    assert data["items"][0]["quantity"] == 2


def test_add_to_cart_errors(client):
    response = add_vans(client, size=13)
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Size 13 is not available for Vans Old Skool."}

    response = client.post("/api/cart", json={"product_id": "nope", "size": 9}, headers=HEADERS)
    assert response.status_code == 404
    assert response.json()["message"] == "Product not found."

    response = client.post("/api/cart", json={"product_id": "p007"}, headers=HEADERS)
    assert response.status_code == 400


def test_update_cart_lines(client):
    add_vans(client)
    payload = {"product_id": "p007", "size": 9, "action": "increment"}
    data = client.put("/api/cart", json=payload, headers=HEADERS).json()["data"]
    assert data["items"][0]["quantity"] == 2

    payload["action"] = "decrement"
    client.put("/api/cart", json=payload, headers=HEADERS)
    body = client.put("/api/cart", json=payload, headers=HEADERS).json()
    assert body["success"] is True
    assert body["data"] is None

    response = client.put("/api/cart", json=payload, headers=HEADERS)
    assert response.status_code == 404
    assert response.json()["message"] == "Item not found in cart."


def test_update_cart_rejects_unknown_action(client):
    add_vans(client)
    response = client.put("/api/cart", json={"product_id": "p007", "size": 9, "action": "double"}, headers=HEADERS)
    assert response.status_code == 400


def test_clear_cart(client):
    add_vans(client)
    assert client.delete("/api/cart", headers=HEADERS).json()["message"] == "Cart has been cleared."
    assert client.delete("/api/cart", headers=HEADERS).json()["message"] == "Cart was already empty."


def test_checkout(client):
    response = client.post("/api/checkout", headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["message"] == "Your cart is currently empty."

    add_vans(client)
    add_vans(client, size=10)
    body = client.post("/api/checkout", headers=HEADERS).json()
    assert body["success"] is True
    assert body["total_amount"] == 130.0
    assert body["reference"] == body["order_id"][-6:]
    assert client.get("/api/cart", headers=HEADERS).json()["data"]["items"] == []

    orders = client.get("/api/orders", headers=HEADERS).json()["data"]
    assert orders[0]["status"] == "pending"
    assert len(orders[0]["items"]) == 2


def test_state_is_persisted_under_data_dir(settings, llm):
    client = TestClient(create_app(settings, language_model=llm))
    add_vans(client)
    assert (settings.data_dir / "carts.json").exists()

    restarted = TestClient(create_app(settings, language_model=llm))
    assert restarted.get("/api/cart", headers=HEADERS).json()["data"]["items"][0]["product_id"] == "p007"
