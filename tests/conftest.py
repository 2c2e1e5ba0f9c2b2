from pathlib import Path
from typing import Dict, List

import pytest

from shoebot.cart_service import CartService
from shoebot.cart_store import CartStore
from shoebot.catalog import CatalogStore
from shoebot.checkout import OrderFinalizer
from shoebot.config import BASE_DIR, Settings
from shoebot.dialogue import DialogueOrchestrator
from shoebot.history_store import HistoryStore
from shoebot.order_store import OrderStore

CATALOG_PATH = BASE_DIR / "data" / "products.json"
PROMPTS_DIR = BASE_DIR / "prompts"


class FakeLanguageModel:
    """Scripted stand-in for the Gemini client."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls: List[Dict[str, object]] = []

    def complete(self, system_prompt, history, user_message):
        self.calls.append({"system_prompt": system_prompt, "history": list(history), "user_message": user_message})
        if self.error:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return "We have running, casual and skate shoes."


@pytest.fixture
def catalog():
    return CatalogStore.from_file(CATALOG_PATH)


@pytest.fixture
def carts(tmp_path):
    return CartStore(tmp_path / "carts.json")


@pytest.fixture
def orders(tmp_path):
    return OrderStore(tmp_path / "orders.json")


@pytest.fixture
def history_store(tmp_path):
    return HistoryStore(tmp_path / "chat_history.json")


@pytest.fixture
def cart_service(carts):
    return CartService(carts)


@pytest.fixture
def finalizer(carts, orders):
    return OrderFinalizer(carts, orders)


@pytest.fixture
def fake_llm():
    return FakeLanguageModel()


@pytest.fixture
def orchestrator(catalog, cart_service, finalizer, history_store, fake_llm):
    return DialogueOrchestrator(
        catalog=catalog,
        cart_service=cart_service,
        finalizer=finalizer,
        history_store=history_store,
        language_model=fake_llm,
        prompts_dir=PROMPTS_DIR,
        history_window=10,
    )


@pytest.fixture
def settings(tmp_path: Path):
    return Settings(
        gemini_api_key="",
        gemini_model="gemini-2.5-flash-lite",
        data_dir=tmp_path / "data",
        catalog_path=CATALOG_PATH,
        prompts_dir=PROMPTS_DIR,
        history_window=10,
        max_output_tokens=200,
    )
