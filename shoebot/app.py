from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .cart_service import CartService
from .cart_store import CartStore
from .catalog import CatalogStore
from .checkout import OrderFinalizer
from .config import Settings, load_settings
from .dialogue import DialogueOrchestrator
from .errors import StoreError, UserFacingError
from .gemini_client import GeminiClient, LanguageModel
from .history_store import HistoryStore
from .models import CartAddRequest, CartUpdateRequest, ChatRequest, ChatResponse, Product
from .order_store import OrderStore

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("shoebot").setLevel(log_level)
logger = logging.getLogger("shoebot.api")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)


@dataclass
class Services:
    """Everything the routes need, built once per app."""
    catalog: CatalogStore
    cart_service: CartService
    finalizer: OrderFinalizer
    orders: OrderStore
    history: HistoryStore
    dialogue: DialogueOrchestrator


def build_services(settings: Settings, language_model: Optional[LanguageModel] = None) -> Services:
    """Purpose: Construct stores, services, and the orchestrator from settings.
    Inputs/Outputs: Inputs are Settings and an optional model; returns Services.
    Side Effects / State: Loads the catalog and opens the JSON stores under data_dir.
    Dependencies: CatalogStore, the stores, CartService, OrderFinalizer, GeminiClient.
    Failure Modes: StoreError for an unreadable catalog; ValueError when no model is
        given and GEMINI_API_KEY is missing.
    If Removed: create_app cannot wire the routes.
    Testing Notes: Pass a fake model and a tmp data_dir.
    """
    # The Gemini client is only built when no model is injected.
    catalog = CatalogStore.from_file(settings.catalog_path)
    carts = CartStore(settings.data_dir / "carts.json")
    orders = OrderStore(settings.data_dir / "orders.json")
    history = HistoryStore(settings.data_dir / "chat_history.json")
    cart_service = CartService(carts)
    finalizer = OrderFinalizer(carts, orders)
    dialogue = DialogueOrchestrator(
        catalog=catalog,
        cart_service=cart_service,
        finalizer=finalizer,
        history_store=history,
        language_model=language_model or GeminiClient(settings),
        prompts_dir=settings.prompts_dir,
        history_window=settings.history_window,
    )
    return Services(catalog, cart_service, finalizer, orders, history, dialogue)


class UnauthenticatedError(Exception):
    pass


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    # Session issuance lives elsewhere; the caller forwards the user id.
    if not x_user_id or not x_user_id.strip():
        raise UnauthenticatedError()
    return x_user_id.strip()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def create_app(settings: Optional[Settings] = None, language_model: Optional[LanguageModel] = None) -> FastAPI:
    """Purpose: Build the FastAPI app with chat, catalog, cart, and checkout routes.
    Inputs/Outputs: Inputs are optional Settings and model; returns the FastAPI app.
    Side Effects / State: Builds services (see build_services).
    Dependencies: FastAPI, build_services.
    Failure Modes: Propagates build_services errors at startup.
    If Removed: The assistant has no HTTP surface.
    Testing Notes: Use TestClient with a fake model and an X-User-Id header.
    """
    settings = settings or load_settings()
    services = build_services(settings, language_model)
    app = FastAPI(title="Shoe Store Assistant")
    app.state.services = services

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("path=%s validation_error=%s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Invalid request.", "detail": exc.errors()},
        )

    @app.exception_handler(UnauthenticatedError)
    async def unauthenticated_handler(request: Request, exc: UnauthenticatedError) -> JSONResponse:
        return _error(status.HTTP_401_UNAUTHORIZED, "Authentication required")

    @app.exception_handler(UserFacingError)
    async def user_error_handler(request: Request, exc: UserFacingError) -> JSONResponse:
        return _error(exc.status_code, str(exc))

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("path=%s store_error=%s", request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage is unavailable, please try again.")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "service": "shoebot", "products": len(services.catalog.list_all())}

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(request: ChatRequest, user_id: str = Depends(current_user)) -> ChatResponse:
        """Purpose: Handle one chat message for the calling user.
        Inputs/Outputs: Input is ChatRequest; output is ChatResponse.
        Side Effects / State: Cart, order, and history changes made by the turn.
        Dependencies: DialogueOrchestrator.handle_message.
        Failure Modes: Upstream failures come back as an apology reply, not an error.
        If Removed: Core chat functionality is unavailable.
        Testing Notes: Post two messages and verify the opening question comes first.
        """
        result = services.dialogue.handle_message(user_id, request.message)
        return ChatResponse(
            response=result.reply,
            products=result.products,
            cart=result.cart,
            order_id=result.order_id,
        )

    @app.get("/api/chat-history")
    def chat_history(user_id: str = Depends(current_user)) -> dict:
        history = services.history.get(user_id)
        return {"success": True, "data": history.model_dump(mode="json")}

    @app.get("/api/products")
    def list_products(category: Optional[str] = None) -> dict:
        products: List[Product]
        if category:
            products = services.catalog.list_by_category(category)
        else:
            products = services.catalog.list_all()
        return {"success": True, "data": [product.model_dump() for product in products]}

    @app.get("/api/cart")
    def get_cart(user_id: str = Depends(current_user)) -> dict:
        cart = services.cart_service.get_cart(user_id)
        data = cart.model_dump(mode="json") if cart else {"user_id": user_id, "items": []}
        return {"success": True, "data": data}

    @app.post("/api/cart")
    def add_to_cart(payload: CartAddRequest, user_id: str = Depends(current_user)) -> JSONResponse:
        product = services.catalog.get(payload.product_id)
        if product is None:
            return _error(status.HTTP_404_NOT_FOUND, "Product not found.")
        change = services.cart_service.add_item(user_id, product, payload.size, payload.quantity)
        return JSONResponse(
            content={"success": True, "message": "Item added to cart", "data": change.cart.model_dump(mode="json")}
        )

    @app.put("/api/cart")
    def update_cart(payload: CartUpdateRequest, user_id: str = Depends(current_user)) -> dict:
        """Purpose: Increment, decrement, or remove one cart line from the cart page.
        Inputs/Outputs: Input is CartUpdateRequest; output is the updated cart or null.
        Side Effects / State: Mutates the cart; deletes it when the last line goes.
        Dependencies: CartService line operations.
        Failure Modes: Missing line -> 404 via NotFoundError.
        If Removed: The cart page cannot change quantities.
        Testing Notes: Decrement a quantity-1 line and expect data null.
        """
        operations = {
            "increment": services.cart_service.increment_line,
            "decrement": services.cart_service.decrement_line,
            "remove": services.cart_service.remove_line,
        }
        change = operations[payload.action](user_id, payload.product_id, payload.size)
        data = change.cart.model_dump(mode="json") if change.cart else None
        return {"success": True, "message": "Cart updated", "data": data}

    @app.delete("/api/cart")
    def clear_cart(user_id: str = Depends(current_user)) -> dict:
        existed = services.cart_service.clear(user_id)
        message = "Cart has been cleared." if existed else "Cart was already empty."
        return {"success": True, "message": message, "data": None}

    @app.post("/api/checkout")
    def checkout(user_id: str = Depends(current_user)) -> dict:
        order = services.finalizer.finalize(user_id)
        return {
            "success": True,
            "message": "Order placed successfully!",
            "order_id": order.id,
            "reference": order.reference,
            "total_amount": order.total_amount,
        }

    @app.get("/api/orders")
    def list_orders(user_id: str = Depends(current_user)) -> dict:
        orders = services.orders.list_for_user(user_id)
        return {"success": True, "data": [order.model_dump(mode="json") for order in orders]}

    return app
