"""Chat turn orchestration for the shoe-store assistant.

Role:
    Runs one user turn end to end: load history and cart, classify the message,
    apply the cart/order action or ask the language model, and store the turn.

Turn data contract (fields of TurnContext passed across steps):
    - history, cart, awaiting: loaded state; awaiting is what the last bot turn asked.
    - extracted, classification: entities and the routed intent.
    - reply, products, order_id: what the user gets back.
    - next_awaiting: conversation state written with this turn.

Step contracts:
    load_context:
        Reads history and cart; answers the very first turn with the opening question.
    classify:
        Extracts (product, size) and runs the intent rule chain.
    dispatch:
        Calls CartService / OrderFinalizer / the language model for the intent.
    enrich:
        After a model reply, appends the live cart to checkout prompts and derives the
        awaiting state from the model's wording.
    finalize:
        Appends user and bot messages plus next_awaiting in a single history write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from . import replies
from .cart_service import CartService
from .catalog import CatalogStore
from .checkout import OrderFinalizer
from .errors import EmptyCartError, InvalidSizeError, NotFoundError, UpstreamError
from .extraction import Size, awaiting_from_utterance, extract, is_checkout_prompt, last_bot_utterance
from .gemini_client import LanguageModel
from .history_store import HistoryStore
from .intents import Classification, Intent, classify
from .models import Awaiting, Cart, ChatHistory, ChatMessage, Product
from .prompt_loader import render_prompt
from .turn_runtime import TurnRunner, TurnStep

logger = logging.getLogger("shoebot.dialogue")

FALLBACK_PROMPT_FILE = "fallback_system.txt"
EMPTY_MODEL_REPLY = "Sorry, I didn't quite catch that. Could you rephrase?"


@dataclass
class TurnContext:
    """Mutable context passed through each turn step."""
    user_id: str
    user_message: str
    history: Optional[ChatHistory] = None
    cart: Optional[Cart] = None
    awaiting: Awaiting = field(default_factory=Awaiting)
    extracted: Tuple[Optional[str], Optional[Size]] = (None, None)
    classification: Optional[Classification] = None
    reply: str = ""
    products: List[Product] = field(default_factory=list)
    order_id: Optional[str] = None
    next_awaiting: Awaiting = field(default_factory=Awaiting)
    first_turn: bool = False

    @property
    def intent(self) -> Optional[Intent]:
        return self.classification.intent if self.classification else None


@dataclass
class TurnResult:
    """What one chat turn returns to the caller."""
    reply: str
    products: List[Product] = field(default_factory=list)
    cart: Optional[Cart] = None
    order_id: Optional[str] = None
    intent: Optional[Intent] = None


class DialogueOrchestrator:
    def __init__(
        self,
        catalog: CatalogStore,
        cart_service: CartService,
        finalizer: OrderFinalizer,
        history_store: HistoryStore,
        language_model: LanguageModel,
        prompts_dir: Path,
        history_window: int = 10,
    ) -> None:
        """Purpose: Wire the turn steps to their collaborators.
        Inputs/Outputs: Inputs are the catalog, cart service, order finalizer, history
            store, language model, prompt directory, and model history window.
        Side Effects / State: Renders the fallback system prompt from the catalog.
        Dependencies: TurnRunner/TurnStep and the step methods on this class.
        Failure Modes: A missing prompt file raises OSError at construction.
        If Removed: The chat endpoint has nothing to run.
        Testing Notes: Build with in-memory stores and a fake model.
        """
        self._catalog = catalog
        self._cart_service = cart_service
        self._finalizer = finalizer
        self._history_store = history_store
        self._llm = language_model
        self._history_window = history_window
        self._system_prompt = render_prompt(
            prompts_dir / FALLBACK_PROMPT_FILE,
            catalog=replies.catalog_lines(catalog.list_all()),
        )
        self._handlers: Dict[Intent, Callable[[TurnContext], None]] = {
            Intent.CHECKOUT_CONFIRM: self._handle_checkout,
            Intent.VIEW_CART: self._handle_view_cart,
            Intent.REMOVE_ITEM: self._handle_remove,
            Intent.REMOVE_ITEM_PROVIDE_SIZE: self._handle_remove,
            Intent.REMOVE_ITEM_NEED_SIZE: self._handle_remove_need_size,
            Intent.ADD_ITEM: self._handle_add,
            Intent.ADD_ITEM_PROVIDE_SIZE: self._handle_add,
            Intent.ADD_ITEM_NEED_SIZE: self._handle_add_need_size,
            Intent.ADD_CONFIRM_DUPLICATE: self._handle_confirm_duplicate,
            Intent.DECLINE_DUPLICATE: self._handle_decline_duplicate,
            Intent.UNRESOLVED: self._handle_fallback,
        }
        self._runner = TurnRunner(
            steps=[
                TurnStep("load_context", self._step_load_context),
                TurnStep("classify", self._step_classify, skip_if=lambda ctx: ctx.first_turn),
                TurnStep("dispatch", self._step_dispatch, skip_if=lambda ctx: ctx.first_turn),
                TurnStep("enrich", self._step_enrich, skip_if=lambda ctx: ctx.intent is not Intent.UNRESOLVED),
                TurnStep("finalize", self._step_finalize, always_run=True),
            ]
        )

    def handle_message(self, user_id: str, user_message: str) -> TurnResult:
        """Purpose: Run one chat turn and return the reply with structured data.
        Inputs/Outputs: Inputs are user_id and the message; output is a TurnResult.
        Side Effects / State: May mutate the cart, create an order, and append to history.
        Dependencies: TurnRunner.run.
        Failure Modes: Store and model failures are logged and answered with an
            apology; the aborted turn is not written to history.
        If Removed: Chat requests cannot be served.
        Testing Notes: "add Vans Old Skool" then "9" adds one pair in size 9.
        """
        context = TurnContext(user_id=user_id, user_message=user_message)
        logger.info("user=%s message=%s", user_id, user_message)
        try:
            self._runner.run(context)
        except UpstreamError:
            logger.exception("user=%s turn aborted intent=%s", user_id, context.intent)
            return TurnResult(reply=replies.APOLOGY, cart=context.cart, intent=context.intent)
        return TurnResult(
            reply=context.reply,
            products=context.products,
            cart=context.cart,
            order_id=context.order_id,
            intent=context.intent,
        )

    def _step_load_context(self, context: TurnContext) -> None:
        # The first turn always gets the opening question.
        context.history = self._history_store.get(context.user_id)
        if not context.history.messages:
            context.first_turn = True
            context.reply = replies.OPENING_QUESTION
            return
        context.cart = self._cart_service.get_cart(context.user_id)
        if context.history.awaiting is not None:
            context.awaiting = context.history.awaiting
        else:
            utterance = last_bot_utterance(context.history.messages)
            context.awaiting = awaiting_from_utterance(utterance, self._catalog.names())

    def _step_classify(self, context: TurnContext) -> None:
        context.extracted = extract(context.user_message, self._catalog.names())
        context.classification = classify(
            context.user_message,
            context.awaiting,
            context.extracted,
            context.cart,
            self._catalog.categories(),
        )
        logger.info(
            "user=%s intent=%s product=%s size=%s awaiting=%s",
            context.user_id,
            context.classification.intent.value,
            context.classification.product,
            context.classification.size,
            context.awaiting.kind,
        )

    def _step_dispatch(self, context: TurnContext) -> None:
        if context.classification is None:
            raise RuntimeError("dispatch ran before classify")
        self._handlers[context.classification.intent](context)

    def _step_enrich(self, context: TurnContext) -> None:
        """Purpose: Align a model reply with the real cart and conversation state.
        Inputs/Outputs: Input is TurnContext after the fallback; mutates reply and
            next_awaiting.
        Side Effects / State: None beyond the context.
        Dependencies: is_checkout_prompt, awaiting_from_utterance, replies.with_cart_summary.
        Failure Modes: Model wording outside the known prompts leaves no awaiting state.
        If Removed: "yes" after a model-written checkout prompt would not place the order.
        Testing Notes: A model reply "Would you like to proceed with placing this
            order?" gets the cart summary appended and opens confirm_checkout.
        """
        if is_checkout_prompt(context.reply):
            context.reply = replies.with_cart_summary(context.reply, context.cart)
            context.next_awaiting = Awaiting(kind="confirm_checkout")
            return
        context.next_awaiting = awaiting_from_utterance(context.reply, self._catalog.names())

    def _step_finalize(self, context: TurnContext) -> None:
        # History append is the last write of the turn.
        messages = [
            ChatMessage(role="user", text=context.user_message),
            ChatMessage(role="bot", text=context.reply),
        ]
        self._history_store.append(context.user_id, messages, context.next_awaiting)
        logger.info(
            "user=%s reply=%s next_awaiting=%s",
            context.user_id,
            context.reply.replace("\n", " | "),
            context.next_awaiting.kind,
        )

    def _resolve_product(self, context: TurnContext) -> Optional[Product]:
        if context.classification is None:
            raise RuntimeError("product lookup ran before classify")
        product = self._catalog.find_by_name(context.classification.product)
        if product is None:
            context.reply = replies.UNKNOWN_PRODUCT
        else:
            context.products = [product]
        return product

    def _handle_checkout(self, context: TurnContext) -> None:
        try:
            order = self._finalizer.finalize(context.user_id)
        except EmptyCartError as exc:
            context.reply = str(exc)
            return
        context.order_id = order.id
        context.cart = None
        context.reply = replies.order_placed(order)

    def _handle_view_cart(self, context: TurnContext) -> None:
        context.reply = replies.cart_summary(context.cart)

    def _handle_remove(self, context: TurnContext) -> None:
        product = self._resolve_product(context)
        if product is None:
            return
        size = context.classification.size
        try:
            change = self._cart_service.remove_item(context.user_id, product, size)
        except NotFoundError as exc:
            context.reply = str(exc)
            return
        context.cart = change.cart
        context.reply = replies.removed(product, size, change.cart)

    def _handle_remove_need_size(self, context: TurnContext) -> None:
        product = self._resolve_product(context)
        if product is None:
            return
        context.reply = replies.ask_size_for_remove(product)
        context.next_awaiting = Awaiting(kind="size_for_remove", product=product.name)

    def _handle_add(self, context: TurnContext) -> None:
        """Purpose: Add the classified product/size, or ask before adding a duplicate.
        Inputs/Outputs: Input is TurnContext with ADD_ITEM or ADD_ITEM_PROVIDE_SIZE.
        Side Effects / State: Adds a cart line unless the line already exists.
        Dependencies: CartService.add_item and the replies templates.
        Failure Modes: Invalid sizes are answered with the available sizes and the
            size prompt is reopened.
        If Removed: Adding from chat stops working.
        Testing Notes: Adding a line already in the cart leaves quantity unchanged and
            opens confirm_duplicate.
        """
        product = self._resolve_product(context)
        if product is None:
            return
        size = context.classification.size
        if context.classification.in_cart:
            context.reply = replies.duplicate_prompt(product, size)
            context.next_awaiting = Awaiting(kind="confirm_duplicate", product=product.name, size=size)
            return
        try:
            change = self._cart_service.add_item(context.user_id, product, size)
        except InvalidSizeError:
            context.reply = replies.invalid_size(product, size)
            context.next_awaiting = Awaiting(kind="size_for_add", product=product.name)
            return
        context.cart = change.cart
        if change.outcome == "incremented":
            context.reply = replies.added_another(product, size, change.cart)
        else:
            context.reply = replies.added(product, size)

    def _handle_add_need_size(self, context: TurnContext) -> None:
        product = self._resolve_product(context)
        if product is None:
            return
        context.reply = replies.ask_size_for_add(product)
        context.next_awaiting = Awaiting(kind="size_for_add", product=product.name)

    def _handle_confirm_duplicate(self, context: TurnContext) -> None:
        product = self._resolve_product(context)
        if product is None:
            return
        size = context.classification.size
        if size is None:
            self._handle_add_need_size(context)
            return
        try:
            change = self._cart_service.add_item(context.user_id, product, size)
        except InvalidSizeError:
            context.reply = replies.invalid_size(product, size)
            context.next_awaiting = Awaiting(kind="size_for_add", product=product.name)
            return
        context.cart = change.cart
        context.reply = replies.added_another(product, size, change.cart)

    def _handle_decline_duplicate(self, context: TurnContext) -> None:
        context.reply = replies.DECLINED_DUPLICATE

    def _handle_fallback(self, context: TurnContext) -> None:
        # Prior turns only; the new message is sent separately.
        window = context.history.messages[-self._history_window :] if self._history_window > 0 else []
        while window and window[0].role != "user":
            window = window[1:]
        turns = [{"role": message.role, "text": message.text} for message in window]
        reply = self._llm.complete(self._system_prompt, turns, context.user_message)
        context.reply = reply or EMPTY_MODEL_REPLY
        context.products = self._catalog.match_products(context.user_message, context.extracted[0])
