"""Rule-based intent classification for chat turns.

The rule chain is evaluated strictly in order and the first matching rule wins;
later rules rely on earlier ones having failed (e.g. the add rules never see a
message that mentions removal of a known product).

Inputs:
    user_text: the raw user message.
    awaiting: what the bot asked for on the previous turn.
    extracted: (product_name, size) from extraction.extract.
    cart: the user's current cart, or None.
    categories: catalog category names, used to tell browsing from checkout.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from .extraction import Size
from .models import Awaiting, Cart
from .utils import message_has_any_term, normalize_text


class Intent(str, Enum):
    CHECKOUT_CONFIRM = "CHECKOUT_CONFIRM"
    VIEW_CART = "VIEW_CART"
    REMOVE_ITEM = "REMOVE_ITEM"
    REMOVE_ITEM_NEED_SIZE = "REMOVE_ITEM_NEED_SIZE"
    REMOVE_ITEM_PROVIDE_SIZE = "REMOVE_ITEM_PROVIDE_SIZE"
    ADD_ITEM = "ADD_ITEM"
    ADD_ITEM_NEED_SIZE = "ADD_ITEM_NEED_SIZE"
    ADD_ITEM_PROVIDE_SIZE = "ADD_ITEM_PROVIDE_SIZE"
    ADD_CONFIRM_DUPLICATE = "ADD_CONFIRM_DUPLICATE"
    DECLINE_DUPLICATE = "DECLINE_DUPLICATE"
    UNRESOLVED = "UNRESOLVED"


AFFIRM_TERMS = {
    "yes",
    "yeah",
    "yep",
    "yup",
    "y",
    "sure",
    "ok",
    "okay",
    "confirm",
    "go ahead",
    "please do",
    "do it",
    "absolutely",
}
NEGATE_TERMS = {
    "no",
    "nope",
    "nah",
    "n",
    "cancel",
    "dont",
    "not now",
    "no thanks",
    "never mind",
    "nevermind",
}
HOLD_TERMS = {"not", "yet", "later", "wait"}
CHECKOUT_TERMS = {
    "checkout",
    "check out",
    "place my order",
    "place the order",
    "place order",
    "place an order",
    "complete my order",
    "complete the order",
}
VIEW_CART_PHRASES = [
    "view cart",
    "view my cart",
    "show cart",
    "show my cart",
    "show me my cart",
    "see my cart",
    "what is in my cart",
    "whats in my cart",
    "what is in the cart",
    "whats in the cart",
]
REMOVE_TERMS = {"remove", "delete", "take out", "drop", "get rid of"}
ADD_TERMS = {"add", "buy", "want", "take", "get", "put", "order", "purchase", "need", "grab", "id like", "i would like"}
SHORT_REPLY_MAX_WORDS = 4


@dataclass
class Classification:
    """Intent plus the product and size it applies to."""
    intent: Intent
    product: Optional[str] = None
    size: Optional[Size] = None
    in_cart: bool = False


def is_affirmation(normalized: str) -> bool:
    """Purpose: Detect short affirmative replies such as "yes" or "sure".
    Inputs/Outputs: Input is normalized text; output is bool.
    Side Effects / State: None.
    Dependencies: AFFIRM_TERMS, NEGATE_TERMS, message_has_any_term.
    Failure Modes: Longer sentences return False even when they agree.
    If Removed: Confirmation prompts can never be accepted.
    Testing Notes: "yes please" -> True; "yes but not now" -> False.
    """
    # Accept only short replies with an affirmative term and no negation.
    if not normalized or len(normalized.split()) > SHORT_REPLY_MAX_WORDS:
        return False
    if message_has_any_term(normalized, NEGATE_TERMS):
        return False
    return message_has_any_term(normalized, AFFIRM_TERMS)


def is_negation(normalized: str) -> bool:
    # Short rejections only; "no" inside a longer request is not a reply.
    if not normalized or len(normalized.split()) > SHORT_REPLY_MAX_WORDS:
        return False
    return message_has_any_term(normalized, NEGATE_TERMS)


def is_checkout_request(
    user_text: str,
    normalized: str,
    product: Optional[str] = None,
    categories: Iterable[str] = (),
) -> bool:
    """Purpose: Detect an explicit request to place the order now.
    Inputs/Outputs: Inputs are the raw and normalized message, the extracted product,
        and catalog categories; output is bool.
    Side Effects / State: None.
    Dependencies: CHECKOUT_TERMS, NEGATE_TERMS, HOLD_TERMS.
    Failure Modes: Requests phrased as questions are left to the model.
    If Removed: Only the confirmation prompt can lead to an order.
    Testing Notes: "checkout" -> True; "dont checkout yet", "how does checkout
        work?" and "check out the Brooks Ghost" -> False.
    """
    # Orders cannot be undone, so anything short of a plain request is not one.
    if not message_has_any_term(normalized, CHECKOUT_TERMS):
        return False
    if user_text.strip().endswith("?"):
        return False
    if message_has_any_term(normalized, NEGATE_TERMS | HOLD_TERMS):
        return False
    # "check out the Brooks Ghost" / "check out running shoes" means look at.
    if product or message_has_any_term(normalized, set(categories)):
        return False
    return True


def is_view_cart_request(normalized: str) -> bool:
    return any(phrase in normalized for phrase in VIEW_CART_PHRASES)


def _is_bare_size_reply(product: Optional[str], size: Optional[Size], awaiting: Awaiting) -> bool:
    # A size answer may repeat the awaited product but must not name another one.
    if size is None or not awaiting.is_size_prompt:
        return False
    return product is None or product == awaiting.product


def _line_in_cart(cart: Optional[Cart], product: Optional[str], size: Optional[Size]) -> bool:
    if cart is None or product is None or size is None:
        return False
    return any(item.name == product and float(item.size) == float(size) for item in cart.items)


def classify(
    user_text: str,
    awaiting: Optional[Awaiting],
    extracted: Tuple[Optional[str], Optional[Size]],
    cart: Optional[Cart] = None,
    categories: Iterable[str] = (),
) -> Classification:
    """Purpose: Map a user message to exactly one intent via the fixed rule chain.
    Inputs/Outputs: Inputs are the raw message, the awaiting state, extracted
        (product, size), the current cart, and catalog categories; output is a
        Classification.
    Side Effects / State: None; classification never touches a store.
    Dependencies: normalize_text and the keyword helpers above.
    Failure Modes: Unmatched messages return UNRESOLVED for the model fallback.
    If Removed: The orchestrator cannot route any cart action.
    Testing Notes: "add Vans Old Skool" -> ADD_ITEM_NEED_SIZE; then "9" with
        awaiting size_for_add -> ADD_ITEM_PROVIDE_SIZE.
    """
    awaiting = awaiting or Awaiting()
    product, size = extracted
    normalized = normalize_text(user_text)
    wants_remove = message_has_any_term(normalized, REMOVE_TERMS)
    wants_add = message_has_any_term(normalized, ADD_TERMS)
    bare_size = not (wants_add and product) and _is_bare_size_reply(product, size, awaiting)

    # 1. Checkout confirmation.
    if (awaiting.kind == "confirm_checkout" and is_affirmation(normalized)) or is_checkout_request(
        user_text, normalized, product, categories
    ):
        return Classification(Intent.CHECKOUT_CONFIRM)

    # 2. Cart view.
    if is_view_cart_request(normalized):
        return Classification(Intent.VIEW_CART)

    # 3-4. Removal naming a product.
    if wants_remove and product:
        if size is not None:
            return Classification(Intent.REMOVE_ITEM, product, size, _line_in_cart(cart, product, size))
        return Classification(Intent.REMOVE_ITEM_NEED_SIZE, product)

    # 5. Size answer to a removal prompt.
    if bare_size and awaiting.kind == "size_for_remove":
        target = awaiting.product
        return Classification(Intent.REMOVE_ITEM_PROVIDE_SIZE, target, size, _line_in_cart(cart, target, size))

    # 6-7. Answer to "already in your cart, add another?".
    if awaiting.kind == "confirm_duplicate":
        if is_affirmation(normalized):
            return Classification(Intent.ADD_CONFIRM_DUPLICATE, awaiting.product, awaiting.size, True)
        if is_negation(normalized):
            return Classification(Intent.DECLINE_DUPLICATE, awaiting.product, awaiting.size, True)

    # 8. Full add request.
    if wants_add and product and size is not None and not bare_size:
        return Classification(Intent.ADD_ITEM, product, size, _line_in_cart(cart, product, size))

    # 9. Size answer to an add prompt.
    if bare_size and not wants_remove and awaiting.kind == "size_for_add":
        target = awaiting.product
        return Classification(Intent.ADD_ITEM_PROVIDE_SIZE, target, size, _line_in_cart(cart, target, size))

    # 10. Add request missing the size.
    if wants_add and product and size is None:
        return Classification(Intent.ADD_ITEM_NEED_SIZE, product)

    # 11. Everything else goes to the language model.
    return Classification(Intent.UNRESOLVED, product, size)
