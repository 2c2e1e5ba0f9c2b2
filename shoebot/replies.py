"""Bot reply texts.

Several of these are read back by extraction.awaiting_from_utterance for
histories stored without an explicit state, so the size and confirmation
prompts keep their "what size" / "already in your cart" wording.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .models import Cart, Order, Product
from .utils import format_price, format_size

OPENING_QUESTION = "What type of shoes do you need?"
APOLOGY = "Sorry, something went wrong while handling your request. Please try again in a moment."
EMPTY_CART = "Your cart is currently empty."
UNKNOWN_PRODUCT = "I couldn't find that product in our catalog. Could you check the name?"
DECLINED_DUPLICATE = "No problem, I've left your cart as it is."


def _sizes(sizes: Iterable[float]) -> str:
    return ", ".join(format_size(size) for size in sizes)


def ask_size_for_add(product: Product) -> str:
    return f"What size of the {product.name} would you like? Available sizes: {_sizes(product.sizes)}."


def ask_size_for_remove(product: Product) -> str:
    return f"What size of the {product.name} would you like to remove?"


def invalid_size(product: Product, size: float) -> str:
    return (
        f"Size {format_size(size)} isn't available for the {product.name}. "
        f"Available sizes: {_sizes(product.sizes)}. What size would you like?"
    )


def added(product: Product, size: float) -> str:
    return f"I've added the {product.name} in size {format_size(size)} to your cart."


def added_another(product: Product, size: float, cart: Optional[Cart]) -> str:
    line = cart.find_line(product.id, size) if cart else None
    quantity = line.quantity if line else 1
    return f"I've added another {product.name} in size {format_size(size)}. You now have {quantity} in your cart."


def duplicate_prompt(product: Product, size: float) -> str:
    return (
        f"The {product.name} in size {format_size(size)} is already in your cart. "
        "Would you like to add another one?"
    )


def removed(product: Product, size: float, cart: Optional[Cart]) -> str:
    text = f"I've removed the {product.name} in size {format_size(size)} from your cart."
    if cart is None:
        text += " Your cart is now empty."
    return text


def cart_summary(cart: Optional[Cart]) -> str:
    """Purpose: Render the cart as a plain-text list with a total.
    Inputs/Outputs: Input is the cart or None; output is reply text.
    Side Effects / State: None.
    Dependencies: format_price and format_size.
    Failure Modes: None; an absent or empty cart renders EMPTY_CART.
    If Removed: View-cart and checkout confirmation replies have no content.
    Testing Notes: Two lines render two bullets and the summed total.
    """
    if cart is None or not cart.items:
        return EMPTY_CART
    lines = [
        f"- {item.name} (Size: {format_size(item.size)}) - Quantity: {item.quantity} - Price: {format_price(item.price)}"
        for item in cart.items
    ]
    return "Here's what's in your cart:\n" + "\n".join(lines) + f"\nTotal: {format_price(cart.total)}"


def order_placed(order: Order) -> str:
    return (
        f"Thanks for ordering! Your cart has been cleared and your order ID is #{order.reference}. "
        f"Total: {format_price(order.total_amount)}."
    )


def with_cart_summary(reply: str, cart: Optional[Cart]) -> str:
    # Checkout prompts written by the model get the real cart appended.
    return f"{reply.rstrip()}\n\n{cart_summary(cart)}"


def catalog_lines(products: Iterable[Product]) -> str:
    return "\n".join(
        f"{product.name} (Category: {product.category}, Price: {format_price(product.price)}, "
        f"Sizes: {_sizes(product.sizes)})"
        for product in products
    )
