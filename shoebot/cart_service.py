from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .cart_store import CartStore
from .errors import InvalidSizeError, NotFoundError
from .models import Cart, CartItem, Product
from .utils import format_size

logger = logging.getLogger("shoebot.cart")


@dataclass
class CartChange:
    """Result of a cart mutation; cart is None once the document is gone."""
    cart: Optional[Cart]
    outcome: str


class CartService:
    """Cart mutations with existence checks and size validation."""

    def __init__(self, carts: CartStore) -> None:
        self._carts = carts

    def get_cart(self, user_id: str) -> Optional[Cart]:
        return self._carts.get(user_id)

    def add_item(self, user_id: str, product: Product, size: float, quantity: int = 1) -> CartChange:
        """Purpose: Put a product in the user's cart in the given size.
        Inputs/Outputs: Inputs are user_id, the product, size, and quantity; returns a
            CartChange with outcome "added" or "incremented".
        Side Effects / State: Upserts the cart document.
        Dependencies: CartStore.upsert_increment_or_append.
        Failure Modes: InvalidSizeError when the product does not come in that size;
            the cart is not touched in that case.
        If Removed: Neither the chat nor the cart API can add items.
        Testing Notes: Add the same product/size twice and expect one line, quantity 2.
        """
        # Validate against the product before touching the store.
        if not product.offers_size(size):
            raise InvalidSizeError(product.name, size, product.sizes)
        line = CartItem(
            product_id=product.id,
            name=product.name,
            image=product.image,
            price=product.price,
            size=float(size),
            quantity=quantity,
        )
        cart, incremented = self._carts.upsert_increment_or_append(user_id, line)
        outcome = "incremented" if incremented else "added"
        logger.info("user=%s cart_%s product=%s size=%s", user_id, outcome, product.id, format_size(size))
        return CartChange(cart=cart, outcome=outcome)

    def remove_item(self, user_id: str, product: Product, size: float) -> CartChange:
        cart, removed = self._carts.pull_line(user_id, product.id, size)
        if not removed:
            raise NotFoundError(f"{product.name} (size {format_size(size)}) is not in your cart.")
        logger.info("user=%s cart_removed product=%s size=%s", user_id, product.id, format_size(size))
        return CartChange(cart=cart, outcome="removed" if cart else "emptied")

    def increment_line(self, user_id: str, product_id: str, size: float) -> CartChange:
        cart, found = self._carts.adjust_line(user_id, product_id, size, 1)
        if not found:
            raise NotFoundError("Item not found in cart.")
        return CartChange(cart=cart, outcome="incremented")

    def decrement_line(self, user_id: str, product_id: str, size: float) -> CartChange:
        """Lower a line's quantity by one; a line at quantity 1 is removed."""
        cart, found = self._carts.adjust_line(user_id, product_id, size, -1)
        if not found:
            raise NotFoundError("Item not found in cart.")
        return CartChange(cart=cart, outcome="decremented" if cart else "emptied")

    def remove_line(self, user_id: str, product_id: str, size: float) -> CartChange:
        cart, removed = self._carts.pull_line(user_id, product_id, size)
        if not removed:
            raise NotFoundError("Item not found in cart.")
        return CartChange(cart=cart, outcome="removed" if cart else "emptied")

    def clear(self, user_id: str) -> bool:
        existed = self._carts.delete(user_id)
        logger.info("user=%s cart_cleared existed=%s", user_id, existed)
        return existed
