from __future__ import annotations

import logging
import uuid

from .cart_store import CartStore
from .errors import EmptyCartError, StoreError
from .models import Order
from .order_store import OrderStore

logger = logging.getLogger("shoebot.checkout")

ORDER_STATUS = "pending"


class OrderFinalizer:
    """Turns a cart into an order and removes the cart."""

    def __init__(self, carts: CartStore, orders: OrderStore) -> None:
        self._carts = carts
        self._orders = orders

    def finalize(self, user_id: str) -> Order:
        """Purpose: Snapshot the user's cart into a new pending order.
        Inputs/Outputs: Input is user_id; returns the created Order.
        Side Effects / State: Creates one order document and deletes the cart document.
        Dependencies: CartStore.get/delete and OrderStore.create/delete.
        Failure Modes: EmptyCartError when there is no cart or it has no lines (nothing
            is created); if the cart cannot be deleted the new order is removed again
            and the StoreError propagates.
        If Removed: Checkout from chat and from the cart page stops working.
        Testing Notes: Cart {A x2 @10, B x1 @20} -> total 40.00 and no cart afterwards.
        """
        # Total is computed once from the snapshot and never recomputed.
        cart = self._carts.get(user_id)
        if cart is None or not cart.items:
            raise EmptyCartError()
        items = [item.model_copy() for item in cart.items]
        total = round(sum(item.price * item.quantity for item in items), 2)
        order = self._orders.create(
            Order(
                id=uuid.uuid4().hex,
                user_id=user_id,
                items=items,
                total_amount=total,
                status=ORDER_STATUS,
            )
        )
        try:
            self._carts.delete(user_id)
        except StoreError:
            logger.error("user=%s order=%s cart delete failed, rolling back order", user_id, order.id)
            self._orders.delete(order.id)
            raise
        logger.info("user=%s order=%s total=%.2f lines=%s", user_id, order.id, total, len(items))
        return order
