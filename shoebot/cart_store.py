from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

from .document_store import Document, JsonDocumentStore, parse_document
from .models import Cart, CartItem, utcnow


class CartStore:
    """One cart document per user; every mutation is a single find-and-modify."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._docs = JsonDocumentStore(path)

    def get(self, user_id: str) -> Optional[Cart]:
        document = self._docs.get(user_id)
        return parse_document(Cart, document, "carts") if document else None

    def upsert_increment_or_append(self, user_id: str, line: CartItem) -> Tuple[Cart, bool]:
        """Purpose: Add a line, merging with an existing (product, size) line.
        Inputs/Outputs: Inputs are user_id and the new line; returns the updated cart
            and True when an existing line was incremented.
        Side Effects / State: Creates the cart document when absent.
        Dependencies: JsonDocumentStore.find_and_modify.
        Failure Modes: StoreError from persistence; the stored cart is unchanged then.
        If Removed: Duplicate (product, size) rows could appear in a cart.
        Testing Notes: Upsert the same line twice and expect quantity 2 in one row.
        """
        outcome = {"incremented": False}

        def update(current: Optional[Document]) -> Document:
            cart = parse_document(Cart, current, "carts") if current else Cart(user_id=user_id)
            existing = cart.find_line(line.product_id, line.size)
            if existing:
                existing.quantity += line.quantity
                outcome["incremented"] = True
            else:
                cart.items.append(line.model_copy())
            cart.updated_at = utcnow()
            return cart.model_dump(mode="json")

        stored = self._docs.find_and_modify(user_id, update)
        return parse_document(Cart, stored, "carts"), outcome["incremented"]

    def pull_line(self, user_id: str, product_id: str, size: float) -> Tuple[Optional[Cart], bool]:
        """Remove one line; the cart document is deleted when it empties."""
        outcome = {"removed": False}

        def update(current: Optional[Document]) -> Optional[Document]:
            if not current:
                return None
            cart = parse_document(Cart, current, "carts")
            remaining = [item for item in cart.items if not item.matches(product_id, size)]
            outcome["removed"] = len(remaining) != len(cart.items)
            if not remaining:
                return None
            cart.items = remaining
            cart.updated_at = utcnow()
            return cart.model_dump(mode="json")

        stored = self._docs.find_and_modify(user_id, update)
        return (parse_document(Cart, stored, "carts") if stored else None), outcome["removed"]

    def adjust_line(self, user_id: str, product_id: str, size: float, delta: int) -> Tuple[Optional[Cart], bool]:
        """Purpose: Change a line's quantity by delta, dropping lines that reach 0.
        Inputs/Outputs: Inputs are user_id, the line key, and +1/-1; returns the cart
            (None once deleted) and whether the line existed.
        Side Effects / State: May delete the whole cart document.
        Dependencies: JsonDocumentStore.find_and_modify.
        Failure Modes: A missing line leaves the document untouched.
        If Removed: The cart page cannot change quantities.
        Testing Notes: Decrement a quantity-1 line and expect the line to disappear.
        """
        outcome = {"found": False}

        def update(current: Optional[Document]) -> Optional[Document]:
            if not current:
                return None
            cart = parse_document(Cart, current, "carts")
            line = cart.find_line(product_id, size)
            if line is None:
                return current
            outcome["found"] = True
            if line.quantity + delta <= 0:
                cart.items = [item for item in cart.items if item is not line]
            else:
                line.quantity += delta
            if not cart.items:
                return None
            cart.updated_at = utcnow()
            return cart.model_dump(mode="json")

        stored = self._docs.find_and_modify(user_id, update)
        return (parse_document(Cart, stored, "carts") if stored else None), outcome["found"]

    def delete(self, user_id: str) -> bool:
        return self._docs.delete(user_id)
