from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from .document_store import JsonDocumentStore, parse_document
from .models import Order


class OrderStore:
    """Append-only order log keyed by order id."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._docs = JsonDocumentStore(path)

    def create(self, order: Order) -> Order:
        stored = self._docs.put(order.id, order.model_dump(mode="json"))
        return parse_document(Order, stored, "orders")

    def get(self, order_id: str) -> Optional[Order]:
        document = self._docs.get(order_id)
        return parse_document(Order, document, "orders") if document else None

    def delete(self, order_id: str) -> bool:
        # Only used to roll back an order whose checkout did not complete.
        return self._docs.delete(order_id)

    def list_for_user(self, user_id: str) -> List[Order]:
        documents = self._docs.find(lambda doc: doc.get("user_id") == user_id)
        orders = [parse_document(Order, doc, "orders") for doc in documents]
        return sorted(orders, key=lambda order: order.created_at)
