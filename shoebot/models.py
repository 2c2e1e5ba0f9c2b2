from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(BaseModel):
    """Catalog record; read-only reference data."""
    id: str
    name: str
    image: str = "https://placehold.co/300x300/cccccc/333333?text=No+Image"
    price: float = Field(ge=0)
    sizes: List[float]
    category: str
    description: str = "A comfortable and stylish shoe."

    @field_validator("sizes")
    @classmethod
    def _sizes_not_empty(cls, value: List[float]) -> List[float]:
        if not value:
            raise ValueError("product must offer at least one size")
        return value

    def offers_size(self, size: float) -> bool:
        return any(float(size) == float(available) for available in self.sizes)


class CartItem(BaseModel):
    """A single (product, size) line with details captured at add time."""
    product_id: str
    name: str
    image: str
    price: float = Field(ge=0)
    size: float
    quantity: int = Field(default=1, ge=1)

    def matches(self, product_id: str, size: float) -> bool:
        return self.product_id == product_id and float(self.size) == float(size)


class Cart(BaseModel):
    """Per-user cart aggregate; never persisted empty."""
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def find_line(self, product_id: str, size: float) -> Optional[CartItem]:
        for item in self.items:
            if item.matches(product_id, size):
                return item
        return None

    @property
    def total(self) -> float:
        return round(sum(item.price * item.quantity for item in self.items), 2)


class Order(BaseModel):
    """Immutable snapshot of a cart at checkout time."""
    id: str
    user_id: str
    items: List[CartItem]
    total_amount: float
    status: Literal["pending", "completed"] = "pending"
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def reference(self) -> str:
        return self.id[-6:]


class ChatMessage(BaseModel):
    """Persisted chat turn."""
    role: Literal["user", "bot"]
    text: str
    timestamp: datetime = Field(default_factory=utcnow)


AwaitingKind = Literal["none", "size_for_add", "size_for_remove", "confirm_duplicate", "confirm_checkout"]


class Awaiting(BaseModel):
    """What the bot asked for on its last turn."""
    kind: AwaitingKind = "none"
    product: Optional[str] = None
    size: Optional[float] = None

    @property
    def is_size_prompt(self) -> bool:
        return self.kind in ("size_for_add", "size_for_remove")


class ChatHistory(BaseModel):
    """Per-user transcript plus the explicit conversation state."""
    user_id: str
    messages: List[ChatMessage] = Field(default_factory=list)
    awaiting: Optional[Awaiting] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChatRequest(BaseModel):
    """Request payload for the chat API."""
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    success: bool = True
    response: str
    products: List[Product] = Field(default_factory=list)
    cart: Optional[Cart] = None
    order_id: Optional[str] = None


class CartAddRequest(BaseModel):
    """Direct add-to-cart payload."""
    product_id: str = Field(min_length=1)
    size: float
    quantity: int = Field(default=1, ge=1)


class CartUpdateRequest(BaseModel):
    """Direct line update payload for the cart page."""
    product_id: str = Field(min_length=1)
    size: float
    action: Literal["increment", "decrement", "remove"]
