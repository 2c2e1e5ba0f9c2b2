from __future__ import annotations

from .utils import format_size


class ShopError(Exception):
    """Base class for all assistant errors."""


class UserFacingError(ShopError):
    """Condition the user can fix; rendered as a plain chat reply."""

    status_code = 400


class InvalidSizeError(UserFacingError):
    def __init__(self, product_name: str, size: float, available: list) -> None:
        self.product_name = product_name
        self.size = size
        self.available = list(available)
        super().__init__(f"Size {format_size(size)} is not available for {product_name}.")


class NotFoundError(UserFacingError):
    status_code = 404


class EmptyCartError(UserFacingError):
    def __init__(self) -> None:
        super().__init__("Your cart is currently empty.")


class UpstreamError(ShopError):
    """A collaborator (store or model) failed; logged and never retried."""


class StoreError(UpstreamError):
    pass


class LanguageModelError(UpstreamError):
    pass
