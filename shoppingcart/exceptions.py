from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


class ShoppingCartError(Exception):
    pass


class NotEnoughItemsInCartError(ShoppingCartError):
    def __init__(
        self,
        cart_id: UUID,
        product_id: int,
        required_quantity: int,
        actual_quantity: int,
    ) -> None:
        self.cart_id = cart_id
        self.product_id = product_id
        self.required_quantity = required_quantity
        self.actual_quantity = actual_quantity
        super().__init__(
            f"Cart {cart_id} has {actual_quantity} of product {product_id}, "
            f"cannot remove {required_quantity}"
        )


class CorruptedEventLogError(ShoppingCartError):
    """Raised when recorded events cannot be applied to the cart they belong to."""


class MissingLineForRemovalError(CorruptedEventLogError):
    def __init__(self, cart_id: UUID, product_id: int, pos: int) -> None:
        self.cart_id = cart_id
        self.product_id = product_id
        self.pos = pos
        super().__init__(
            f"Event at position {pos} of cart {cart_id} removes product "
            f"{product_id} which is not in the cart"
        )


class NegativeQuantityError(CorruptedEventLogError):
    def __init__(
        self, cart_id: UUID, product_id: int, pos: int, quantity: int
    ) -> None:
        self.cart_id = cart_id
        self.product_id = product_id
        self.pos = pos
        self.quantity = quantity
        super().__init__(
            f"Event at position {pos} of cart {cart_id} leaves product "
            f"{product_id} with quantity {quantity}"
        )


class PositionConflictError(ShoppingCartError):
    def __init__(self, cart_id: UUID, pos: int) -> None:
        self.cart_id = cart_id
        self.pos = pos
        super().__init__(f"Cart {cart_id} already has an event at position {pos}")


class ConcurrentModificationError(ShoppingCartError):
    def __init__(self, cart_id: UUID, attempts: int) -> None:
        self.cart_id = cart_id
        self.attempts = attempts
        super().__init__(
            f"Cart {cart_id} kept changing, gave up after {attempts} attempts"
        )
