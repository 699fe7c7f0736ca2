from __future__ import annotations

from functools import singledispatch
from typing import TYPE_CHECKING, Union
from uuid import UUID  # noqa: TC003

import structlog
from pydantic import Field

from shoppingcart.exceptions import (
    CorruptedEventLogError,
    MissingLineForRemovalError,
    NegativeQuantityError,
    NotEnoughItemsInCartError,
)
from shoppingcart.immutablemodel import (
    Aggregate,
    DomainEvent,
    Immutable,
    aggregate_projector,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = structlog.get_logger(__name__)


class CartItem(Immutable, frozen=True):
    product_id: int
    price: int


class CartLine(Immutable, frozen=True):
    item: CartItem
    quantity: int


class ShoppingCart(Aggregate, frozen=True):
    user_id: int
    lines: tuple[CartLine, ...] = ()

    @classmethod
    def empty(cls, user_id: int, aggregate_id: UUID) -> ShoppingCart:
        return cls(user_id=user_id, aggregate_id=aggregate_id)

    @property
    def items(self) -> dict[int, CartLine]:
        """Lines of the cart by product ID, as a new dict on each access."""
        return {line.item.product_id: line for line in self.lines}

    def line(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.item.product_id == product_id:
                return line
        return None

    def quantity(self, product_id: int) -> int:
        line = self.line(product_id)
        return 0 if line is None else line.quantity

    def satisfies_minimum_quantity(self, product_id: int, minimum_quantity: int) -> bool:
        return self.quantity(product_id) >= minimum_quantity

    def at_position(self, pos: int) -> ShoppingCart:
        return self.model_copy(update={"pos": pos})

    def add(self, item: CartItem, quantity: int) -> ShoppingCart:
        """Returns a cart with quantity more of the item.

        A product already in the cart keeps the price it was first added at.
        """
        line = self.line(item.product_id)
        if line is None:
            lines = (*self.lines, CartLine(item=item, quantity=quantity))
        else:
            lines = self._replace_line(
                line, line.model_copy(update={"quantity": line.quantity + quantity})
            )
        return self.model_copy(update={"lines": lines})

    def subtract(self, product_id: int, quantity: int) -> ShoppingCart:
        """Returns a cart with quantity less of the product.

        The line is dropped when its quantity reaches zero. Subtracting
        nothing from a product that is not in the cart leaves it unchanged.
        """
        line = self.line(product_id)
        if line is None:
            if quantity == 0:
                return self
            raise MissingLineForRemovalError(self.aggregate_id, product_id, self.pos)
        remaining = line.quantity - quantity
        if remaining < 0:
            raise NegativeQuantityError(
                self.aggregate_id, product_id, self.pos, remaining
            )
        if remaining:
            lines = self._replace_line(
                line, line.model_copy(update={"quantity": remaining})
            )
        else:
            lines = tuple(ln for ln in self.lines if ln is not line)
        return self.model_copy(update={"lines": lines})

    def _replace_line(self, old: CartLine, new: CartLine) -> tuple[CartLine, ...]:
        return tuple(new if ln is old else ln for ln in self.lines)


class Command(Immutable, frozen=True):
    aggregate_id: UUID


class AddItem(Command, frozen=True):
    product_id: int
    quantity: int
    price: int


class RemoveItem(Command, frozen=True):
    product_id: int
    quantity: int = Field(ge=0)


class ItemAdded(DomainEvent, frozen=True):
    product_id: int
    quantity: int
    price: int


class ItemRemoved(DomainEvent, frozen=True):
    product_id: int
    quantity: int


CartCommand = Union[AddItem, RemoveItem]
CartEvent = Union[ItemAdded, ItemRemoved]


class NotEnoughItemsInCart(Immutable, frozen=True):
    cart_id: UUID
    product_id: int
    required_quantity: int
    actual_quantity: int

    def to_exception(self) -> NotEnoughItemsInCartError:
        return NotEnoughItemsInCartError(
            cart_id=self.cart_id,
            product_id=self.product_id,
            required_quantity=self.required_quantity,
            actual_quantity=self.actual_quantity,
        )


class Accepted(Immutable, frozen=True):
    event: CartEvent


class Rejected(Immutable, frozen=True):
    reason: NotEnoughItemsInCart


CommandResult = Union[Accepted, Rejected]


@singledispatch
def mutate_cart(event: DomainEvent, cart: ShoppingCart) -> ShoppingCart:
    """Returns the cart that results from applying the event to the given cart."""
    msg = f"Unsupported cart event: {type(event).__name__}"
    raise TypeError(msg)


@mutate_cart.register
def _(event: ItemAdded, cart: ShoppingCart) -> ShoppingCart:
    item = CartItem(product_id=event.product_id, price=event.price)
    return cart.at_position(event.pos).add(item, event.quantity)


@mutate_cart.register
def _(event: ItemRemoved, cart: ShoppingCart) -> ShoppingCart:
    return cart.at_position(event.pos).subtract(event.product_id, event.quantity)


project_cart = aggregate_projector(mutate_cart)


def reconstruct(
    user_id: int, aggregate_id: UUID, events: Iterable[DomainEvent]
) -> ShoppingCart:
    """Rebuilds the current state of a cart from its recorded events.

    The events are expected to belong to the cart and to be in position
    order. They are neither filtered nor sorted here.
    """
    try:
        return project_cart(ShoppingCart.empty(user_id, aggregate_id), events)
    except CorruptedEventLogError as e:
        logger.error(
            "Corrupted cart event log",
            cart_id=str(aggregate_id),
            user_id=user_id,
            error=str(e),
        )
        raise


@singledispatch
def handle(command: Command, cart: ShoppingCart) -> CommandResult:
    """Decides which event, if any, the command results in for the given cart."""
    msg = f"Unsupported cart command: {type(command).__name__}"
    raise TypeError(msg)


@handle.register
def _(command: AddItem, cart: ShoppingCart) -> CommandResult:
    return Accepted(
        event=ItemAdded(
            aggregate_id=command.aggregate_id,
            pos=cart.pos + 1,
            product_id=command.product_id,
            quantity=command.quantity,
            price=command.price,
        )
    )


@handle.register
def _(command: RemoveItem, cart: ShoppingCart) -> CommandResult:
    if not cart.satisfies_minimum_quantity(command.product_id, command.quantity):
        return Rejected(
            reason=NotEnoughItemsInCart(
                cart_id=command.aggregate_id,
                product_id=command.product_id,
                required_quantity=command.quantity,
                actual_quantity=cart.quantity(command.product_id),
            )
        )
    return Accepted(
        event=ItemRemoved(
            aggregate_id=command.aggregate_id,
            pos=cart.pos + 1,
            product_id=command.product_id,
            quantity=command.quantity,
        )
    )
