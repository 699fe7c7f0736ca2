from __future__ import annotations

from typing import TYPE_CHECKING, Callable, ClassVar, cast
from uuid import UUID, uuid4

import structlog

from eventsourcing.application import Application
from eventsourcing.persistence import IntegrityError
from eventsourcing.utils import EnvType, get_topic
from shoppingcart.domainmodel import (
    AddItem,
    CartCommand,
    CartEvent,
    Rejected,
    RemoveItem,
    ShoppingCart,
    handle,
    reconstruct,
)
from shoppingcart.exceptions import ConcurrentModificationError, PositionConflictError
from shoppingcart.persistence import CartEventMapper, OrjsonTranscoder

if TYPE_CHECKING:
    from shoppingcart.immutablemodel import DomainEvent

logger = structlog.get_logger(__name__)


class ShoppingCarts(Application[UUID]):
    """Records cart events and runs cart commands against reconstructed carts.

    Events are appended one at a time. The recorder refuses a second event
    at the same position of a cart, which is reported as a position
    conflict. Commands that meet a conflict are retried against a freshly
    reconstructed cart, up to MAX_APPEND_ATTEMPTS times.
    """

    env: ClassVar[dict[str, str]] = {
        "TRANSCODER_TOPIC": get_topic(OrjsonTranscoder),
        "MAPPER_TOPIC": get_topic(CartEventMapper),
        "MAX_APPEND_ATTEMPTS": "3",
    }

    def __init__(
        self,
        env: EnvType | None = None,
        id_factory: Callable[[], UUID] = uuid4,
    ) -> None:
        super().__init__(env=env)
        self.id_factory = id_factory
        self.max_append_attempts = int(self.env.get("MAX_APPEND_ATTEMPTS", "3"))
        if self.max_append_attempts < 1:
            self.close()
            msg = "MAX_APPEND_ATTEMPTS must be at least 1"
            raise ValueError(msg)

    def create_cart(self) -> UUID:
        # Nothing is recorded until the first item is added.
        return self.id_factory()

    def get_events(self, cart_id: UUID) -> tuple[CartEvent, ...]:
        return cast(tuple[CartEvent, ...], tuple(self.events.get(cart_id)))

    def get_cart(self, user_id: int, cart_id: UUID) -> ShoppingCart:
        return reconstruct(user_id, cart_id, self.get_events(cart_id))

    def append(self, event: DomainEvent) -> int:
        try:
            self.events.put([event])
        except IntegrityError:
            raise PositionConflictError(event.aggregate_id, event.pos) from None
        logger.debug(
            "Appended cart event",
            cart_id=str(event.aggregate_id),
            pos=event.pos,
            event_type=type(event).__name__,
        )
        return event.pos

    def execute(self, user_id: int, command: CartCommand) -> CartEvent:
        cart_id = command.aggregate_id
        for attempt in range(1, self.max_append_attempts + 1):
            cart = self.get_cart(user_id, cart_id)
            result = handle(command, cart)
            if isinstance(result, Rejected):
                logger.info(
                    "Cart command rejected",
                    cart_id=str(cart_id),
                    command_type=type(command).__name__,
                    product_id=result.reason.product_id,
                    required_quantity=result.reason.required_quantity,
                    actual_quantity=result.reason.actual_quantity,
                )
                raise result.reason.to_exception()
            try:
                self.append(result.event)
            except PositionConflictError:
                logger.warning(
                    "Cart position conflict",
                    cart_id=str(cart_id),
                    pos=result.event.pos,
                    attempt=attempt,
                )
            else:
                return result.event

        logger.error(
            "Gave up appending cart event",
            cart_id=str(cart_id),
            attempts=self.max_append_attempts,
        )
        raise ConcurrentModificationError(cart_id, self.max_append_attempts)

    def add_item(
        self,
        user_id: int,
        cart_id: UUID,
        product_id: int,
        quantity: int,
        price: int,
    ) -> int:
        command = AddItem(
            aggregate_id=cart_id,
            product_id=product_id,
            quantity=quantity,
            price=price,
        )
        return self.execute(user_id, command).pos

    def remove_item(
        self, user_id: int, cart_id: UUID, product_id: int, quantity: int
    ) -> int:
        command = RemoveItem(
            aggregate_id=cart_id,
            product_id=product_id,
            quantity=quantity,
        )
        return self.execute(user_id, command).pos
