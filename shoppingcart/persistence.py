from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

import orjson

from eventsourcing.persistence import Mapper, StoredEvent, Transcoder
from eventsourcing.utils import get_topic, resolve_topic
from shoppingcart.immutablemodel import DomainEvent

if TYPE_CHECKING:
    from eventsourcing.domain import DomainEventProtocol


class CartEventMapper(Mapper):
    """Maps cart events to stored events, and back, by the topic of their class.

    Event state is dumped in JSON mode, so positions, prices and quantities
    are recorded as JSON integers.
    """

    def to_stored_event(self, domain_event: DomainEventProtocol) -> StoredEvent:
        event = cast(DomainEvent, domain_event)
        event_state = event.model_dump(mode="json")
        return StoredEvent(
            originator_id=event.aggregate_id,
            originator_version=event.pos,
            topic=get_topic(type(event)),
            state=self._seal(self.transcoder.encode(event_state)),
        )

    def to_domain_event(self, stored_event: StoredEvent) -> DomainEventProtocol:
        cls = resolve_topic(stored_event.topic)
        if not (isinstance(cls, type) and issubclass(cls, DomainEvent)):
            msg = f"Topic {stored_event.topic!r} is not a cart event class"
            raise TypeError(msg)
        event_state = self.transcoder.decode(self._unseal(stored_event.state))
        return cls.model_validate(event_state)

    def _seal(self, data: bytes) -> bytes:
        if self.compressor:
            data = self.compressor.compress(data)
        if self.cipher:
            data = self.cipher.encrypt(data)
        return data

    def _unseal(self, data: bytes) -> bytes:
        if self.cipher:
            data = self.cipher.decrypt(data)
        if self.compressor:
            data = self.compressor.decompress(data)
        return data


class OrjsonTranscoder(Transcoder):
    def encode(self, obj: Any) -> bytes:
        return orjson.dumps(obj)

    def decode(self, data: bytes) -> Any:
        return orjson.loads(data)
