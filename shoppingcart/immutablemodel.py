from __future__ import annotations

from typing import TYPE_CHECKING, Callable, TypeVar
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from collections.abc import Iterable


class Immutable(BaseModel, frozen=True):
    model_config = ConfigDict(extra="forbid")


class DomainEvent(Immutable, frozen=True):
    aggregate_id: UUID
    pos: int

    @property
    def originator_id(self) -> UUID:
        return self.aggregate_id

    @property
    def originator_version(self) -> int:
        return self.pos


class Aggregate(Immutable, frozen=True):
    aggregate_id: UUID
    pos: int = 0


TAggregate = TypeVar("TAggregate", bound=Aggregate)
TEvent = TypeVar("TEvent", bound=DomainEvent)

MutatorFunction = Callable[[TEvent, TAggregate], TAggregate]


def aggregate_projector(
    mutator: MutatorFunction[TEvent, TAggregate],
) -> Callable[[TAggregate, Iterable[TEvent]], TAggregate]:
    """Returns a function that folds the mutator over a sequence of events."""

    def project_aggregate(aggregate: TAggregate, events: Iterable[TEvent]) -> TAggregate:
        for event in events:
            aggregate = mutator(event, aggregate)
        return aggregate

    return project_aggregate
