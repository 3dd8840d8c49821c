"""Event bus contracts.

Publishing is synchronous and happens inside the publisher's
transaction.  Handlers therefore must not perform side effects
directly; anything that talks to the outside world is deferred until
the event's ``store_alias`` transaction commits.
"""

from __future__ import annotations

from typing import Generic, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

EventT = TypeVar("EventT", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[EventT]):
    def handle(self, event: EventT) -> None: ...


class IEventBus(Protocol):
    """Routes an event to the handlers subscribed to its exact class."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(
        self, event_class: Type[EventT], handler: IEventHandler[EventT]
    ) -> None: ...
