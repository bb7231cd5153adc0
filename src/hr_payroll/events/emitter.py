"""In-process publishing of domain events to notifiers.

Services never deliver notifications themselves. They publish events here and
whatever is subscribed (the log, an HR notifier, an audit sink) receives them.
A subscriber that raises is logged and skipped; the remaining subscribers
still run and the publishing service never sees the error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from hr_payroll.events.types import DomainEvent, EventCategory

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)

EventHandler = Callable[[DomainEvent], None]


@dataclass
class HandlerRegistration:
    handler: EventHandler
    event_types: frozenset[str] | None = None
    categories: frozenset[EventCategory] | None = None

    def matches(self, event: DomainEvent) -> bool:
        if self.event_types is not None and event.event_type not in self.event_types:
            return False
        return self.categories is None or event.category in self.categories


def _as_set(value: Any) -> frozenset:
    items: Iterable = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    return frozenset(items)


class EventEmitter:
    """Routes events to subscribers by event class, by category, or all.

    emitter.on(ProbationFailed, notify_line_manager)
    emitter.on_category(EventCategory.PAYROLL, payroll_audit)

    Events raised inside a unit of work go through batch(), so nothing is
    published for a transaction that rolled back.
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(self, event_type: type[T] | list[type[T]], handler: EventHandler) -> None:
        names = frozenset(t.__name__ for t in _as_set(event_type))
        self._handlers.append(HandlerRegistration(handler, event_types=names))

    def on_category(
        self, category: EventCategory | list[EventCategory], handler: EventHandler
    ) -> None:
        self._handlers.append(HandlerRegistration(handler, categories=_as_set(category)))

    def on_all(self, handler: EventHandler) -> None:
        self._handlers.append(HandlerRegistration(handler))

    def off(self, handler: EventHandler) -> None:
        """Remove every registration of handler (compared by identity)."""
        self._handlers = [reg for reg in self._handlers if reg.handler is not handler]

    def emit(self, event: DomainEvent) -> list[Exception]:
        """Deliver event to matching subscribers and return what they raised."""
        errors: list[Exception] = []
        for registration in self._handlers:
            if not registration.matches(event):
                continue
            try:
                registration.handler(event)
            except Exception as exc:
                logger.exception(
                    "Event subscriber %r failed on %s", registration.handler, event.event_type
                )
                errors.append(exc)
        return errors

    def batch(self) -> EventBatch:
        """Collect events for one unit of work; see EventBatch."""
        return EventBatch(self)


class EventBatch:
    """Events held back until a unit of work ends.

    Used as a context manager around a transaction: a clean exit publishes the
    collected events in order, an exception drops them. Every batch has its own
    buffer, so concurrent units sharing an emitter stay separate.
    """

    def __init__(self, emitter: EventEmitter) -> None:
        self._emitter = emitter
        self._pending: list[DomainEvent] = []
        self._errors: list[Exception] = []

    def __enter__(self) -> EventBatch:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        pending, self._pending = self._pending, []
        if exc_type is not None:
            return
        for event in pending:
            self._errors.extend(self._emitter.emit(event))

    def add(self, event: DomainEvent) -> None:
        self._pending.append(event)

    @property
    def errors(self) -> list[Exception]:
        """Subscriber failures from publishing, filled in on exit."""
        return self._errors


class LoggingEventHandler:
    """Subscriber that writes each event as JSON to the log at INFO."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("hr_payroll.events")

    def __call__(self, event: DomainEvent) -> None:
        self._log.info("%s %s", event.event_type, event.to_json())
