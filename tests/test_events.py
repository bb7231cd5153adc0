"""Tests for domain events and the emitter."""

import json
import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from hr_payroll.events import (
    AllocationsCreated,
    EventCategory,
    EventEmitter,
    EventMetadata,
    LoggingEventHandler,
    PayrollGenerated,
    ProbationPassed,
    TransitionBatchCompleted,
)


def passed_event() -> ProbationPassed:
    return ProbationPassed(
        metadata=EventMetadata.create(actor="hr.lead", actor_type="user"),
        employment_id=uuid4(),
        employee_id=uuid4(),
        probation_record_id=uuid4(),
        decision_date=date(2025, 8, 15),
        transitioned_allocations=2,
    )


def payroll_event() -> PayrollGenerated:
    return PayrollGenerated(
        metadata=EventMetadata.create(),
        employment_id=uuid4(),
        pay_period="2025-08",
        calculation_id=uuid4(),
        record_count=2,
        total_net=Decimal("12210.00"),
        recalculated=False,
    )


class TestDomainEvents:
    def test_event_type_and_category(self):
        event = passed_event()

        assert event.event_type == "ProbationPassed"
        assert event.category == EventCategory.PROBATION
        assert payroll_event().category == EventCategory.PAYROLL

    def test_events_are_immutable(self):
        event = passed_event()

        with pytest.raises(AttributeError):
            event.transitioned_allocations = 3

    def test_to_dict_serializes_values(self):
        event = payroll_event()

        data = event.to_dict()

        assert data["event_type"] == "PayrollGenerated"
        assert data["category"] == "payroll"
        assert data["total_net"] == "12210.00"
        assert data["calculation_id"] == str(event.calculation_id)
        assert data["metadata"]["source_service"] == "hr_payroll"
        assert json.loads(event.to_json()) == data

    def test_tuple_payload_serialized_as_list(self):
        ids = (uuid4(), uuid4())
        event = AllocationsCreated(
            metadata=EventMetadata.create(),
            employment_id=uuid4(),
            effective_date=date(2025, 6, 1),
            allocation_ids=ids,
        )

        data = event.to_dict()

        assert data["allocation_ids"] == [str(i) for i in ids]
        assert data["effective_date"] == "2025-06-01"

    def test_metadata_defaults(self):
        metadata = EventMetadata.create()

        assert metadata.actor is None
        assert metadata.actor_type == "system"
        assert metadata.correlation_id is not None


class TestEventEmitter:
    """Handler routing and isolation."""

    def test_on_event_type(self):
        emitter = EventEmitter()
        received = []
        emitter.on(ProbationPassed, received.append)

        emitter.emit(passed_event())
        emitter.emit(payroll_event())

        assert [e.event_type for e in received] == ["ProbationPassed"]

    def test_on_several_types(self):
        emitter = EventEmitter()
        received = []
        emitter.on([ProbationPassed, PayrollGenerated], received.append)

        emitter.emit(passed_event())
        emitter.emit(payroll_event())

        assert len(received) == 2

    def test_on_category(self):
        emitter = EventEmitter()
        received = []
        emitter.on_category(EventCategory.PAYROLL, received.append)

        emitter.emit(passed_event())
        emitter.emit(payroll_event())

        assert [e.category for e in received] == [EventCategory.PAYROLL]

    def test_off(self):
        emitter = EventEmitter()
        received = []
        handler = received.append
        emitter.on_all(handler)
        emitter.off(handler)

        emitter.emit(passed_event())

        assert received == []

    def test_failing_handler_does_not_stop_others(self):
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("notifier down")

        emitter.on_all(broken)
        emitter.on_all(received.append)

        errors = emitter.emit(passed_event())

        assert len(received) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)


class TestEventBatch:
    def test_emits_on_clean_exit(self):
        emitter = EventEmitter()
        received = []
        emitter.on_all(received.append)

        with emitter.batch() as batch:
            batch.add(passed_event())
            batch.add(payroll_event())
            assert received == []

        assert [e.event_type for e in received] == ["ProbationPassed", "PayrollGenerated"]

    def test_discards_on_exception(self):
        emitter = EventEmitter()
        received = []
        emitter.on_all(received.append)

        with pytest.raises(ValueError):
            with emitter.batch() as batch:
                batch.add(passed_event())
                raise ValueError("rolled back")

        assert received == []

    def test_batches_are_independent(self):
        emitter = EventEmitter()
        received = []
        emitter.on_all(received.append)

        outer = emitter.batch()
        inner = emitter.batch()
        with outer:
            outer.add(passed_event())
            with pytest.raises(ValueError):
                with inner:
                    inner.add(payroll_event())
                    raise ValueError("unit failed")

        assert [e.event_type for e in received] == ["ProbationPassed"]

    def test_handler_errors_collected(self):
        emitter = EventEmitter()

        def broken(event):
            raise RuntimeError("notifier down")

        emitter.on_all(broken)

        with emitter.batch() as batch:
            batch.add(passed_event())

        assert len(batch.errors) == 1


class TestLoggingEventHandler:
    def test_logs_event_as_json(self, caplog):
        handler = LoggingEventHandler()
        event = TransitionBatchCompleted(
            metadata=EventMetadata.create(actor_type="scheduler"),
            as_of=date(2025, 8, 15),
            found=3,
            processed=2,
            failed=1,
            skipped=0,
            dry_run=False,
        )

        with caplog.at_level(logging.INFO, logger="hr_payroll.events"):
            handler(event)

        assert "TransitionBatchCompleted" in caplog.text
        assert '"processed": 2' in caplog.text
