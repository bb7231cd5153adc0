"""Domain event types for probation, allocation and payroll operations.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for audit logs and notifications
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from hr_payroll.models.base import utcnow


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    PROBATION = "probation"
    ALLOCATION = "allocation"
    PAYROLL = "payroll"
    BATCH = "batch"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID  # Links events of one batch or request
    actor: str | None  # Approver or operator, when known
    actor_type: str  # 'user', 'system', 'scheduler'
    source_service: str

    @classmethod
    def create(
        cls,
        correlation_id: UUID | None = None,
        actor: str | None = None,
        actor_type: str = "system",
        source_service: str = "hr_payroll",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=utcnow(),
            correlation_id=correlation_id or uuid4(),
            actor=actor,
            actor_type=actor_type,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def _serialize(obj: Any) -> Any:
    """Recursively convert values for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Probation Events
# =============================================================================


@dataclass(frozen=True)
class ProbationPassed(DomainEvent):
    """Probation was passed and allocations moved to the post-probation tier."""

    employment_id: UUID
    employee_id: UUID
    probation_record_id: UUID
    decision_date: date
    transitioned_allocations: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.PROBATION


@dataclass(frozen=True)
class ProbationFailed(DomainEvent):
    """Probation was failed; allocations were terminated and the employment ended."""

    employment_id: UUID
    employee_id: UUID
    probation_record_id: UUID
    decision_date: date
    reason: str
    terminated_allocations: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.PROBATION


@dataclass(frozen=True)
class ProbationExtended(DomainEvent):
    """Probation-completion date was pushed out."""

    employment_id: UUID
    employee_id: UUID
    probation_record_id: UUID
    previous_end_date: date
    new_end_date: date
    extension_number: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.PROBATION


# =============================================================================
# Allocation Events
# =============================================================================


@dataclass(frozen=True)
class AllocationsCreated(DomainEvent):
    """A new generation of funding allocations became active."""

    employment_id: UUID
    effective_date: date
    allocation_ids: tuple[UUID, ...]

    @property
    def category(self) -> EventCategory:
        return EventCategory.ALLOCATION


@dataclass(frozen=True)
class AllocationsTransitioned(DomainEvent):
    """Probation-tier allocations were closed and succeeded at the post-probation tier."""

    employment_id: UUID
    transition_date: date
    closed_allocation_ids: tuple[UUID, ...]
    new_allocation_ids: tuple[UUID, ...]

    @property
    def category(self) -> EventCategory:
        return EventCategory.ALLOCATION


# =============================================================================
# Payroll Events
# =============================================================================


@dataclass(frozen=True)
class PayrollGenerated(DomainEvent):
    """Payroll records were written for an employment and pay period."""

    employment_id: UUID
    pay_period: str
    calculation_id: UUID
    record_count: int
    total_net: Decimal
    recalculated: bool

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


# =============================================================================
# Batch Events
# =============================================================================


@dataclass(frozen=True)
class TransitionBatchCompleted(DomainEvent):
    """A daily probation-transition run finished."""

    as_of: date
    found: int
    processed: int
    failed: int
    skipped: int
    dry_run: bool

    @property
    def category(self) -> EventCategory:
        return EventCategory.BATCH


@dataclass(frozen=True)
class PayrollBatchCompleted(DomainEvent):
    """A payroll run over several employments finished."""

    pay_period: str
    requested: int
    created: int
    unchanged: int
    failed: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.BATCH
