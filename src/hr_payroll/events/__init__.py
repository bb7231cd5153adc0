"""Domain events emitted by probation, allocation and payroll operations."""

from hr_payroll.events.emitter import EventBatch, EventEmitter, LoggingEventHandler
from hr_payroll.events.types import (
    AllocationsCreated,
    AllocationsTransitioned,
    DomainEvent,
    EventCategory,
    EventMetadata,
    PayrollBatchCompleted,
    PayrollGenerated,
    ProbationExtended,
    ProbationFailed,
    ProbationPassed,
    TransitionBatchCompleted,
)

__all__ = [
    "AllocationsCreated",
    "AllocationsTransitioned",
    "DomainEvent",
    "EventBatch",
    "EventCategory",
    "EventEmitter",
    "EventMetadata",
    "LoggingEventHandler",
    "PayrollBatchCompleted",
    "PayrollGenerated",
    "ProbationExtended",
    "ProbationFailed",
    "ProbationPassed",
    "TransitionBatchCompleted",
]
