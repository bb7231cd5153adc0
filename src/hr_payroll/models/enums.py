"""Closed value sets stored as strings on the ORM models."""

from __future__ import annotations

from enum import Enum


class ProbationEvent(str, Enum):
    """Kinds of probation record."""

    INITIAL = "initial"
    EXTENSION = "extension"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProbationEvent.PASSED, ProbationEvent.FAILED)


class AllocationStatus(str, Enum):
    """Lifecycle of a funding allocation row. Only ACTIVE rows change status."""

    ACTIVE = "active"
    HISTORICAL = "historical"
    TERMINATED = "terminated"


class AllocationType(str, Enum):
    """Whether an allocation draws on a grant budget line or the organization."""

    GRANT = "grant"
    ORG_FUNDED = "org_funded"


class SalaryTier(str, Enum):
    """Which nominal salary an amount was derived from."""

    PROBATION = "probation"
    POST_PROBATION = "post_probation"


class MaritalStatus(str, Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


class ResidencyStatus(str, Enum):
    """Staff category; drives provident fund vs saving fund and health welfare."""

    LOCAL_ID = "local_id"
    LOCAL_NON_ID = "local_non_id"
    NON_LOCAL_ID = "non_local_id"
    EXPAT = "expat"


class SettingType(str, Enum):
    """How a tax setting value is interpreted."""

    DEDUCTION = "deduction"
    RATE = "rate"
    LIMIT = "limit"


def sql_in(enum_cls: type[Enum]) -> str:
    """Render an enum's values for a CHECK ... IN (...) constraint."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
