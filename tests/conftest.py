"""Pytest fixtures for payroll and probation tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable, Sequence
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hr_payroll.calculators.tax_calculator import TaxSettingKey
from hr_payroll.calculators.types import BracketRule, TaxRules
from hr_payroll.config import Settings
from hr_payroll.database import make_session_factory
from hr_payroll.models import (
    Base,
    Employee,
    Employment,
    FundingAllocation,
    FundingSource,
    ProbationRecord,
    SettingType,
    TaxBracket,
    TaxSetting,
)
from hr_payroll.services.allocation_service import AllocationSplit, FundingAllocationLedger
from hr_payroll.services.probation_service import ProbationTracker

# In-memory SQLite shared by every session of a test (StaticPool keeps one connection)
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TAX_YEAR = 2025

BRACKETS: list[tuple[str, str | None, str]] = [
    ("0", "150000", "0"),
    ("150000", "300000", "5"),
    ("300000", "500000", "10"),
    ("500000", "750000", "15"),
    ("750000", "1000000", "20"),
    ("1000000", "2000000", "25"),
    ("2000000", "5000000", "30"),
    ("5000000", None, "35"),
]

SETTINGS: dict[str, tuple[str, SettingType]] = {
    TaxSettingKey.EMPLOYMENT_DEDUCTION_RATE: ("50", SettingType.RATE),
    TaxSettingKey.EMPLOYMENT_DEDUCTION_MAX: ("100000", SettingType.LIMIT),
    TaxSettingKey.PERSONAL_ALLOWANCE: ("60000", SettingType.DEDUCTION),
    TaxSettingKey.SPOUSE_ALLOWANCE: ("60000", SettingType.DEDUCTION),
    TaxSettingKey.CHILD_ALLOWANCE: ("30000", SettingType.DEDUCTION),
    TaxSettingKey.PARENT_ALLOWANCE: ("30000", SettingType.DEDUCTION),
    TaxSettingKey.SSF_RATE: ("5", SettingType.RATE),
    TaxSettingKey.SSF_EMPLOYER_RATE: ("5", SettingType.RATE),
    TaxSettingKey.SSF_MAX_MONTHLY: ("750", SettingType.LIMIT),
    TaxSettingKey.SSF_MAX_ANNUAL_DEDUCTION: ("9000", SettingType.LIMIT),
    TaxSettingKey.PVD_FUND_RATE: ("7.5", SettingType.RATE),
    TaxSettingKey.PVD_FUND_MAX: ("500000", SettingType.LIMIT),
    TaxSettingKey.SAVING_FUND_RATE: ("7.5", SettingType.RATE),
    TaxSettingKey.SAVING_FUND_MAX: ("500000", SettingType.LIMIT),
}

# Standard scenario: probation until 15 Aug 2025 at 8,000, then 18,000
START = date(2025, 6, 1)
PROBATION_END = date(2025, 8, 15)
PROBATION_SALARY = Decimal("8000")
POST_PROBATION_SALARY = Decimal("18000")


def build_tax_rules(year: int = TAX_YEAR) -> TaxRules:
    """In-memory rules matching what tax_rules_seeded writes to the database."""
    return TaxRules(
        year=year,
        brackets=tuple(
            BracketRule(
                min_amount=Decimal(low),
                max_amount=Decimal(high) if high is not None else None,
                rate=Decimal(rate),
                order=i,
            )
            for i, (low, high, rate) in enumerate(BRACKETS, start=1)
        ),
        settings={key: Decimal(value) for key, (value, _) in SETTINGS.items()},
    )


@pytest.fixture
def tax_rules() -> TaxRules:
    return build_tax_rules()


@pytest.fixture
def settings() -> Settings:
    """Settings for tests; no environment lookups."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        transition_concurrency=1,
        payroll_concurrency=1,
        capacity_retry_limit=1,
        fte_tolerance=Decimal("0.0001"),
        standard_month_days=30,
    )


@pytest.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def tax_rules_seeded(session: AsyncSession) -> int:
    """Write the standard brackets and settings for TAX_YEAR."""
    for order, (low, high, rate) in enumerate(BRACKETS, start=1):
        session.add(
            TaxBracket(
                effective_year=TAX_YEAR,
                bracket_order=order,
                min_income=Decimal(low),
                max_income=Decimal(high) if high is not None else None,
                tax_rate=Decimal(rate),
                is_active=True,
            )
        )
    for key, (value, setting_type) in SETTINGS.items():
        session.add(
            TaxSetting(
                effective_year=TAX_YEAR,
                setting_key=key,
                setting_value=Decimal(value),
                setting_type=setting_type.value,
                is_selected=True,
                is_active=True,
            )
        )
    await session.commit()
    return TAX_YEAR


@pytest.fixture
async def employee(session: AsyncSession) -> Employee:
    employee = Employee(
        staff_id="STF-0001",
        first_name="Dara",
        last_name="Sok",
        marital_status="single",
        residency_status="local_id",
        children_count=0,
        eligible_parents_count=0,
    )
    session.add(employee)
    await session.commit()
    return employee


@pytest.fixture
def make_employment(session: AsyncSession, employee: Employee) -> Callable[..., Awaitable[Employment]]:
    """Factory for employments; defaults to the standard probation scenario."""

    async def _make(**overrides) -> Employment:
        values = {
            "employee_id": employee.employee_id,
            "start_date": START,
            "probation_end_date": PROBATION_END,
            "probation_salary": PROBATION_SALARY,
            "post_probation_salary": POST_PROBATION_SALARY,
            "pvd_enrolled": False,
            "saving_fund_enrolled": False,
            "health_welfare_enrolled": False,
            "employer_pays_health_welfare": False,
        }
        values.update(overrides)
        employment = Employment(**values)
        session.add(employment)
        await session.commit()
        return employment

    return _make


@pytest.fixture
async def employment(make_employment) -> Employment:
    return await make_employment()


@pytest.fixture
async def grant_source(session: AsyncSession) -> FundingSource:
    """Grant budget line with room for two FTE."""
    source = FundingSource(
        code="GR-HEALTH-01",
        name="Maternal health grant",
        grant_code="GR-2025-07",
        fte_capacity=Decimal("2"),
        is_active=True,
    )
    session.add(source)
    await session.commit()
    return source


@pytest.fixture
async def small_grant_source(session: AsyncSession) -> FundingSource:
    """Grant budget line with half an FTE of capacity."""
    source = FundingSource(
        code="GR-EDU-02",
        name="Education pilot",
        fte_capacity=Decimal("0.5"),
        is_active=True,
    )
    session.add(source)
    await session.commit()
    return source


@pytest.fixture
def allocate(session: AsyncSession):
    """Create allocations through the ledger and commit them.

    Splits are (funding_source_id or None, fte) pairs.
    """

    async def _allocate(
        employment: Employment,
        splits: Sequence[tuple[UUID | None, str]],
        effective_date: date | None = None,
        replace_existing: bool = False,
    ) -> list[FundingAllocation]:
        ledger = FundingAllocationLedger(session)
        created = await ledger.create(
            employment,
            [AllocationSplit(source_id, Decimal(fte)) for source_id, fte in splits],
            effective_date=effective_date or employment.start_date,
            replace_existing=replace_existing,
        )
        await session.commit()
        return created

    return _allocate


@pytest.fixture
def open_probation(session: AsyncSession):
    """Write the initial probation record for an employment and commit."""

    async def _open(employment: Employment) -> ProbationRecord:
        record = await ProbationTracker(session).create_initial_record(employment)
        await session.commit()
        return record

    return _open


@pytest.fixture
async def funded_employment(
    employment: Employment,
    grant_source: FundingSource,
    allocate,
    open_probation,
) -> Employment:
    """Standard employment on probation, 60% grant and 40% organization funded."""
    await allocate(employment, [(grant_source.funding_source_id, "0.6"), (None, "0.4")])
    await open_probation(employment)
    return employment
