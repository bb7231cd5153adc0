"""Seed script for a tax year's brackets and settings.

Run with:
    python scripts/seed_tax_rules.py --year 2025
    python scripts/seed_tax_rules.py --year 2025 --create-schema

Existing rows for the year are left alone, so the script can be re-run.
"""

from __future__ import annotations

import argparse
import asyncio
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.tax_calculator import TaxSettingKey
from hr_payroll.database import dispose_db, get_session, init_db
from hr_payroll.models import Base, SettingType, TaxBracket, TaxSetting

# (min income, max income or None for the open top bracket, rate percent)
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

SETTINGS: list[tuple[str, str, SettingType, str]] = [
    (TaxSettingKey.EMPLOYMENT_DEDUCTION_RATE, "50", SettingType.RATE, "Employment expense deduction, % of income"),
    (TaxSettingKey.EMPLOYMENT_DEDUCTION_MAX, "100000", SettingType.LIMIT, "Employment expense deduction cap"),
    (TaxSettingKey.PERSONAL_ALLOWANCE, "60000", SettingType.DEDUCTION, "Personal allowance"),
    (TaxSettingKey.SPOUSE_ALLOWANCE, "60000", SettingType.DEDUCTION, "Spouse allowance"),
    (TaxSettingKey.CHILD_ALLOWANCE, "30000", SettingType.DEDUCTION, "Allowance per child"),
    (TaxSettingKey.PARENT_ALLOWANCE, "30000", SettingType.DEDUCTION, "Allowance per eligible parent"),
    (TaxSettingKey.SSF_RATE, "5", SettingType.RATE, "Social security, employee %"),
    (TaxSettingKey.SSF_EMPLOYER_RATE, "5", SettingType.RATE, "Social security, employer %"),
    (TaxSettingKey.SSF_MAX_MONTHLY, "750", SettingType.LIMIT, "Social security monthly cap per side"),
    (TaxSettingKey.SSF_MAX_ANNUAL_DEDUCTION, "9000", SettingType.LIMIT, "Social security deductible per year"),
    (TaxSettingKey.PVD_FUND_RATE, "7.5", SettingType.RATE, "Provident fund, employee %"),
    (TaxSettingKey.PVD_FUND_MAX, "500000", SettingType.LIMIT, "Provident fund deductible per year"),
    (TaxSettingKey.SAVING_FUND_RATE, "7.5", SettingType.RATE, "Saving fund, employee %"),
    (TaxSettingKey.SAVING_FUND_MAX, "500000", SettingType.LIMIT, "Saving fund deductible per year"),
]


async def seed_brackets(session: AsyncSession, year: int) -> int:
    """Create the year's brackets unless any exist."""
    existing = await session.scalar(
        select(TaxBracket.tax_bracket_id).where(TaxBracket.effective_year == year).limit(1)
    )
    if existing is not None:
        print(f"Tax brackets for {year} already exist, skipping...")
        return 0

    for order, (low, high, rate) in enumerate(BRACKETS, start=1):
        session.add(
            TaxBracket(
                effective_year=year,
                bracket_order=order,
                min_income=Decimal(low),
                max_income=Decimal(high) if high is not None else None,
                tax_rate=Decimal(rate),
                description=f"{low} - {high or 'and above'} @ {rate}%",
                is_active=True,
            )
        )
    print(f"Created {len(BRACKETS)} tax brackets for {year}")
    return len(BRACKETS)


async def seed_settings(session: AsyncSession, year: int) -> int:
    """Create any of the year's settings that are missing."""
    result = await session.execute(
        select(TaxSetting.setting_key).where(TaxSetting.effective_year == year)
    )
    present = set(result.scalars().all())

    created = 0
    for key, value, setting_type, description in SETTINGS:
        if key in present:
            continue
        session.add(
            TaxSetting(
                effective_year=year,
                setting_key=key,
                setting_value=Decimal(value),
                setting_type=setting_type.value,
                description=description,
                is_selected=True,
                is_active=True,
            )
        )
        created += 1
    print(f"Created {created} tax settings for {year}")
    return created


async def main(year: int, create_schema: bool) -> None:
    if create_schema:
        engine, _ = init_db()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print("Schema created")

    print(f"Seeding tax rules for {year}...")
    async with get_session() as session:
        await seed_brackets(session, year)
        await seed_settings(session, year)
    await dispose_db()
    print("\nDone! Tax rules seeded successfully.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a tax year's brackets and settings")
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables first",
    )
    args = parser.parse_args()
    asyncio.run(main(args.year, args.create_schema))
