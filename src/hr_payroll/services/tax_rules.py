"""Tax rules store: loads one year's brackets and settings."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.types import BracketRule, TaxRules
from hr_payroll.errors import TaxRulesNotFoundError
from hr_payroll.models import TaxBracket, TaxSetting


class TaxRulesStore:
    """Read-only access to year-scoped tax reference data.

    Snapshots are cached per instance; reference data does not change during
    a calculation, so one store can serve a whole batch.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._cache: dict[int, TaxRules] = {}

    async def load(self, year: int) -> TaxRules:
        """Load active brackets and selected settings for a tax year.

        Raises:
            TaxRulesNotFoundError: If the year has no active brackets
        """
        if year in self._cache:
            return self._cache[year]

        result = await self.session.execute(
            select(TaxBracket)
            .where(TaxBracket.effective_year == year, TaxBracket.is_active.is_(True))
            .order_by(TaxBracket.bracket_order)
        )
        brackets = tuple(
            BracketRule(
                min_amount=Decimal(b.min_income),
                max_amount=Decimal(b.max_income) if b.max_income is not None else None,
                rate=Decimal(b.tax_rate),
                order=b.bracket_order,
            )
            for b in result.scalars().all()
        )
        if not brackets:
            raise TaxRulesNotFoundError(year)

        rules = TaxRules(year=year, brackets=brackets, settings=await self.load_settings(year))
        self._cache[year] = rules
        return rules

    async def load_settings(self, year: int) -> dict[str, Decimal]:
        """Selected, active settings for a year keyed by setting_key."""
        result = await self.session.execute(
            select(TaxSetting).where(
                TaxSetting.effective_year == year,
                TaxSetting.is_active.is_(True),
                TaxSetting.is_selected.is_(True),
            )
        )
        return {s.setting_key: Decimal(s.setting_value) for s in result.scalars().all()}

    async def get_setting(self, year: int, key: str) -> Decimal:
        """Look up one setting value by key.

        Raises:
            TaxRulesNotFoundError: If the key is not configured for the year
        """
        settings = (await self.load(year)).settings
        if key not in settings:
            raise TaxRulesNotFoundError(year, f"tax setting '{key}'")
        return settings[key]
