"""Tests for loading a tax year's reference data."""

from decimal import Decimal

import pytest

from hr_payroll.calculators.tax_calculator import TaxSettingKey
from hr_payroll.errors import TaxRulesNotFoundError
from hr_payroll.models import TaxSetting
from hr_payroll.services.tax_rules import TaxRulesStore


class TestTaxRulesStore:
    async def test_load(self, session, tax_rules_seeded, tax_rules):
        rules = await TaxRulesStore(session).load(tax_rules_seeded)

        assert rules.year == 2025
        assert [b.order for b in rules.brackets] == list(range(1, 9))
        assert rules.brackets[-1].max_amount is None
        assert rules.get(TaxSettingKey.PERSONAL_ALLOWANCE) == Decimal("60000")
        assert set(rules.settings) == set(tax_rules.settings)

    async def test_missing_year(self, session, tax_rules_seeded):
        with pytest.raises(TaxRulesNotFoundError) as exc_info:
            await TaxRulesStore(session).load(2030)

        assert exc_info.value.context == {"year": 2030, "what": "tax brackets"}

    async def test_unselected_settings_ignored(self, session, tax_rules_seeded):
        session.add(
            TaxSetting(
                effective_year=2025,
                setting_key="LEGACY_ALLOWANCE",
                setting_value=Decimal("1000"),
                setting_type="deduction",
                is_selected=False,
                is_active=True,
            )
        )
        await session.flush()

        settings = await TaxRulesStore(session).load_settings(2025)

        assert "LEGACY_ALLOWANCE" not in settings

    async def test_get_setting(self, session, tax_rules_seeded):
        store = TaxRulesStore(session)

        assert await store.get_setting(2025, TaxSettingKey.SSF_MAX_MONTHLY) == Decimal("750")
        with pytest.raises(TaxRulesNotFoundError):
            await store.get_setting(2025, "UNKNOWN_KEY")

    async def test_snapshot_cached(self, session, tax_rules_seeded):
        store = TaxRulesStore(session)

        assert await store.load(2025) is await store.load(2025)
