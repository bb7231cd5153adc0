"""Tests for the operational command line."""

import json
from uuid import uuid4

import pytest

from hr_payroll.cli import HRPayrollCli, parse_period
from hr_payroll.events import EventEmitter


@pytest.fixture
def cli(session_factory, settings) -> HRPayrollCli:
    return HRPayrollCli(session_factory=session_factory, settings=settings, emitter=EventEmitter())


class TestProcessTransitions:
    async def test_json_summary(self, cli, capsys, funded_employment):
        code = await cli.run_async(["--json", "process-transitions", "--as-of", "2025-08-15"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["found"] == 1
        assert data["processed"] == 1
        assert data["details"][0]["employment_id"] == str(funded_employment.employment_id)

    async def test_dry_run_text_output(self, cli, capsys, funded_employment):
        code = await cli.run_async(["process-transitions", "--as-of", "2025-08-15", "--dry-run"])

        assert code == 0
        out = capsys.readouterr().out
        assert "[DRY RUN]" in out
        assert "candidate" in out

    async def test_invalid_date_rejected(self, cli):
        with pytest.raises(SystemExit):
            await cli.run_async(["process-transitions", "--as-of", "15/08/2025"])


class TestGeneratePayroll:
    async def test_generate(self, cli, capsys, tax_rules_seeded, funded_employment):
        args = [
            "--json",
            "generate-payroll",
            "--employment",
            str(funded_employment.employment_id),
            "--period",
            "2025-07",
        ]

        assert await cli.run_async(args) == 0
        first = json.loads(capsys.readouterr().out)
        assert await cli.run_async(args) == 0
        second = json.loads(capsys.readouterr().out)

        assert first["created"] is True
        assert second["created"] is False
        assert second["calculation_id"] == first["calculation_id"]
        assert len(first["records"]) == 2

    async def test_unknown_employment(self, cli, capsys, tax_rules_seeded):
        code = await cli.run_async(
            ["generate-payroll", "--employment", str(uuid4()), "--period", "2025-07"]
        )

        assert code == 1
        assert "EMPLOYMENT_NOT_FOUND" in capsys.readouterr().err


class TestGeneratePayrollBulk:
    async def test_failures_listed_and_exit_code_set(
        self, cli, capsys, tax_rules_seeded, funded_employment
    ):
        unknown = uuid4()
        code = await cli.run_async(
            [
                "--json",
                "generate-payroll-bulk",
                "--period",
                "2025-07",
                "--employment",
                str(funded_employment.employment_id),
                "--employment",
                str(unknown),
            ]
        )

        assert code == 1
        data = json.loads(capsys.readouterr().out)
        assert data["requested"] == 2
        assert data["created"] == 1
        assert data["failed"] == 1
        assert data["details"][0]["record_count"] == 2
        assert data["errors"][0].startswith(str(unknown))

    async def test_text_output(self, cli, capsys, tax_rules_seeded, funded_employment):
        args = [
            "generate-payroll-bulk",
            "--period",
            "2025-07",
            "--employment",
            str(funded_employment.employment_id),
        ]

        assert await cli.run_async(args) == 0
        capsys.readouterr()
        assert await cli.run_async(args) == 0

        out = capsys.readouterr().out
        assert "Payroll run for 2025-07" in out
        assert "unchanged" in out
        assert "Errors:" not in out

    async def test_employment_required(self, cli):
        with pytest.raises(SystemExit):
            await cli.run_async(["generate-payroll-bulk", "--period", "2025-07"])


class TestProbationHistory:
    async def test_history(self, cli, capsys, funded_employment):
        code = await cli.run_async(
            ["--json", "probation-history", "--employment", str(funded_employment.employment_id)]
        )

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["current_status"] == "initial"
        assert data["can_extend"] is True
        assert len(data["records"]) == 1


class TestParsing:
    async def test_no_command_prints_help(self, cli, capsys):
        assert await cli.run_async([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_parse_period(self):
        assert parse_period("2025-08").label == "2025-08"
