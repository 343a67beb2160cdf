"""
Tests per lo script repair-invoice-numbers.
"""

import pytest

from app.schemas.invoice_number import RepairReport, SkippedGroup
from app.scripts import repair_invoice_numbers
from conftest import all_invoice_numbers, create_customer, create_legacy_invoice


class TestRun:

    @pytest.mark.anyio
    async def test_run_applies_repair(self, db, session_factory):
        customer = await create_customer(db)
        await create_legacy_invoice(db, customer, "1042")
        await create_legacy_invoice(db, customer, "1042-2", minutes=1)

        report = await repair_invoice_numbers.run(
            dry_run=False,
            actor="mario.rossi",
            session_factory=session_factory,
        )

        assert report.merged == 1
        assert await all_invoice_numbers(session_factory) == ["1042"]

    @pytest.mark.anyio
    async def test_run_dry_run(self, db, session_factory):
        customer = await create_customer(db)
        await create_legacy_invoice(db, customer, "1050-2")

        report = await repair_invoice_numbers.run(dry_run=True, session_factory=session_factory)

        assert report.normalized == 1
        assert await all_invoice_numbers(session_factory) == ["1050-2"]


class TestMain:

    def test_parser_flags(self):
        args = repair_invoice_numbers.build_parser().parse_args(["--dry-run", "--actor", "admin"])

        assert args.dry_run is True
        assert args.actor == "admin"
        assert args.verbose is False

    def test_prints_summary_and_succeeds(self, monkeypatch, capsys):
        received = {}

        async def fake_run(args):
            received["dry_run"] = args.dry_run
            return RepairReport(dry_run=args.dry_run, scanned=3)

        monkeypatch.setattr(repair_invoice_numbers, "_run_and_close", fake_run)

        exit_code = repair_invoice_numbers.main(["--dry-run"])

        output = capsys.readouterr().out
        assert exit_code == 0
        assert received["dry_run"] is True
        assert "dry-run" in output
        assert "Fatture analizzate: 3" in output

    def test_skipped_groups_set_exit_code(self, monkeypatch, capsys):
        async def fake_run(args):
            return RepairReport(
                scanned=2,
                skipped=[SkippedGroup(base_number="1042", invoice_numbers=["1042", "1042-2"], reason="bloccata")],
            )

        monkeypatch.setattr(repair_invoice_numbers, "_run_and_close", fake_run)

        exit_code = repair_invoice_numbers.main([])

        assert exit_code == 1
        assert "SALTATO 1042: bloccata" in capsys.readouterr().out
