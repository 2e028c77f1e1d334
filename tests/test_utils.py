"""
Tests for amount conversion and console reports.
"""

from decimal import Decimal

import pytest

from fanout.solana.models import (
    BatchResult,
    DistributionStatus,
    MainWalletInfo,
    TransferOutcome,
    WalletStatus
)
from fanout.utils.amounts import lamports_to_sol, sol_to_lamports, to_decimal, truncate_to_lamports
from fanout.utils.report import generate_batch_report, generate_status_report


class TestAmounts:

    def test_to_decimal(self):
        assert to_decimal("0.1") == Decimal("0.1")
        assert to_decimal(" 1,000.5 ") == Decimal("1000.5")
        assert to_decimal(0.1) == Decimal("0.1")

    def test_to_decimal_rejects_text(self):
        with pytest.raises(ValueError):
            to_decimal("lots")

    def test_sol_to_lamports_truncates(self):
        assert sol_to_lamports("1") == 1_000_000_000
        assert sol_to_lamports("0.0000000019") == 1
        assert sol_to_lamports(Decimal("0.000005")) == 5000

    def test_lamports_to_sol(self):
        assert lamports_to_sol(1_500_000_000) == Decimal("1.5")
        assert lamports_to_sol(1) == Decimal("0.000000001")

    def test_truncate_to_lamports(self):
        assert truncate_to_lamports(Decimal("0.0999949999")) == Decimal("0.099994999")
        assert truncate_to_lamports(Decimal("0.5")) == Decimal("0.5")


class TestReports:

    def test_batch_report(self):
        result = BatchResult.from_outcomes("distribute", [
            TransferOutcome(index=0, source_address="main", target_address="w0",
                            amount=Decimal("0.1"), signature="5" * 88),
            TransferOutcome(index=1, source_address="main", target_address="w1",
                            amount=Decimal("0.1"), error="NetworkError: down"),
        ])

        report = generate_batch_report(result)

        assert "SOL DISTRIBUTE REPORT" in report
        assert "COMPLETED WITH ERRORS" in report
        assert "Successful Transfers: 1" in report
        assert "Wallet 2 (w1): NetworkError: down" in report

    def test_cancelled_report(self):
        result = BatchResult.from_outcomes("collect", [], cancelled=True)
        assert "CANCELLED" in generate_batch_report(result)

    def test_status_report(self):
        status = DistributionStatus(
            main_wallet=MainWalletInfo(address="main", balance=Decimal("2")),
            distributed_wallets=[WalletStatus(index=0, address="w0", balance=Decimal("0.1"))],
            total_distributed=Decimal("0.1"),
            estimated_collectable=Decimal("0.099995"),
        )

        report = generate_status_report(status)

        assert "Main Wallet: main" in report
        assert "Wallet 1: w0 - 0.1 SOL" in report
        assert "Estimated Collectable Amount: 0.099995 SOL" in report

    def test_status_report_without_main(self):
        assert "Main wallet not found" in generate_status_report(DistributionStatus())
