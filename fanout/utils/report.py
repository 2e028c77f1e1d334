"""
Console reports for batch results and wallet status.
"""

from datetime import datetime
from typing import List

from fanout.solana.models import BatchResult, DistributionStatus


def _short(value: str, width: int = 12) -> str:
    return value if len(value) <= width else value[:width] + "..."


def generate_batch_report(result: BatchResult) -> str:
    """Generate a formatted console report for a distribute or collect run."""
    if result.overall_success:
        status = "SUCCESS"
    elif result.cancelled:
        status = "CANCELLED"
    else:
        status = "COMPLETED WITH ERRORS"

    lines: List[str] = [
        "=" * 80,
        f"SOL {result.operation.upper()} REPORT",
        "=" * 80,
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "SUMMARY:",
        f"  Status: {status}",
        f"  Transfers Attempted: {len(result.outcomes)}",
        f"  Successful Transfers: {result.success_count}",
        f"  Failed Transfers: {result.failure_count}",
        f"  Total Moved: {result.total_moved} SOL",
        "",
    ]

    if result.outcomes:
        lines.extend([
            "INDIVIDUAL RESULTS:",
            "  Idx | Wallet Address                               | Status  | Amount        | TX ID",
            "  " + "-" * 96,
        ])
        for outcome in result.outcomes:
            wallet = outcome.target_address if result.operation == "distribute" else outcome.source_address
            tx_id = _short(outcome.signature) if outcome.signature else "N/A"
            lines.append(
                f"  {outcome.index + 1:3d} | {wallet:44s} | {'OK' if outcome.succeeded else 'FAILED':7s} | "
                f"{str(outcome.amount):13s} | {tx_id}"
            )
        lines.append("")

    if result.failures:
        lines.append("ERRORS:")
        lines.extend(f"  {failure}" for failure in result.failures)
        lines.append("")

    lines.append("=" * 80)
    return "\n".join(lines)


def generate_status_report(status: DistributionStatus) -> str:
    """Generate a formatted console report of wallet balances."""
    lines: List[str] = ["=" * 80, "DISTRIBUTION STATUS", "=" * 80]

    if status.main_wallet:
        lines.extend([
            f"Main Wallet: {status.main_wallet.address}",
            f"Main Balance: {status.main_wallet.balance} SOL",
        ])
    else:
        lines.append("Main wallet not found")

    lines.extend([
        "",
        f"Distributed Wallets: {len(status.distributed_wallets)}",
        f"Total in Distributed Wallets: {status.total_distributed} SOL",
        f"Estimated Collectable Amount: {status.estimated_collectable} SOL",
    ])

    if status.distributed_wallets:
        lines.append("")
        for wallet in status.distributed_wallets:
            lines.append(f"  Wallet {wallet.index + 1}: {wallet.address} - {wallet.balance} SOL")

    lines.append("=" * 80)
    return "\n".join(lines)
