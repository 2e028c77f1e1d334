#!/usr/bin/env python
"""
Command-line entry point for distributing and collecting SOL.
"""

import sys
import signal
import argparse
import asyncio
from typing import List, Optional

from loguru import logger

from fanout.config import RPC_URL, WALLET_DIR, FEE_PER_TRANSFER_ESTIMATE
from fanout.logging_setup import setup_logging
from fanout.solana import (
    BatchOrchestrator,
    BatchPolicy,
    BalanceOracle,
    FanoutError,
    FeeOracle,
    TxExecutor,
    WalletStore
)
from fanout.utils.amounts import to_decimal
from fanout.utils.report import generate_batch_report, generate_status_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fanout",
        description="Distribute SOL from a main wallet to sub-wallets and collect it back"
    )
    parser.add_argument("--rpc-url", type=str, default=RPC_URL, help="Solana RPC endpoint")
    parser.add_argument("--wallet-dir", type=str, default=WALLET_DIR, help="Directory holding wallet files")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("create-main", help="Generate and save a new main wallet")

    import_parser = subparsers.add_parser("import-main", help="Save an existing private key as the main wallet")
    import_parser.add_argument("secret", type=str, help="Base58 private key or JSON byte array")
    import_parser.add_argument("--overwrite", action="store_true", help="Replace an existing main wallet")

    distribute_parser = subparsers.add_parser("distribute", help="Send SOL from the main wallet to sub-wallets")
    distribute_parser.add_argument("-n", "--wallets", type=int, required=True, help="Number of wallets to fund")
    distribute_parser.add_argument("-a", "--amount", type=str, required=True, help="SOL sent to each wallet")
    distribute_parser.add_argument("--memo", type=str, default=None, help="Memo for every transfer")
    distribute_parser.add_argument("--live-fee", action="store_true",
                                   help="Use the node's current fee when it exceeds the configured estimate")

    collect_parser = subparsers.add_parser("collect", help="Sweep sub-wallets back to the main wallet")
    collect_parser.add_argument("--keep", type=str, default="0", help="SOL to keep in each wallet")
    collect_parser.add_argument("--memo", type=str, default=None, help="Memo for every transfer")

    subparsers.add_parser("status", help="Show balances of all wallets")
    return parser


async def _live_policy(fee_oracle: FeeOracle, store: WalletStore, memo: Optional[str]) -> BatchPolicy:
    estimate = await fee_oracle.estimate_transfer_fee(store.load_main().pubkey(), memo)
    fee = max(FEE_PER_TRANSFER_ESTIMATE, estimate.sol)
    logger.info(f"Using fee estimate of {fee} SOL per transfer")
    return BatchPolicy(fee_per_transfer=fee)


def install_interrupt_handler(loop: asyncio.AbstractEventLoop, orchestrator: BatchOrchestrator) -> None:
    """
    First Ctrl-C lets the current transfer finish and stops the batch.
    The handler then removes itself, so a second Ctrl-C interrupts at once.
    """
    def _on_interrupt():
        orchestrator.cancel()
        loop.remove_signal_handler(signal.SIGINT)
        logger.warning("Press Ctrl-C again to abort without waiting for the current transfer")

    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
    except (NotImplementedError, RuntimeError, ValueError):
        # Not supported on Windows or outside the main thread
        logger.debug("Signal handlers not supported here, Ctrl-C aborts immediately")


async def run(args: argparse.Namespace) -> int:
    store = WalletStore(wallet_dir=args.wallet_dir)

    if args.command == "create-main":
        keypair = store.create_main()
        print(f"Main wallet: {keypair.pubkey()}")
        return 0

    if args.command == "import-main":
        keypair = store.import_main(args.secret, overwrite=args.overwrite)
        print(f"Main wallet: {keypair.pubkey()}")
        return 0

    balance_oracle = BalanceOracle(rpc_url=args.rpc_url)
    tx_executor = TxExecutor(rpc_url=args.rpc_url)
    fee_oracle = FeeOracle(rpc_url=args.rpc_url)
    try:
        policy = None
        if args.command == "distribute" and args.live_fee and store.has_main():
            policy = await _live_policy(fee_oracle, store, args.memo)

        orchestrator = BatchOrchestrator(
            wallet_store=store,
            balance_oracle=balance_oracle,
            tx_executor=tx_executor,
            policy=policy
        )

        if args.command == "status":
            print(generate_status_report(await orchestrator.status()))
            return 0

        install_interrupt_handler(asyncio.get_running_loop(), orchestrator)

        if args.command == "distribute":
            result = await orchestrator.distribute(
                wallet_count=args.wallets,
                amount_per_wallet=to_decimal(args.amount),
                memo=args.memo
            )
        else:
            result = await orchestrator.collect(keep_amount=to_decimal(args.keep), memo=args.memo)

        print(generate_batch_report(result))
        return 0 if result.overall_success else 1
    finally:
        await balance_oracle.close()
        await tx_executor.close()
        await fee_oracle.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        return asyncio.run(run(args))
    except (FanoutError, ValueError) as e:
        logger.error(f"{args.command} failed: {str(e)}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
