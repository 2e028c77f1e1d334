"""
Batch orchestration of fan-out and fan-in SOL transfers.

This module sequences single transfers over the wallet hierarchy:
distribute sends a fixed amount from the main wallet to N distributed
wallets, collect sweeps every distributed wallet back to the main wallet,
and status reports balances across the hierarchy.
"""

import asyncio
from decimal import Decimal
from typing import Dict, List, Any, Optional, Callable, Awaitable, Union

from loguru import logger
from solders.keypair import Keypair

from fanout.solana.errors import InsufficientFundsError, MissingMainWalletError
from fanout.solana.models import (
    BatchPolicy,
    BatchResult,
    CollectionRequest,
    DistributionRequest,
    DistributionStatus,
    MainWalletInfo,
    TransferOutcome,
    WalletStatus
)
from fanout.solana.keystore import WalletStore
from fanout.solana.balance_oracle import BalanceOracle
from fanout.solana.tx_executor import TxExecutor
from fanout.utils.amounts import truncate_to_lamports

EVENT_TYPES = ("on_transfer_succeeded", "on_transfer_failed", "on_batch_completed")


class BatchOrchestrator:
    """
    Runs distribute, collect and status over the wallet hierarchy.

    Transfers are issued one at a time; each is confirmed or failed before
    the next one starts, with ``policy.pacing_delay`` seconds in between.
    A failed transfer is recorded in the result and never stops the batch.
    """

    def __init__(self,
                 wallet_store: Optional[WalletStore] = None,
                 balance_oracle: Optional[BalanceOracle] = None,
                 tx_executor: Optional[TxExecutor] = None,
                 policy: Optional[BatchPolicy] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """
        Initialize the orchestrator.

        Args:
            wallet_store: Optional WalletStore instance. If None, creates a new one.
            balance_oracle: Optional BalanceOracle instance. If None, creates a new one.
            tx_executor: Optional TxExecutor instance. If None, creates a new one.
            policy: Fee estimate and pacing delay. Defaults come from config.
            sleep: Coroutine used for the pacing delay
        """
        self.wallet_store = wallet_store if wallet_store else WalletStore()
        self.balance_oracle = balance_oracle if balance_oracle else BalanceOracle()
        self.tx_executor = tx_executor if tx_executor else TxExecutor()
        self.policy = policy if policy else BatchPolicy()
        self._sleep = sleep
        self._cancelled = False
        self.event_callbacks: Dict[str, List[Callable[[Any], None]]] = {e: [] for e in EVENT_TYPES}

        logger.info(
            "BatchOrchestrator initialized",
            extra={"fee_per_transfer": str(self.policy.fee_per_transfer), "pacing_delay": self.policy.pacing_delay}
        )

    def register_event_callback(self, event_type: str, callback: Callable[[Any], None]):
        """
        Registers a callback for an event type.

        Args:
            event_type: on_transfer_succeeded, on_transfer_failed or on_batch_completed
            callback: Called with the TransferOutcome or BatchResult
        """
        if event_type not in self.event_callbacks:
            logger.warning(f"Unknown event type: {event_type}")
            raise ValueError(f"Unknown event type: {event_type}")
        self.event_callbacks[event_type].append(callback)
        logger.debug(f"Registered callback for event type: {event_type}")

    def _emit(self, event_type: str, payload: Any):
        for callback in self.event_callbacks[event_type]:
            try:
                callback(payload)
            except Exception as e:
                logger.exception(f"Callback for {event_type} raised: {str(e)}")

    def cancel(self):
        """Stops the running batch before its next transfer."""
        logger.warning("Cancellation requested, batch will stop before the next transfer")
        self._cancelled = True

    async def _pace(self, attempted: int):
        # No delay before the first transfer of a batch
        if attempted > 0 and self.policy.pacing_delay > 0:
            await self._sleep(self.policy.pacing_delay)

    async def _ready_for_next(self, attempted: int) -> bool:
        """Waits out the pacing delay; False if the batch was cancelled meanwhile."""
        if self._cancelled:
            return False
        await self._pace(attempted)
        return not self._cancelled

    async def _attempt(
        self,
        index: int,
        source: Keypair,
        destination: str,
        amount: Decimal,
        memo: Optional[str]
    ) -> TransferOutcome:
        """Runs one transfer and converts any failure into an outcome."""
        source_address = str(source.pubkey())
        try:
            signature = await self.tx_executor.transfer(source, destination, amount, memo)
        except Exception as e:
            reason = f"{type(e).__name__}: {str(e)}"
            logger.error(f"Transfer {source_address} -> {destination} failed: {reason}")
            outcome = TransferOutcome(
                index=index,
                source_address=source_address,
                target_address=destination,
                amount=amount,
                error=reason
            )
            self._emit("on_transfer_failed", outcome)
            return outcome

        outcome = TransferOutcome(
            index=index,
            source_address=source_address,
            target_address=destination,
            amount=amount,
            signature=signature
        )
        self._emit("on_transfer_succeeded", outcome)
        return outcome

    def _finish(self, operation: str, outcomes: List[TransferOutcome], cancelled: bool) -> BatchResult:
        result = BatchResult.from_outcomes(operation, outcomes, cancelled=cancelled)

        logger.info(
            f"{operation.capitalize()} completed: {result.success_count}/{len(outcomes)} transfers succeeded, "
            f"{result.total_moved} SOL moved"
        )
        if result.failures:
            logger.warning(f"{len(result.failures)} transfers failed")
        if cancelled:
            logger.warning(f"{operation.capitalize()} was cancelled before completion")

        self._emit("on_batch_completed", result)
        return result

    def _load_main(self) -> Keypair:
        if not self.wallet_store.has_main():
            raise MissingMainWalletError()
        return self.wallet_store.load_main()

    async def distribute(
        self,
        wallet_count: int,
        amount_per_wallet: Union[Decimal, str, float],
        memo: Optional[str] = None
    ) -> BatchResult:
        """
        Distributes SOL from the main wallet to distributed wallets.

        Missing distributed wallets are created first, one at a time, so an
        interrupted run can be repeated without creating duplicates.

        Args:
            wallet_count: Number of distributed wallets to fund
            amount_per_wallet: SOL sent to each wallet
            memo: Optional memo for every transfer

        Returns:
            BatchResult with one outcome per target wallet

        Raises:
            MissingMainWalletError: If no main wallet is stored
            InsufficientFundsError: If the main balance cannot cover amounts plus fees
        """
        request = DistributionRequest(
            wallet_count=wallet_count,
            amount_per_wallet=amount_per_wallet,
            memo=memo
        )
        self._cancelled = False

        logger.info(f"Distributing {request.amount_per_wallet} SOL to {request.wallet_count} wallets")

        main_wallet = self._load_main()
        main_address = str(main_wallet.pubkey())

        balance = await self.balance_oracle.get_balance(main_address)
        total_required = request.amount_per_wallet * request.wallet_count
        estimated_fees = self.policy.fee_per_transfer * request.wallet_count

        logger.info(
            f"Main wallet {main_address}: balance {balance} SOL, "
            f"required {total_required} SOL, estimated fees {estimated_fees} SOL"
        )

        if balance < total_required + estimated_fees:
            raise InsufficientFundsError(required=total_required + estimated_fees, available=balance)

        existing_count = self.wallet_store.count_slots()
        to_create = max(0, request.wallet_count - existing_count)
        logger.info(f"Existing wallets: {existing_count}, creating {to_create} new wallets")

        for index in range(existing_count, request.wallet_count):
            keypair = self.wallet_store.create_slot(index)
            logger.info(f"Created wallet {index + 1}/{request.wallet_count}: {keypair.pubkey()}")

        targets = self.wallet_store.load_all_slots()[:request.wallet_count]

        outcomes: List[TransferOutcome] = []
        cancelled = False
        for index, wallet in enumerate(targets):
            if not await self._ready_for_next(len(outcomes)):
                cancelled = True
                break

            address = str(wallet.pubkey())
            logger.info(f"[{index + 1}/{len(targets)}] Transferring {request.amount_per_wallet} SOL to {address}")
            outcomes.append(
                await self._attempt(index, main_wallet, address, request.amount_per_wallet, request.memo)
            )

        return self._finish("distribute", outcomes, cancelled)

    async def collect(
        self,
        keep_amount: Union[Decimal, str, float] = Decimal("0"),
        memo: Optional[str] = None
    ) -> BatchResult:
        """
        Collects SOL from every distributed wallet back to the main wallet.

        Wallets whose balance does not exceed ``keep_amount`` plus the fee
        estimate are skipped without recording an outcome.

        Args:
            keep_amount: SOL left behind in each wallet
            memo: Optional memo for every transfer

        Returns:
            BatchResult with one outcome per attempted wallet

        Raises:
            MissingMainWalletError: If no main wallet is stored
        """
        request = CollectionRequest(keep_amount=keep_amount, memo=memo)
        self._cancelled = False

        logger.info(f"Collecting SOL from distributed wallets (keeping {request.keep_amount} SOL in each)")

        main_wallet = self._load_main()
        main_address = str(main_wallet.pubkey())

        wallets = self.wallet_store.load_all_slots()
        if not wallets:
            logger.warning("No distributed wallets found")
            return self._finish("collect", [], False)

        logger.info(f"Found {len(wallets)} distributed wallets")

        outcomes: List[TransferOutcome] = []
        cancelled = False
        for index, wallet in enumerate(wallets):
            if self._cancelled:
                cancelled = True
                break

            address = str(wallet.pubkey())
            try:
                balance = await self.balance_oracle.get_balance(address)
            except Exception as e:
                reason = f"{type(e).__name__}: {str(e)}"
                logger.error(f"[{index + 1}/{len(wallets)}] Balance query for {address} failed: {reason}")
                outcome = TransferOutcome(
                    index=index,
                    source_address=address,
                    target_address=main_address,
                    amount=Decimal("0"),
                    error=reason
                )
                self._emit("on_transfer_failed", outcome)
                outcomes.append(outcome)
                continue

            transfer_amount = truncate_to_lamports(
                balance - request.keep_amount - self.policy.fee_per_transfer
            )
            if transfer_amount <= 0:
                logger.info(
                    f"[{index + 1}/{len(wallets)}] Wallet {address} has insufficient balance to collect ({balance} SOL)"
                )
                continue

            if not await self._ready_for_next(len(outcomes)):
                cancelled = True
                break
            logger.info(f"[{index + 1}/{len(wallets)}] Collecting {transfer_amount} SOL from {address}")
            outcomes.append(
                await self._attempt(index, wallet, main_address, transfer_amount, request.memo)
            )

        return self._finish("collect", outcomes, cancelled)

    async def status(self) -> DistributionStatus:
        """
        Reports balances of the main wallet and every distributed wallet.

        Returns:
            DistributionStatus; main_wallet is None when no main wallet is stored
        """
        main_info = None
        if self.wallet_store.has_main():
            main_address = str(self.wallet_store.load_main().pubkey())
            main_info = MainWalletInfo(
                address=main_address,
                balance=await self.balance_oracle.get_balance(main_address)
            )

        wallets: List[WalletStatus] = []
        total_distributed = Decimal("0")
        estimated_collectable = Decimal("0")
        for slot in self.wallet_store.list_slots():
            balance = await self.balance_oracle.get_balance(slot.address)
            wallets.append(WalletStatus(index=slot.index, address=slot.address, balance=balance))
            total_distributed += balance
            estimated_collectable += max(Decimal("0"), balance - self.policy.fee_per_transfer)

        return DistributionStatus(
            main_wallet=main_info,
            distributed_wallets=wallets,
            total_distributed=total_distributed,
            estimated_collectable=estimated_collectable
        )
