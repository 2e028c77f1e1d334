"""
Tests for TxExecutor against a mocked AsyncClient.
"""

import asyncio
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from solana.rpc.core import RPCException, UnconfirmedTxError
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature

from fanout.solana.errors import (
    InsufficientBalanceError,
    InvalidAddressError,
    NetworkError,
    TransferError,
    TransferTimeoutError
)
from fanout.solana.models import BatchPolicy
from fanout.solana.orchestrator import BatchOrchestrator
from fanout.solana.tx_executor import TxExecutor

from conftest import FakeBalanceOracle, FakeWalletStore


def make_client(balance=1_000_000_000, err=None):
    client = MagicMock()
    client.get_balance = AsyncMock(return_value=SimpleNamespace(value=balance))
    client.get_latest_blockhash = AsyncMock(return_value=SimpleNamespace(
        value=SimpleNamespace(blockhash=Hash.default(), last_valid_block_height=100)
    ))
    client.send_transaction = AsyncMock(return_value=SimpleNamespace(value=Signature.default()))
    client.confirm_transaction = AsyncMock(return_value=SimpleNamespace(
        value=[SimpleNamespace(err=err)]
    ))
    client.close = AsyncMock()
    return client


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def recipient():
    return str(Keypair().pubkey())


class TestTransfer:

    def test_successful_transfer(self, recipient):
        client = make_client()
        executor = TxExecutor(client=client)

        signature = run(executor.transfer(Keypair(), recipient, Decimal("0.25")))

        assert signature == str(Signature.default())
        tx = client.send_transaction.await_args.args[0]
        assert len(tx.message.instructions) == 1
        client.confirm_transaction.assert_awaited_once()
        assert client.confirm_transaction.await_args.kwargs["last_valid_block_height"] == 100

    def test_memo_adds_instruction(self, recipient):
        client = make_client()
        executor = TxExecutor(client=client)

        run(executor.transfer(Keypair(), recipient, Decimal("0.25"), memo="payout"))

        tx = client.send_transaction.await_args.args[0]
        assert len(tx.message.instructions) == 2

    def test_invalid_destination(self):
        client = make_client()
        executor = TxExecutor(client=client)

        with pytest.raises(InvalidAddressError):
            run(executor.transfer(Keypair(), "not-an-address", Decimal("0.1")))
        client.send_transaction.assert_not_awaited()

    def test_zero_amount_rejected(self, recipient):
        executor = TxExecutor(client=make_client())
        with pytest.raises(TransferError):
            run(executor.transfer(Keypair(), recipient, Decimal("0.0000000001")))

    def test_insufficient_balance(self, recipient):
        client = make_client(balance=1000)
        executor = TxExecutor(client=client)

        with pytest.raises(InsufficientBalanceError):
            run(executor.transfer(Keypair(), recipient, Decimal("0.1")))
        client.send_transaction.assert_not_awaited()

    def test_balance_query_failure_is_network_error(self, recipient):
        client = make_client()
        client.get_balance.side_effect = RPCException("node unavailable")
        executor = TxExecutor(client=client)

        with pytest.raises(NetworkError):
            run(executor.transfer(Keypair(), recipient, Decimal("0.1")))

    def test_rejected_for_insufficient_funds(self, recipient):
        client = make_client()
        client.send_transaction.side_effect = RPCException("Attempt to debit an account but found no record of a prior credit: insufficient funds")
        executor = TxExecutor(client=client)

        with pytest.raises(InsufficientBalanceError):
            run(executor.transfer(Keypair(), recipient, Decimal("0.1")))

    def test_rejected_for_other_reason(self, recipient):
        client = make_client()
        client.send_transaction.side_effect = RPCException("Blockhash not found")
        executor = TxExecutor(client=client)

        with pytest.raises(NetworkError):
            run(executor.transfer(Keypair(), recipient, Decimal("0.1")))

    def test_unconfirmed_transfer_times_out(self, recipient):
        client = make_client()
        client.confirm_transaction.side_effect = UnconfirmedTxError("not confirmed")
        executor = TxExecutor(client=client)

        with pytest.raises(TransferTimeoutError) as exc_info:
            run(executor.transfer(Keypair(), recipient, Decimal("0.1")))
        assert exc_info.value.signature == str(Signature.default())

    def test_slow_confirmation_times_out(self, recipient):
        client = make_client()

        async def never_confirms(*args, **kwargs):
            await asyncio.sleep(10)

        client.confirm_transaction = never_confirms
        executor = TxExecutor(client=client, confirmation_timeout=0.01)

        with pytest.raises(TransferTimeoutError):
            run(executor.transfer(Keypair(), recipient, Decimal("0.1")))

    def test_failed_transaction_status(self, recipient):
        client = make_client(err="InstructionError")
        executor = TxExecutor(client=client)

        with pytest.raises(TransferError) as exc_info:
            run(executor.transfer(Keypair(), recipient, Decimal("0.1")))
        assert exc_info.value.signature == str(Signature.default())
        assert not isinstance(exc_info.value, TransferTimeoutError)


class TestBatchThroughExecutor:

    def test_total_moved_matches_lamports_sent(self):
        store = FakeWalletStore()
        oracle = FakeBalanceOracle({store.main_address: Decimal("1")})
        client = make_client()
        orchestrator = BatchOrchestrator(
            store, oracle, TxExecutor(client=client),
            BatchPolicy(fee_per_transfer=Decimal("0.000005"), pacing_delay=0)
        )

        result = run(orchestrator.distribute(2, Decimal("0.0000000019")))

        assert client.send_transaction.await_count == 2
        assert result.success_count == 2
        assert result.total_moved == Decimal("0.000000002")
