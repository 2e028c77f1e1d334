"""
Shared fixtures: in-memory stand-ins for wallet storage, balances and transfers.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Union

import pytest
from solders.keypair import Keypair

from fanout.solana.errors import MissingMainWalletError
from fanout.solana.models import BatchPolicy, FeeEstimate, WalletSlot
from fanout.solana.orchestrator import BatchOrchestrator
from fanout.utils.amounts import sol_to_lamports


class FakeWalletStore:
    """Keeps keypairs in memory and records which slots were created."""

    def __init__(self, has_main: bool = True, slot_count: int = 0):
        self.main: Optional[Keypair] = Keypair() if has_main else None
        self.slots: List[Keypair] = [Keypair() for _ in range(slot_count)]
        self.created: List[int] = []

    def has_main(self) -> bool:
        return self.main is not None

    def load_main(self) -> Keypair:
        if self.main is None:
            raise MissingMainWalletError()
        return self.main

    def count_slots(self) -> int:
        return len(self.slots)

    def create_slot(self, index: int) -> Keypair:
        assert index == len(self.slots), "slots must be created contiguously"
        keypair = Keypair()
        self.slots.append(keypair)
        self.created.append(index)
        return keypair

    def load_all_slots(self) -> List[Keypair]:
        return list(self.slots)

    def list_slots(self) -> List[WalletSlot]:
        return [
            WalletSlot(name="distributed", index=i, address=str(kp.pubkey()), file=f"wallet-{i}.json")
            for i, kp in enumerate(self.slots)
        ]

    @property
    def main_address(self) -> str:
        return str(self.main.pubkey())

    def slot_address(self, index: int) -> str:
        return str(self.slots[index].pubkey())


class FakeBalanceOracle:
    """Returns configured balances; an Exception value is raised instead."""

    def __init__(self, balances: Optional[Dict[str, Union[Decimal, Exception]]] = None):
        self.balances = dict(balances or {})
        self.calls: List[str] = []
        self.closed = False

    async def get_balance(self, address: str) -> Decimal:
        self.calls.append(address)
        value = self.balances.get(address, Decimal("0"))
        if isinstance(value, Exception):
            raise value
        return Decimal(value)

    async def close(self):
        self.closed = True


class FakeTxExecutor:
    """Records transfers; raises the configured exception for given call numbers."""

    def __init__(self, fail_on: Optional[Dict[int, Exception]] = None):
        self.calls: List[tuple] = []
        self.fail_on = dict(fail_on or {})
        self.closed = False

    async def transfer(self, source: Keypair, destination: str, amount: Decimal, memo: Optional[str] = None) -> str:
        call_number = len(self.calls)
        self.calls.append((str(source.pubkey()), destination, amount, memo))
        if call_number in self.fail_on:
            raise self.fail_on[call_number]
        return f"sig-{call_number}"

    async def close(self):
        self.closed = True


class FakeFeeOracle:
    """Returns a fixed fee estimate in SOL."""

    def __init__(self, fee: Decimal = Decimal("0.000005")):
        self.fee = Decimal(fee)
        self.calls: List[tuple] = []
        self.closed = False

    async def estimate_transfer_fee(self, payer, memo: Optional[str] = None) -> FeeEstimate:
        self.calls.append((str(payer), memo))
        return FeeEstimate(lamports=sol_to_lamports(self.fee), sol=self.fee)

    async def close(self):
        self.closed = True


class SleepRecorder:
    """Pacing coroutine that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def store():
    return FakeWalletStore()


@pytest.fixture
def oracle():
    return FakeBalanceOracle()


@pytest.fixture
def executor():
    return FakeTxExecutor()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def policy():
    return BatchPolicy(fee_per_transfer=Decimal("0.000005"), pacing_delay=0.5)


@pytest.fixture
def orchestrator(store, oracle, executor, sleeper, policy):
    return BatchOrchestrator(
        wallet_store=store,
        balance_oracle=oracle,
        tx_executor=executor,
        policy=policy,
        sleep=sleeper
    )
