"""
Models for wallet hierarchy and batch transfer operations.
"""
from decimal import Decimal
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from fanout.config import FEE_PER_TRANSFER_ESTIMATE, PACING_DELAY_SECONDS
from fanout.utils.amounts import truncate_to_lamports


class WalletSlot(BaseModel):
    """A named position in the wallet hierarchy."""
    name: str  # main, distributed
    index: Optional[int] = None
    address: str
    file: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_main(self) -> bool:
        return self.name == "main"


class DistributionRequest(BaseModel):
    """Parameters of a fan-out from the main wallet."""
    wallet_count: int
    amount_per_wallet: Decimal
    memo: Optional[str] = None

    @field_validator("wallet_count")
    @classmethod
    def _positive_count(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("wallet_count must be greater than 0")
        return value

    @field_validator("amount_per_wallet")
    @classmethod
    def _positive_amount(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("amount_per_wallet must be greater than 0")
        # Transfers move whole lamports only
        value = truncate_to_lamports(value)
        if value <= 0:
            raise ValueError("amount_per_wallet must be at least 1 lamport (0.000000001 SOL)")
        return value


class CollectionRequest(BaseModel):
    """Parameters of a fan-in back to the main wallet."""
    keep_amount: Decimal = Decimal("0")
    memo: Optional[str] = None

    @field_validator("keep_amount")
    @classmethod
    def _non_negative_keep(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("keep_amount must be 0 or greater")
        return value


class TransferOutcome(BaseModel):
    """Result of one transfer in a batch."""
    index: int
    source_address: str
    target_address: str
    amount: Decimal
    signature: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _signature_xor_error(self) -> "TransferOutcome":
        if (self.signature is None) == (self.error is None):
            raise ValueError("exactly one of signature or error must be set")
        return self

    @property
    def succeeded(self) -> bool:
        return self.signature is not None


class BatchResult(BaseModel):
    """Aggregate result of one distribute or collect invocation."""
    operation: str  # distribute, collect
    overall_success: bool
    outcomes: List[TransferOutcome] = Field(default_factory=list)
    total_moved: Decimal = Decimal("0")
    failures: List[str] = Field(default_factory=list)
    cancelled: bool = False

    @classmethod
    def from_outcomes(cls, operation: str, outcomes: List[TransferOutcome], cancelled: bool = False) -> "BatchResult":
        failures = [
            f"Wallet {o.index + 1} ({o.target_address if operation == 'distribute' else o.source_address}): {o.error}"
            for o in outcomes if not o.succeeded
        ]
        total_moved = sum((o.amount for o in outcomes if o.succeeded), Decimal("0"))
        return cls(
            operation=operation,
            overall_success=not failures and not cancelled,
            outcomes=outcomes,
            total_moved=total_moved,
            failures=failures,
            cancelled=cancelled,
        )

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


class BatchPolicy(BaseModel):
    """Fee estimate and pacing applied to every batch."""
    fee_per_transfer: Decimal = FEE_PER_TRANSFER_ESTIMATE
    pacing_delay: float = PACING_DELAY_SECONDS

    @field_validator("fee_per_transfer")
    @classmethod
    def _non_negative_fee(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("fee_per_transfer must be 0 or greater")
        return value

    @field_validator("pacing_delay")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("pacing_delay must be 0 or greater")
        return value


class MainWalletInfo(BaseModel):
    address: str
    balance: Decimal


class WalletStatus(BaseModel):
    index: int
    address: str
    balance: Decimal


class DistributionStatus(BaseModel):
    """Balances across the whole wallet hierarchy."""
    main_wallet: Optional[MainWalletInfo] = None
    distributed_wallets: List[WalletStatus] = Field(default_factory=list)
    total_distributed: Decimal = Decimal("0")
    estimated_collectable: Decimal = Decimal("0")


class FeeEstimate(BaseModel):
    """An estimate of the fee for one transfer."""
    lamports: int
    sol: Decimal
    timestamp: datetime = Field(default_factory=datetime.now)
    is_default: bool = False
