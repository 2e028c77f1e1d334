"""
Solana components of the wallet orchestrator.

This package contains wallet storage, balance and fee lookups, single
transfer execution, and the batch orchestrator that sequences transfers
across the wallet hierarchy.
"""

from fanout.solana.models import (
    WalletSlot,
    DistributionRequest,
    CollectionRequest,
    TransferOutcome,
    BatchResult,
    BatchPolicy,
    DistributionStatus,
    FeeEstimate
)
from fanout.solana.errors import (
    FanoutError,
    MissingMainWalletError,
    InsufficientFundsError,
    WalletStoreError,
    WalletExistsError,
    BalanceQueryError,
    TransferError,
    InvalidAddressError,
    InsufficientBalanceError,
    NetworkError,
    TransferTimeoutError
)
from fanout.solana.keystore import WalletStore
from fanout.solana.balance_oracle import BalanceOracle
from fanout.solana.fee_oracle import FeeOracle
from fanout.solana.tx_executor import TxExecutor
from fanout.solana.orchestrator import BatchOrchestrator
