"""
Exceptions raised by the wallet hierarchy and the batch transfer engine.
"""

from decimal import Decimal
from typing import Optional


class FanoutError(Exception):
    """Base exception for all fan-out/fan-in errors."""
    pass


class MissingMainWalletError(FanoutError):
    """Raised when an operation needs the main wallet and none is stored."""

    def __init__(self, message: str = "Main wallet not found. Please create a main wallet first."):
        super().__init__(message)


class InsufficientFundsError(FanoutError):
    """Raised when the main wallet cannot cover a whole distribution plus fees."""

    def __init__(self, required: Decimal, available: Decimal):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance. Required: {required} SOL, Available: {available} SOL"
        )


class WalletStoreError(FanoutError):
    """Raised when persisted wallet files are missing, corrupt or inconsistent."""
    pass


class WalletExistsError(WalletStoreError):
    """Raised when creating a wallet that is already persisted."""
    pass


class BalanceQueryError(FanoutError):
    """Raised when the RPC node cannot report a balance."""
    pass


class TransferError(FanoutError):
    """Base exception for a single failed transfer."""

    def __init__(self, message: str, signature: Optional[str] = None):
        self.signature = signature
        super().__init__(message)


class InvalidAddressError(TransferError):
    """Raised when the destination is not a valid public key."""
    pass


class InsufficientBalanceError(TransferError):
    """Raised when the sender cannot cover the transfer at send time."""
    pass


class NetworkError(TransferError):
    """Raised when the RPC node rejects or cannot receive the transaction."""
    pass


class TransferTimeoutError(TransferError):
    """Raised when a sent transaction is not confirmed in time."""
    pass
