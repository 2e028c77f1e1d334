"""
Transaction execution for native SOL transfers.
"""

import asyncio
from decimal import Decimal
from typing import Optional, Union

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException, UnconfirmedTxError, TransactionExpiredBlockheightExceededError
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from fanout.config import RPC_URL, COMMITMENT, CONFIRMATION_TIMEOUT
from fanout.solana.errors import (
    TransferError,
    InvalidAddressError,
    InsufficientBalanceError,
    NetworkError,
    TransferTimeoutError
)
from fanout.solana.instructions import build_transfer_message
from fanout.utils.amounts import sol_to_lamports, lamports_to_sol


class TxExecutor:
    """
    Signs, sends and confirms a single SOL transfer.

    Each call either returns the confirmed transaction signature or raises
    a TransferError subclass describing why the transfer failed.
    """

    def __init__(self,
                 rpc_url: str = RPC_URL,
                 commitment: str = COMMITMENT,
                 client: Optional[AsyncClient] = None,
                 confirmation_timeout: float = CONFIRMATION_TIMEOUT):
        """
        Initialize the transaction executor.

        Args:
            rpc_url: Solana RPC endpoint
            commitment: Commitment level a transfer must reach
            client: Optional AsyncClient instance. If None, creates a new one.
            confirmation_timeout: Seconds to wait for confirmation
        """
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.client = client if client else AsyncClient(rpc_url, commitment=self.commitment)
        self.confirmation_timeout = confirmation_timeout
        logger.info(f"TxExecutor initialized on {rpc_url}")

    async def transfer(
        self,
        source: Keypair,
        destination: str,
        amount: Union[Decimal, str, float],
        memo: Optional[str] = None
    ) -> str:
        """
        Transfers SOL from the source keypair to a destination address.

        Args:
            source: Sender keypair, also the fee payer
            destination: Recipient address (base58)
            amount: Amount in SOL
            memo: Optional memo attached to the transaction

        Returns:
            Confirmed transaction signature

        Raises:
            InvalidAddressError: If the destination is not a valid public key
            InsufficientBalanceError: If the sender cannot cover the amount
            NetworkError: If the node rejects or cannot receive the transaction
            TransferTimeoutError: If confirmation does not arrive in time
        """
        try:
            recipient = Pubkey.from_string(destination)
        except ValueError:
            raise InvalidAddressError(f"Invalid recipient address: {destination}")

        lamports = sol_to_lamports(amount)
        if lamports <= 0:
            raise TransferError(f"Transfer amount must be at least 1 lamport, got {amount} SOL")

        sender = source.pubkey()
        logger.info(
            f"Transferring {amount} SOL from {sender} to {destination}",
            extra={"lamports": lamports, "memo": memo}
        )

        try:
            balance = (await self.client.get_balance(sender, commitment=self.commitment)).value
        except (RPCException, SolanaRpcException) as e:
            raise NetworkError(f"Failed to get sender balance: {str(e)}") from e

        if balance < lamports:
            raise InsufficientBalanceError(
                f"Insufficient balance. Available: {lamports_to_sol(balance)} SOL, Required: {amount} SOL"
            )

        try:
            blockhash_resp = await self.client.get_latest_blockhash(commitment=self.commitment)
            blockhash = blockhash_resp.value.blockhash
            message = build_transfer_message(sender, recipient, lamports, blockhash, memo)
            tx = Transaction([source], message, blockhash)
            resp = await self.client.send_transaction(
                tx,
                opts=TxOpts(skip_confirmation=True, preflight_commitment=self.commitment)
            )
        except RPCException as e:
            error = str(e)
            logger.error(f"Transfer to {destination} rejected: {error}")
            if "insufficient" in error.lower():
                raise InsufficientBalanceError(error) from e
            raise NetworkError(error) from e
        except SolanaRpcException as e:
            logger.error(f"Transfer to {destination} failed: {str(e)}")
            raise NetworkError(str(e)) from e

        signature = resp.value
        await self._wait_for_confirmation(signature, blockhash_resp.value.last_valid_block_height)

        logger.success(
            f"Transfer completed: {signature}",
            extra={"to": destination, "lamports": lamports}
        )
        return str(signature)

    async def _wait_for_confirmation(self, signature: Signature, last_valid_block_height: Optional[int] = None):
        """
        Waits until the transaction reaches the configured commitment.

        Args:
            signature: Transaction signature
            last_valid_block_height: Height after which the blockhash expires
        """
        try:
            resp = await asyncio.wait_for(
                self.client.confirm_transaction(
                    signature,
                    commitment=self.commitment,
                    last_valid_block_height=last_valid_block_height
                ),
                timeout=self.confirmation_timeout
            )
        except (asyncio.TimeoutError, UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            logger.warning(f"Transaction confirmation timeout for {signature}")
            raise TransferTimeoutError(
                f"Transaction {signature} not confirmed within {self.confirmation_timeout}s",
                signature=str(signature)
            ) from e
        except (RPCException, SolanaRpcException) as e:
            raise NetworkError(f"Error checking transaction status: {str(e)}", signature=str(signature)) from e

        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            logger.error(f"Transaction error: {status.err}")
            raise TransferError(f"Transaction {signature} failed: {status.err}", signature=str(signature))

    async def close(self):
        await self.client.close()
