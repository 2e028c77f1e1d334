"""
SOL balance lookups.
"""

from decimal import Decimal
from typing import Optional

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey

from fanout.config import RPC_URL, COMMITMENT
from fanout.solana.errors import BalanceQueryError
from fanout.utils.amounts import lamports_to_sol


class BalanceOracle:
    """
    Returns the spendable SOL balance of an address.
    """

    def __init__(self, rpc_url: str = RPC_URL, commitment: str = COMMITMENT,
                 client: Optional[AsyncClient] = None):
        """
        Initialize the balance oracle.

        Args:
            rpc_url: Solana RPC endpoint
            commitment: Commitment level used for balance queries
            client: Optional AsyncClient instance. If None, creates a new one.
        """
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.client = client if client else AsyncClient(rpc_url, commitment=self.commitment)
        logger.debug(f"BalanceOracle initialized on {rpc_url}")

    async def get_lamports(self, address: str) -> int:
        try:
            pubkey = Pubkey.from_string(address)
        except ValueError:
            raise BalanceQueryError(f"Invalid address: {address}")

        try:
            resp = await self.client.get_balance(pubkey, commitment=self.commitment)
        except (RPCException, SolanaRpcException) as e:
            logger.error(f"Failed to get SOL balance for {address}: {str(e)}")
            raise BalanceQueryError(f"Failed to get SOL balance for {address}: {str(e)}") from e
        return resp.value

    async def get_balance(self, address: str) -> Decimal:
        """
        Gets the SOL balance of an address.

        Args:
            address: Base58 public key

        Returns:
            Balance in SOL
        """
        balance = lamports_to_sol(await self.get_lamports(address))
        logger.debug(f"Balance of {address}: {balance} SOL")
        return balance

    async def close(self):
        await self.client.close()
