"""
Fee estimation for SOL transfers.
"""

from typing import Optional

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from fanout.config import RPC_URL, COMMITMENT, DEFAULT_FEE_LAMPORTS
from fanout.solana.instructions import build_transfer_message
from fanout.solana.models import FeeEstimate
from fanout.utils.amounts import lamports_to_sol


class FeeOracle:
    """
    Estimates the network fee of a single SOL transfer.
    """

    def __init__(self, rpc_url: str = RPC_URL, commitment: str = COMMITMENT,
                 client: Optional[AsyncClient] = None):
        """
        Initialize the fee oracle.

        Args:
            rpc_url: Solana RPC endpoint
            commitment: Commitment level used for the estimate
            client: Optional AsyncClient instance. If None, creates a new one.
        """
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.client = client if client else AsyncClient(rpc_url, commitment=self.commitment)
        logger.debug(f"FeeOracle initialized on {rpc_url}")

    def default_estimate(self) -> FeeEstimate:
        return FeeEstimate(
            lamports=DEFAULT_FEE_LAMPORTS,
            sol=lamports_to_sol(DEFAULT_FEE_LAMPORTS),
            is_default=True
        )

    async def estimate_transfer_fee(self, payer: Pubkey, memo: Optional[str] = None) -> FeeEstimate:
        """
        Asks the node for the fee of a sample transfer message.

        Falls back to the default of 5000 lamports when the node cannot
        price the message.

        Args:
            payer: Fee payer of the sample transfer
            memo: Optional memo, which changes the message size

        Returns:
            FeeEstimate for one transfer
        """
        try:
            blockhash_resp = await self.client.get_latest_blockhash(commitment=self.commitment)
            message = build_transfer_message(
                sender=payer,
                recipient=Keypair().pubkey(),
                lamports=1,
                blockhash=blockhash_resp.value.blockhash,
                memo=memo
            )
            resp = await self.client.get_fee_for_message(message, commitment=self.commitment)
        except (RPCException, SolanaRpcException) as e:
            logger.warning(f"Could not estimate fee: {str(e)}")
            return self.default_estimate()

        if resp.value is None:
            logger.warning("Node returned no fee for sample message, using default estimate")
            return self.default_estimate()

        estimate = FeeEstimate(lamports=resp.value, sol=lamports_to_sol(resp.value))
        logger.debug(
            f"Current fee estimate: {estimate.lamports} lamports",
            extra={"fee": estimate.lamports}
        )
        return estimate

    async def close(self):
        await self.client.close()
