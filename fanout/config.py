import os
from decimal import Decimal
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Solana network configuration
SOLANA_NETWORK = os.getenv("SOLANA_NETWORK", "mainnet-beta")
RPC_URL = os.getenv(
    "RPC_URL",
    "https://api.devnet.solana.com" if SOLANA_NETWORK == "devnet" else "https://api.mainnet-beta.solana.com"
)
COMMITMENT = os.getenv("COMMITMENT", "confirmed")

# Wallet storage configuration
WALLET_DIR = os.getenv("WALLET_DIR", os.path.join(os.getcwd(), "wallet"))
WALLET_PASSPHRASE = os.getenv("WALLET_PASSPHRASE") or None

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# Batch configuration
FEE_PER_TRANSFER_ESTIMATE = Decimal(os.getenv("FEE_PER_TRANSFER_ESTIMATE", "0.000005"))  # SOL
PACING_DELAY_SECONDS = float(os.getenv("PACING_DELAY_SECONDS", "0.5"))
CONFIRMATION_TIMEOUT = int(os.getenv("CONFIRMATION_TIMEOUT", "60"))  # seconds

# Chain constants
LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9
DEFAULT_FEE_LAMPORTS = 5000
MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"

__all__ = [
    'SOLANA_NETWORK',
    'RPC_URL',
    'COMMITMENT',
    'WALLET_DIR',
    'WALLET_PASSPHRASE',
    'LOG_LEVEL',
    'LOG_DIR',
    'FEE_PER_TRANSFER_ESTIMATE',
    'PACING_DELAY_SECONDS',
    'CONFIRMATION_TIMEOUT',
    'LAMPORTS_PER_SOL',
    'SOL_DECIMALS',
    'DEFAULT_FEE_LAMPORTS',
    'MEMO_PROGRAM_ID',
]
