"""
Keypair storage for the main wallet and the ordered distributed wallets.
"""

import os
import re
import json
import tempfile
from datetime import datetime
from typing import List, Optional, Dict, Any

import base58
from solders.keypair import Keypair
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from loguru import logger

from fanout.config import WALLET_DIR, WALLET_PASSPHRASE
from fanout.solana.errors import WalletStoreError, WalletExistsError, MissingMainWalletError
from fanout.solana.models import WalletSlot

SLOT_FILE_PATTERN = re.compile(r"^wallet-(\d+)\.json$")


class WalletStore:
    """
    Persists keypairs for the main wallet and the distributed wallets.

    Distributed wallets are ordered by the index recorded in
    ``distributed/index.json``; the directory listing is never used to
    decide the order once the index exists.
    """

    INDEX_VERSION = 1
    KDF_ITERATIONS = 100000

    def __init__(self, wallet_dir: str = WALLET_DIR, passphrase: Optional[str] = WALLET_PASSPHRASE):
        """
        Initialize the wallet store.

        Args:
            wallet_dir: Directory holding main.json and the distributed/ folder
            passphrase: Optional passphrase used to encrypt secret keys at rest
        """
        self.wallet_dir = wallet_dir
        self.distributed_dir = os.path.join(wallet_dir, "distributed")
        self.main_path = os.path.join(wallet_dir, "main.json")
        self.index_path = os.path.join(self.distributed_dir, "index.json")
        self._passphrase = passphrase
        self._ensure_directories()
        logger.info(
            f"WalletStore initialized at {wallet_dir}",
            extra={"encrypted": passphrase is not None}
        )

    def _ensure_directories(self) -> None:
        try:
            os.makedirs(self.distributed_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create wallet directories: {str(e)}")
            raise

    # Secret encoding

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self.KDF_ITERATIONS,
        )
        return kdf.derive(self._passphrase.encode())

    def _encrypt_private_key(self, private_key: bytes) -> Dict[str, Any]:
        """
        Encrypts a private key for storage.

        Args:
            private_key: The full 64-byte secret key

        Returns:
            Fields for the key file, base58 encoded
        """
        salt = os.urandom(16)
        nonce = os.urandom(12)
        ct = AESGCM(self._derive_key(salt)).encrypt(nonce, private_key, None)
        return {
            "encrypted": True,
            "salt": base58.b58encode(salt).decode('utf-8'),
            "secret_key": base58.b58encode(nonce + ct).decode('utf-8'),
        }

    def _decrypt_private_key(self, record: Dict[str, Any]) -> bytes:
        if self._passphrase is None:
            raise WalletStoreError("Wallet file is encrypted but no WALLET_PASSPHRASE is configured")
        salt = base58.b58decode(record["salt"])
        blob = base58.b58decode(record["secret_key"])
        try:
            return AESGCM(self._derive_key(salt)).decrypt(blob[:12], blob[12:], None)
        except InvalidTag:
            raise WalletStoreError("Failed to decrypt wallet file: wrong passphrase or corrupt data")

    def _encode_keypair(self, keypair: Keypair) -> str:
        record: Dict[str, Any] = {"address": str(keypair.pubkey())}
        if self._passphrase is not None:
            record.update(self._encrypt_private_key(bytes(keypair)))
        else:
            record.update({
                "encrypted": False,
                "secret_key": base58.b58encode(bytes(keypair)).decode('utf-8'),
            })
        return json.dumps(record, indent=2)

    @staticmethod
    def keypair_from_secret(secret: str) -> Keypair:
        """
        Build a keypair from a base58 secret or a JSON array of ints.

        Args:
            secret: 64-byte secret key (or 32-byte seed) as base58, or a JSON int array

        Returns:
            Keypair object
        """
        secret = secret.strip().strip("'\"")
        try:
            if secret.startswith("["):
                pk_bytes = bytes(json.loads(secret))
            else:
                pk_bytes = base58.b58decode(secret)
        except (ValueError, TypeError):
            raise ValueError("Invalid private key format. Expected base58 string or JSON array.")

        if len(pk_bytes) == 64:
            return Keypair.from_bytes(pk_bytes)
        if len(pk_bytes) == 32:
            return Keypair.from_seed(pk_bytes)
        raise ValueError(f"Invalid private key length: {len(pk_bytes)} bytes")

    def _decode_file(self, content: str) -> Keypair:
        content = content.strip()
        try:
            data = json.loads(content)
        except ValueError:
            # Bare base58 secret written by older tooling
            return self.keypair_from_secret(content)

        if isinstance(data, list):
            return self.keypair_from_secret(content)
        if not isinstance(data, dict) or "secret_key" not in data:
            raise WalletStoreError("Unrecognized wallet file format")

        if data.get("encrypted"):
            keypair = Keypair.from_bytes(self._decrypt_private_key(data))
        else:
            keypair = self.keypair_from_secret(data["secret_key"])

        address = data.get("address")
        if address and address != str(keypair.pubkey()):
            raise WalletStoreError(f"Wallet file address {address} does not match its secret key")
        return keypair

    # File helpers

    def _write_file(self, path: str, content: str) -> None:
        """Atomically write a file readable only by the owner."""
        directory = os.path.dirname(path)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load_wallet_from_file(self, path: str) -> Keypair:
        if not os.path.exists(path):
            raise WalletStoreError(f"Wallet file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return self._decode_file(f.read())
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise WalletStoreError(f"Failed to load wallet from {path}: {str(e)}")

    def save_wallet_to_file(self, keypair: Keypair, path: str) -> None:
        self._write_file(path, self._encode_keypair(keypair))
        logger.info(f"Wallet {keypair.pubkey()} saved to {path}")

    # Main wallet

    def has_main(self) -> bool:
        return os.path.exists(self.main_path)

    def load_main(self) -> Keypair:
        if not self.has_main():
            raise MissingMainWalletError()
        return self.load_wallet_from_file(self.main_path)

    def save_main(self, keypair: Keypair, overwrite: bool = False) -> WalletSlot:
        if self.has_main() and not overwrite:
            raise WalletExistsError(
                f"Main wallet already exists at {self.main_path}. "
                "Delete it first if you want to replace it."
            )
        self.save_wallet_to_file(keypair, self.main_path)
        return WalletSlot(name="main", address=str(keypair.pubkey()), file=os.path.basename(self.main_path))

    def create_main(self) -> Keypair:
        """Generate and persist a new main wallet."""
        keypair = Keypair()
        self.save_main(keypair)
        logger.info(f"Created new main wallet: {keypair.pubkey()}")
        return keypair

    def import_main(self, secret: str, overwrite: bool = False) -> Keypair:
        """Persist an existing secret key as the main wallet."""
        keypair = self.keypair_from_secret(secret)
        self.save_main(keypair, overwrite=overwrite)
        logger.info(f"Imported main wallet: {keypair.pubkey()}")
        return keypair

    # Distributed wallets

    def _slot_path(self, slot_file: str) -> str:
        return os.path.join(self.distributed_dir, slot_file)

    def _write_index(self, slots: List[WalletSlot]) -> None:
        data = {
            "version": self.INDEX_VERSION,
            "slots": [
                {
                    "index": s.index,
                    "file": s.file,
                    "address": s.address,
                    "created_at": s.created_at.isoformat(),
                }
                for s in slots
            ],
        }
        self._write_file(self.index_path, json.dumps(data, indent=2))

    def _rebuild_index(self) -> List[WalletSlot]:
        """Build the index from wallet-<i>.json files left by older tooling."""
        found = []
        for filename in os.listdir(self.distributed_dir):
            match = SLOT_FILE_PATTERN.match(filename)
            if match:
                found.append((int(match.group(1)), filename))
        if not found:
            return []

        found.sort()
        indices = [i for i, _ in found]
        if indices != list(range(len(indices))):
            raise WalletStoreError(f"Distributed wallet files are not contiguous: {indices}")

        slots = []
        for index, filename in found:
            keypair = self.load_wallet_from_file(self._slot_path(filename))
            mtime = os.path.getmtime(self._slot_path(filename))
            slots.append(WalletSlot(
                name="distributed",
                index=index,
                address=str(keypair.pubkey()),
                file=filename,
                created_at=datetime.fromtimestamp(mtime),
            ))

        self._write_index(slots)
        logger.warning(f"Rebuilt distributed wallet index from {len(slots)} existing files")
        return slots

    def _read_index(self) -> List[WalletSlot]:
        if not os.path.exists(self.index_path):
            return self._rebuild_index()
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            slots = [
                WalletSlot(name="distributed", **entry)
                for entry in data.get("slots", [])
            ]
        except (ValueError, TypeError, AttributeError) as e:
            raise WalletStoreError(f"Corrupt wallet index {self.index_path}: {str(e)}")

        for slot in slots:
            if slot.index is None or not slot.file:
                raise WalletStoreError(f"Corrupt wallet index {self.index_path}: entry for {slot.address} lacks index or file")

        slots.sort(key=lambda s: s.index)
        if [s.index for s in slots] != list(range(len(slots))):
            raise WalletStoreError(f"Wallet index has gaps: {[s.index for s in slots]}")
        return slots

    def list_slots(self) -> List[WalletSlot]:
        """Returns the distributed wallet slots ordered by index."""
        return self._read_index()

    def count_slots(self) -> int:
        return len(self._read_index())

    def create_slot(self, index: int) -> Keypair:
        """
        Creates and persists the distributed wallet at the given index.

        Slots are contiguous, so ``index`` must equal the current count.
        A key file left behind by an interrupted creation is adopted
        instead of being overwritten.

        Args:
            index: Index of the new slot

        Returns:
            The slot's keypair
        """
        slots = self._read_index()
        if index < len(slots):
            raise WalletExistsError(f"Distributed wallet {index} already exists")
        if index != len(slots):
            raise WalletStoreError(f"Cannot create wallet {index}: next free index is {len(slots)}")

        filename = f"wallet-{index}.json"
        path = self._slot_path(filename)
        if os.path.exists(path):
            keypair = self.load_wallet_from_file(path)
            logger.warning(f"Adopting unindexed wallet file {filename} ({keypair.pubkey()})")
        else:
            keypair = Keypair()
            self.save_wallet_to_file(keypair, path)

        slots.append(WalletSlot(
            name="distributed",
            index=index,
            address=str(keypair.pubkey()),
            file=filename,
        ))
        self._write_index(slots)
        return keypair

    def load_slot(self, index: int) -> Keypair:
        slots = self._read_index()
        if index < 0 or index >= len(slots):
            raise WalletStoreError(f"Distributed wallet {index} does not exist")
        return self._load_indexed(slots[index])

    def _load_indexed(self, slot: WalletSlot) -> Keypair:
        keypair = self.load_wallet_from_file(self._slot_path(slot.file))
        if str(keypair.pubkey()) != slot.address:
            raise WalletStoreError(
                f"Wallet file {slot.file} holds {keypair.pubkey()}, index expects {slot.address}"
            )
        return keypair

    def load_all_slots(self) -> List[Keypair]:
        """Loads every distributed wallet keypair in index order."""
        return [self._load_indexed(slot) for slot in self._read_index()]
