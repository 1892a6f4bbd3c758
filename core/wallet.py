"""Wallet list loading.

Private keys come from a flat text file, one key per line.  Keys are
normalised to the ``0x`` form and turned into :class:`Wallet` objects whose
``repr`` never exposes the key.
"""

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from eth_account import Account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Wallet:
    """An EVM account derived from a private key.

    Attributes:
        address: Checksummed address.
        private_key: ``0x``-prefixed hex key (excluded from ``repr``).
    """

    address: str
    private_key: str = field(repr=False)

    @classmethod
    def from_private_key(cls, private_key: str) -> "Wallet":
        key = format_private_key(private_key)
        account = Account.from_key(key)
        return cls(address=account.address, private_key=key)


def format_private_key(private_key: str) -> str:
    """Return *private_key* stripped and with a ``0x`` prefix."""
    key = private_key.strip()
    if key.startswith("0x"):
        return key
    return f"0x{key}"


def read_private_keys(file_path: Union[str, Path]) -> List[str]:
    """Read non-empty, stripped lines from *file_path*.

    Any error while reading is logged and yields an empty list, which
    turns the whole run into a no-op.
    """
    try:
        content = Path(file_path).read_text(encoding="utf-8")
    except Exception as exc:
        logger.error("Error reading the key file %s: %s", file_path, exc)
        return []
    return [line.strip() for line in content.splitlines() if line.strip()]


def load_wallets(
    file_path: Union[str, Path], shuffle: bool = False,
) -> List[Wallet]:
    """Load wallets from the key file, optionally in random order.

    Lines that are not valid private keys are skipped with a warning
    naming only the line number.

    Args:
        file_path: Path to the key file.
        shuffle: Shuffle the resulting list in place.

    Returns:
        Wallets in file order (or shuffled).
    """
    wallets: List[Wallet] = []
    for line_no, raw_key in enumerate(read_private_keys(file_path), start=1):
        try:
            wallets.append(Wallet.from_private_key(raw_key))
        except Exception:
            logger.warning(
                "Skipping line %d of %s: not a valid private key",
                line_no, file_path,
            )

    if shuffle:
        random.shuffle(wallets)

    logger.info("Loaded %d wallet(s) from %s", len(wallets), file_path)
    return wallets
