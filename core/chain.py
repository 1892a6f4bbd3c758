"""Chain access: balances, gas gating and transaction sending.

All RPC traffic goes through ``web3``'s async client; one
:class:`~web3.AsyncWeb3` instance is kept per network for the lifetime of
a :class:`BalanceOracle`.  Balances themselves are never cached.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from eth_account import Account
from web3 import AsyncWeb3, Web3

from core.config import BotSettings
from core.networks import (
    SETTLEMENT_NETWORK,
    UnsupportedNetworkError,
    normalize_network_name,
)
from core.wallet import Wallet

logger = logging.getLogger(__name__)

RECEIPT_TIMEOUT_SECONDS = 300


class TransactionFailedError(Exception):
    """A broadcast transaction reverted or never got a receipt."""

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class BalanceOracle:
    """Native balance and gas price reader for every configured network.

    Args:
        settings: Settings providing ``rpc_urls``.
    """

    def __init__(self, settings: BotSettings) -> None:
        self.settings = settings
        self._clients: Dict[str, AsyncWeb3] = {}

    def get_client(self, network: str) -> AsyncWeb3:
        """Return (and lazily create) the RPC client for *network*.

        Raises:
            UnsupportedNetworkError: Unknown network or no RPC URL.
        """
        key = normalize_network_name(network)
        if key is None:
            raise UnsupportedNetworkError(f"Unsupported network: {network}")
        client = self._clients.get(key)
        if client is None:
            url = self.settings.get_rpc_url(key)
            if not url:
                raise UnsupportedNetworkError(
                    f"No RPC URL configured for {key}"
                )
            client = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(url))
            self._clients[key] = client
        return client

    async def get_balance_wei(
        self, address: str, network: str = SETTLEMENT_NETWORK,
    ) -> int:
        client = self.get_client(network)
        return await client.eth.get_balance(
            Web3.to_checksum_address(address)
        )

    async def get_balance(
        self, address: str, network: str = SETTLEMENT_NETWORK,
    ) -> Decimal:
        """Native balance of *address* on *network* in ether units."""
        wei = await self.get_balance_wei(address, network)
        return Decimal(Web3.from_wei(wei, "ether"))

    async def get_gas_price_gwei(
        self, network: str = SETTLEMENT_NETWORK,
    ) -> Decimal:
        client = self.get_client(network)
        wei = await client.eth.gas_price
        return Decimal(Web3.from_wei(wei, "gwei"))

    async def close(self) -> None:
        for key, client in list(self._clients.items()):
            try:
                await client.provider.disconnect()
            except Exception as exc:
                logger.debug("Error closing %s RPC client: %s", key, exc)
        self._clients.clear()


class GasGate:
    """Block until the settlement-chain gas price drops below a ceiling.

    Waiting is indefinite unless *max_wait* is given.  Setting the
    ``stop_event`` passed to :meth:`wait_for_gas` ends the wait early.

    Args:
        oracle: :class:`BalanceOracle` used to read gas prices.
        max_gas: Ceiling in gwei.
        poll_interval: Seconds between polls.
        max_wait: Optional bound on the total wait in seconds.
        network: Network whose gas price is watched.
    """

    def __init__(
        self,
        oracle: BalanceOracle,
        max_gas: float,
        poll_interval: float = 60,
        max_wait: Optional[float] = None,
        network: str = SETTLEMENT_NETWORK,
    ) -> None:
        self.oracle = oracle
        self.max_gas = Decimal(str(max_gas))
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.network = network

    @classmethod
    def from_settings(
        cls, oracle: BalanceOracle, settings: BotSettings,
    ) -> "GasGate":
        return cls(
            oracle,
            max_gas=settings.max_gas,
            poll_interval=settings.gas_poll_interval,
            max_wait=settings.gas_max_wait_seconds,
        )

    async def wait_for_gas(
        self, stop_event: Optional[asyncio.Event] = None,
    ) -> bool:
        """Wait until gas is acceptable.

        Returns:
            ``True`` once gas is at or below the ceiling, ``False`` when
            the wait was cancelled or exceeded ``max_wait``.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()

        while True:
            if stop_event is not None and stop_event.is_set():
                return False

            try:
                gas = await self.oracle.get_gas_price_gwei(self.network)
            except Exception as exc:
                logger.warning("Failed to read gas price: %s", exc)
                gas = None

            if gas is not None and gas <= self.max_gas:
                return True

            if gas is not None:
                logger.info(
                    "Current gas %.2f gwei is above the %s gwei limit, "
                    "waiting %s sec...",
                    gas, self.max_gas, self.poll_interval,
                )

            if (
                self.max_wait is not None
                and loop.time() - started >= self.max_wait
            ):
                logger.warning(
                    "Gas stayed above %s gwei for %s sec, giving up",
                    self.max_gas, self.max_wait,
                )
                return False

            if stop_event is None:
                await asyncio.sleep(self.poll_interval)
                continue
            try:
                await asyncio.wait_for(
                    stop_event.wait(), timeout=self.poll_interval,
                )
            except asyncio.TimeoutError:
                continue
            return False


async def send_transaction(
    client: AsyncWeb3,
    wallet: Wallet,
    tx: Dict[str, Any],
    receipt_timeout: float = RECEIPT_TIMEOUT_SECONDS,
) -> str:
    """Fill, sign, broadcast *tx* and wait for a successful receipt.

    Missing ``chainId``, ``nonce``, fee and ``gas`` fields are filled from
    the node.

    Returns:
        The ``0x`` transaction hash.

    Raises:
        TransactionFailedError: The transaction reverted or timed out
            after broadcast.
    """
    tx = dict(tx)
    tx["from"] = wallet.address
    if "chainId" not in tx:
        tx["chainId"] = await client.eth.chain_id
    if "nonce" not in tx:
        tx["nonce"] = await client.eth.get_transaction_count(wallet.address)
    if "gasPrice" not in tx and "maxFeePerGas" not in tx:
        tx["gasPrice"] = await client.eth.gas_price
    if "gas" not in tx:
        tx["gas"] = await client.eth.estimate_gas(tx)

    signed = Account.from_key(wallet.private_key).sign_transaction(tx)
    raw_hash = await client.eth.send_raw_transaction(signed.raw_transaction)
    tx_hash = Web3.to_hex(raw_hash)

    try:
        receipt = await client.eth.wait_for_transaction_receipt(
            raw_hash, timeout=receipt_timeout,
        )
    except Exception as exc:
        raise TransactionFailedError(
            f"No receipt for {tx_hash}: {exc}", tx_hash,
        ) from exc

    if receipt["status"] != 1:
        raise TransactionFailedError(f"Transaction {tx_hash} reverted", tx_hash)
    return tx_hash
