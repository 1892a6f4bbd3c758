"""Relay bridge integration.

Bridges native ETH from an L2 network to the settlement chain through the
Relay REST API (https://docs.relay.link).  A quote returns both the fees
and the transaction steps to execute; each step is signed locally with the
wallet's key and broadcast through the source network's RPC.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import aiohttp
from web3 import Web3

from core.chain import BalanceOracle, TransactionFailedError, send_transaction
from core.config import BotSettings
from core.models import BridgeQuote, BridgeResult
from core.networks import NETWORKS, SETTLEMENT_NETWORK, get_network
from core.retry import RetryResult, retry_async
from core.wallet import Wallet

logger = logging.getLogger(__name__)

NATIVE_CURRENCY = "0x0000000000000000000000000000000000000000"


class RelayApiError(Exception):
    """The Relay API returned an error or an unusable response."""


class BridgeExecutionError(Exception):
    """A bridge transaction was broadcast but did not complete."""

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class RelayBridge:
    """Bridge native ETH from *from_network* to the settlement chain.

    Args:
        settings: Settings with the Relay URL and retry policy.
        wallet: Wallet that signs on the source network.
        from_network: Source network (any alias).
        oracle: Shared :class:`BalanceOracle` providing RPC clients.
        session: Optional shared aiohttp session.

    Raises:
        UnsupportedNetworkError: If *from_network* is unknown.
    """

    def __init__(
        self,
        settings: BotSettings,
        wallet: Wallet,
        from_network: str,
        oracle: BalanceOracle,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.settings = settings
        self.wallet = wallet
        self.network = get_network(from_network)
        self.destination = NETWORKS[SETTLEMENT_NETWORK]
        self.oracle = oracle
        self.api_url = settings.relay_api_url.rstrip("/")
        self._session = session
        self.last_quote: Optional[BridgeQuote] = None

    @property
    def address(self) -> str:
        return self.wallet.address

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self.settings.http_timeout_seconds * 3,
                ),
            )
        return self._session

    async def close(self) -> None:
        if self._session:
            await self._session.close()

    async def get_balance(self) -> int:
        """Wallet balance on the source network, in wei."""
        return await self.oracle.get_balance_wei(self.address, self.network.key)

    async def _request_quote(self, amount_wei: int) -> Dict[str, Any]:
        payload = {
            "user": self.address,
            "recipient": self.address,
            "originChainId": self.network.chain_id,
            "destinationChainId": self.destination.chain_id,
            "originCurrency": NATIVE_CURRENCY,
            "destinationCurrency": NATIVE_CURRENCY,
            "amount": str(amount_wei),
            "tradeType": "EXACT_INPUT",
        }
        session = await self._get_session()
        async with session.post(f"{self.api_url}/quote", json=payload) as resp:
            data = await resp.json(content_type=None)
            if resp.status != 200:
                message = (
                    data.get("message") if isinstance(data, dict) else data
                )
                raise RelayApiError(
                    f"Relay quote failed ({resp.status}): {message}"
                )
        if not isinstance(data, dict):
            raise RelayApiError("Relay quote returned a non-object body")
        return data

    @staticmethod
    def parse_fees(data: Dict[str, Any]) -> BridgeQuote:
        """Extract gas and relayer fees (wei) from a quote response."""
        fees = data.get("fees") or {}
        try:
            gas = int(fees["gas"]["amount"])
            relayer = int(fees["relayer"]["amount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise RelayApiError(f"Malformed fees in Relay quote: {exc}") from exc
        return BridgeQuote(gas_fee=gas, relayer_fee=relayer)

    async def _quote_once(self, amount_wei: int) -> BridgeQuote:
        quote = self.parse_fees(await self._request_quote(amount_wei))
        self.last_quote = quote
        return quote

    async def get_quote(self, amount: Decimal) -> RetryResult[BridgeQuote]:
        """Fee quote for bridging *amount* ETH, retried on failure."""
        amount_wei = Web3.to_wei(amount, "ether")
        return await retry_async(
            lambda: self._quote_once(amount_wei),
            attempts=self.settings.bridge_retry_attempts,
            delay=self.settings.bridge_retry_delay,
            label=f"{self.address} | Relay quote on {self.network.key}",
        )

    def _build_tx(self, data: Dict[str, Any]) -> Dict[str, Any]:
        tx: Dict[str, Any] = {
            "to": Web3.to_checksum_address(data["to"]),
            "data": data.get("data") or "0x",
            "value": int(data.get("value") or 0),
            "chainId": int(data.get("chainId") or self.network.chain_id),
        }
        if data.get("maxFeePerGas") and data.get("maxPriorityFeePerGas"):
            tx["maxFeePerGas"] = int(data["maxFeePerGas"])
            tx["maxPriorityFeePerGas"] = int(data["maxPriorityFeePerGas"])
        if data.get("gas"):
            tx["gas"] = int(data["gas"])
        return tx

    async def _wait_for_fill(self, check: Dict[str, Any], tx_hash: str) -> None:
        """Poll the step's status endpoint until Relay reports success."""
        endpoint = check.get("endpoint")
        if not endpoint:
            return
        session = await self._get_session()
        for _ in range(self.settings.bridge_status_max_attempts):
            try:
                async with session.get(f"{self.api_url}{endpoint}") as resp:
                    data = await resp.json(content_type=None)
            except Exception as exc:
                logger.debug("%s | Relay status check failed: %s", self.address, exc)
                data = {}

            status = data.get("status") if isinstance(data, dict) else None
            if status == "success":
                return
            if status in ("failure", "refund"):
                raise BridgeExecutionError(
                    f"Relay reported status {status}", tx_hash,
                )
            await asyncio.sleep(self.settings.bridge_status_poll_interval)

        raise BridgeExecutionError(
            "Relay did not confirm the bridge in time", tx_hash,
        )

    async def _bridge_once(self, amount_wei: int) -> str:
        data = await self._request_quote(amount_wei)
        self.last_quote = self.parse_fees(data)
        steps = data.get("steps") or []
        if not steps:
            raise RelayApiError("Relay quote contained no steps")

        client = self.oracle.get_client(self.network.key)
        first_hash: Optional[str] = None
        for step in steps:
            if step.get("kind") != "transaction":
                raise RelayApiError(
                    f"Unsupported Relay step kind: {step.get('kind')}"
                )
            for item in step.get("items") or []:
                if item.get("status") == "complete":
                    continue
                try:
                    tx = self._build_tx(item.get("data") or {})
                    tx_hash = await send_transaction(client, self.wallet, tx)
                except TransactionFailedError as exc:
                    raise BridgeExecutionError(str(exc), exc.tx_hash) from exc
                except Exception as exc:
                    if first_hash is None:
                        raise
                    # an earlier item is already on chain
                    raise BridgeExecutionError(str(exc), first_hash) from exc
                first_hash = first_hash or tx_hash
                await self._wait_for_fill(item.get("check") or {}, tx_hash)

        if first_hash is None:
            raise RelayApiError("Relay quote had no pending transactions")
        return first_hash

    async def bridge(self, amount: Decimal) -> BridgeResult:
        """Bridge *amount* ETH to the settlement chain.

        Failures before a transaction is broadcast are retried; once a
        transaction is on chain it is never re-sent.
        """
        amount_wei = Web3.to_wei(amount, "ether")
        result = await retry_async(
            lambda: self._bridge_once(amount_wei),
            attempts=self.settings.bridge_retry_attempts,
            delay=self.settings.bridge_retry_delay,
            no_retry_on=(BridgeExecutionError,),
            label=(
                f"{self.address} | Relay bridge "
                f"{self.network.key} -> {self.destination.key}"
            ),
        )
        if result.ok:
            logger.info(
                "%s | Successful bridge %s -> %s: %s",
                self.address,
                self.network.key,
                self.destination.key,
                self.network.tx_link(result.value),
            )
            return BridgeResult(success=True, tx_hash=result.value)

        tx_hash = getattr(result.error, "tx_hash", None)
        return BridgeResult(
            success=False, tx_hash=tx_hash, error=result.error_message,
        )
