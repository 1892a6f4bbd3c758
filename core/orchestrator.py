"""Per-wallet funding and faucet-claim workflow.

For every wallet the orchestrator makes sure the settlement-chain balance
meets the faucet requirement before claiming:

1. wait for acceptable gas on the settlement chain;
2. claim directly when the balance is already high enough;
3. otherwise bridge the shortfall from the first candidate network that
   can cover it (plus the Relay fee);
4. failing that, withdraw from OKX to an L2 and bridge it over;
5. claim once the balance is sufficient, or skip the wallet.

Wallets are processed strictly one after another.  Every collaborator
failure is contained to its wallet; the run itself never aborts.

Classes:
    WalletSkipped: Internal signal that a wallet cannot be funded.
    FundingOrchestrator: Drives the workflow over a list of wallets.
"""

import asyncio
import logging
import random
from decimal import Decimal
from typing import Any, Callable, List, Optional

import aiohttp
from web3 import Web3

from core.chain import BalanceOracle, GasGate
from core.config import BotSettings
from core.models import RunSummary
from core.networks import NETWORKS, SETTLEMENT_NETWORK, normalize_network_name
from core.relay_bridge import RelayBridge
from core.utils import random_amount, sleep_between
from core.wallet import Wallet

logger = logging.getLogger(__name__)

BridgeFactory = Callable[[Wallet, str], RelayBridge]


class WalletSkipped(Exception):
    """The wallet cannot be funded; carries the skip reason."""


class FundingOrchestrator:
    """Fund wallets on the settlement chain and claim the faucet.

    Args:
        settings: Run configuration.
        oracle: Balance reader shared with the bridges.
        gas_gate: Settlement-chain gas gate.
        claim_service: Object with ``async claim(address) -> ClaimOutcome``.
        exchange: :class:`~core.okx.OKXClient`, or ``None`` to disable the
            exchange fallback.
        bridge_factory: Builds a bridge for ``(wallet, network_key)``;
            defaults to :class:`RelayBridge`.
        stop_event: Set to stop after the current wallet.
        session: aiohttp session shared by the default bridges.  When
            omitted one is opened on first use and closed when
            :meth:`run` returns.
    """

    def __init__(
        self,
        settings: BotSettings,
        oracle: BalanceOracle,
        gas_gate: GasGate,
        claim_service: Any,
        exchange: Optional[Any] = None,
        bridge_factory: Optional[BridgeFactory] = None,
        stop_event: Optional[asyncio.Event] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.settings = settings
        self.oracle = oracle
        self.gas_gate = gas_gate
        self.claim_service = claim_service
        self.exchange = exchange
        self.bridge_factory = bridge_factory or self._default_bridge
        self.stop_event = stop_event
        self.session = session
        self._owns_session = False

    def _default_bridge(self, wallet: Wallet, network: str) -> RelayBridge:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self.settings.http_timeout_seconds * 3,
                ),
            )
            self._owns_session = True
        return RelayBridge(
            self.settings, wallet, network, self.oracle, session=self.session,
        )

    async def close(self) -> None:
        """Close the bridge session if this orchestrator opened it."""
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
        self._owns_session = False

    def _stopped(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def run(self, wallets: List[Wallet]) -> RunSummary:
        """Process *wallets* in order and return the run's tallies."""
        summary = RunSummary()
        try:
            await self._run_wallets(wallets, summary)
        finally:
            await self.close()
        return summary

    async def _run_wallets(self, wallets: List[Wallet], summary: RunSummary) -> None:
        total = len(wallets)

        for index, wallet in enumerate(wallets, start=1):
            if self._stopped():
                logger.warning("Stop requested, ending run early")
                break

            logger.info("[%d/%d] Processing %s", index, total, wallet.address)
            try:
                await self.process_wallet(wallet, summary)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("%s | Unexpected error: %s", wallet.address, exc)
                summary.record_skip(wallet.address, f"Unexpected error: {exc}")

            if index < total and not self._stopped():
                await sleep_between(
                    self.settings.sleep_wallets_from,
                    self.settings.sleep_wallets_to,
                    "until next wallet...",
                    wallet.address,
                )

    async def process_wallet(self, wallet: Wallet, summary: RunSummary) -> None:
        """Fund *wallet* if needed, claim, and record the result."""
        address = wallet.address
        try:
            await self._ensure_funded(wallet)
        except WalletSkipped as exc:
            reason = str(exc)
            logger.info("%s | %s. Skipping to next wallet...", address, reason)
            summary.record_skip(address, reason)
            return

        outcome = await self.claim_service.claim(address)
        summary.record(outcome)

    async def _ensure_funded(self, wallet: Wallet) -> None:
        address = wallet.address
        if not await self.gas_gate.wait_for_gas(self.stop_event):
            raise WalletSkipped("Gas wait aborted")

        target = self.settings.target_balance
        balance = await self._settlement_balance(wallet)
        if balance >= target:
            logger.info(
                "%s | Balance %s ETH is enough, requesting tokens...",
                address, balance,
            )
            return

        logger.info(
            "%s | Balance %s ETH is too small, checking other networks...",
            address, balance,
        )
        shortfall = target - balance
        if await self._try_bridge_candidates(wallet, shortfall):
            return

        await self._try_exchange_topup(wallet)
        balance = await self._settlement_balance(wallet)
        if balance < target:
            raise WalletSkipped(
                f"Balance {balance} ETH is still too low after "
                f"bridging/withdrawal"
            )
        logger.info(
            "%s | New balance: %s ETH, requesting tokens...", address, balance,
        )

    async def _settlement_balance(self, wallet: Wallet) -> Decimal:
        return await self.oracle.get_balance(wallet.address, SETTLEMENT_NETWORK)

    def _candidate_networks(self) -> List[str]:
        networks = list(self.settings.bridge_networks_to_check)
        choice = self.settings.bridge_source_network.strip()
        if choice.lower() == "all":
            return networks
        if choice.lower() == "random":
            return [random.choice(networks)] if networks else []
        return [choice]

    async def _try_bridge_candidates(
        self, wallet: Wallet, shortfall: Decimal,
    ) -> bool:
        """Bridge *shortfall* from the first network able to cover it.

        Returns:
            ``True`` once the settlement balance meets the target.
        """
        address = wallet.address
        for network in self._candidate_networks():
            if self._stopped():
                return False
            key = normalize_network_name(network)
            if key is None or key == SETTLEMENT_NETWORK:
                logger.info(
                    "%s | Network %s is not supported...", address, network,
                )
                continue
            try:
                bridge = self.bridge_factory(wallet, key)
                if await self._bridge_shortfall(bridge, wallet, shortfall):
                    return True
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "%s | Error bridging from %s: %s", address, key, exc,
                )
        return False

    async def _bridge_shortfall(
        self, bridge: RelayBridge, wallet: Wallet, shortfall: Decimal,
    ) -> bool:
        address = wallet.address
        network = bridge.network.key
        network_balance = Decimal(Web3.from_wei(await bridge.get_balance(), "ether"))

        quote = await bridge.get_quote(shortfall)
        if not quote.ok:
            logger.info(
                "%s | Error in bridge quote on %s: %s",
                address, network, quote.error_message,
            )
            return False

        fee = Decimal(Web3.from_wei(quote.value.total_fee, "ether"))
        needed = shortfall + fee
        if network_balance < needed:
            logger.info(
                "%s | Network %s: Balance = %s ETH is insufficient because "
                "it's less than the required %s ETH...",
                address, network, network_balance, needed,
            )
            return False

        logger.info(
            "%s | Found sufficient balance on %s, bridging %s ETH to %s...",
            address, network, needed, SETTLEMENT_NETWORK,
        )
        result = await bridge.bridge(needed)
        if not result.success:
            logger.info(
                "%s | Bridging from %s failed: %s",
                address, network, result.error,
            )
            return False

        logger.info(
            "%s | Bridging successful, waiting for funds to arrive...", address,
        )
        await self._wait_for_settlement(wallet)
        balance = await self._settlement_balance(wallet)
        if balance >= self.settings.target_balance:
            return True
        logger.info("%s | Balance did not update after bridging.", address)
        return False

    async def _wait_for_settlement(self, wallet: Wallet) -> None:
        await sleep_between(
            self.settings.sleep_modules_from,
            self.settings.sleep_modules_to,
            "for bridged funds to arrive...",
            wallet.address,
        )

    def _pick_exchange_network(self) -> Optional[str]:
        if self.settings.okx_dest_network.strip().lower() == "random":
            networks = self.settings.okx_dest_networks
            return random.choice(networks) if networks else None
        return self.settings.okx_dest_network

    async def _try_exchange_topup(self, wallet: Wallet) -> None:
        """Withdraw from the exchange to an L2 and bridge it over.

        Raises:
            WalletSkipped: The withdrawal could not be made or its
                destination is not a known network.
        """
        address = wallet.address
        if self.exchange is None:
            raise WalletSkipped("Exchange withdrawal is not configured")

        logger.info("%s | Attempting to withdraw funds from exchange...", address)
        if self.settings.okx_use_refill:
            await self.exchange.transfer_to_main()

        dest_network = self._pick_exchange_network()
        key = normalize_network_name(dest_network)
        okx_chain = NETWORKS[key].okx_chain if key else None
        if key is None or key == SETTLEMENT_NETWORK or okx_chain is None:
            raise WalletSkipped(f"Network {dest_network} is not supported")
        band = self.settings.get_topup_range(key)
        if band is None:
            raise WalletSkipped(f"No topup values configured for {key}")

        amount = random_amount(band.min, band.max)
        result = await self.exchange.withdraw(address, amount, okx_chain)

        await sleep_between(
            self.settings.sleep_withdraw_from,
            self.settings.sleep_withdraw_to,
            "until next module...",
            address,
        )

        if not result.success:
            raise WalletSkipped(
                f"Withdrawal from exchange failed: {result.error}"
            )
        from_network = normalize_network_name(result.network)
        if from_network is None or from_network == SETTLEMENT_NETWORK:
            raise WalletSkipped(f"Network {result.network} not recognized")

        bridge = self.bridge_factory(wallet, from_network)
        bridged = await bridge.bridge(result.amount or amount)
        if not bridged.success:
            logger.info(
                "%s | Bridging from %s failed: %s",
                address, from_network, bridged.error,
            )
            return

        logger.info(
            "%s | Waiting for balance update after bridging...", address,
        )
        await self._wait_for_settlement(wallet)
