"""Berps vault workflow on Berachain bArtio.

HONEY is deposited into the Berps vault for bHONEY shares.  Withdrawals
are two-phase: ``makeWithdrawRequest`` locks shares, and once the epoch
passes ``redeem`` pays out whatever ``completeBalanceOf`` reports.  BGT
emissions accrue on the router and are claimed separately.
"""

import asyncio
import logging
import random
from decimal import Decimal
from typing import Dict, List, Optional

from web3 import AsyncWeb3, Web3

from core.chain import BalanceOracle, send_transaction
from core.config import BotSettings
from core.models import TxResult
from core.networks import VAULT_NETWORK, get_network
from core.summary import SummaryReporter
from core.utils import random_int, sleep_between
from core.wallet import Wallet

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

BHONEY_ABI = ERC20_ABI + [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "completeBalanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "shares", "type": "uint256"},
            {"name": "receiver", "type": "address"},
            {"name": "owner", "type": "address"},
        ],
        "name": "redeem",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

ROUTER_ABI = [
    {
        "inputs": [
            {"name": "assets", "type": "uint256"},
            {"name": "receiver", "type": "address"},
        ],
        "name": "deposit",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "shares", "type": "uint256"}],
        "name": "makeWithdrawRequest",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "amount", "type": "uint256"},
            {"name": "receiver", "type": "address"},
        ],
        "name": "claimBGT",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "pendingBGT",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Share of pending BGT claimed per call
BGT_CLAIM_RATIO = Decimal("0.99")

ACTION_DEPOSIT = "deposit"
ACTION_WITHDRAW_REQUEST = "withdraw_request"
ACTION_WITHDRAW_FINALIZE = "withdraw_finalize"
ACTION_CLAIM_BGT = "claim_bgt"
ACTIONS = (
    ACTION_DEPOSIT,
    ACTION_WITHDRAW_REQUEST,
    ACTION_WITHDRAW_FINALIZE,
    ACTION_CLAIM_BGT,
)


class BerpsVault:
    """Berps vault actions for one wallet.

    Every action returns a :class:`TxResult`; failures are logged and
    reported, never raised.

    Args:
        settings: Settings with contract addresses.
        wallet: Signing wallet.
        client: ``AsyncWeb3`` client for Berachain.
    """

    def __init__(
        self, settings: BotSettings, wallet: Wallet, client: AsyncWeb3,
    ) -> None:
        self.settings = settings
        self.wallet = wallet
        self.client = client
        self.network = get_network(VAULT_NETWORK)
        self.honey = client.eth.contract(
            address=Web3.to_checksum_address(settings.honey_address),
            abi=ERC20_ABI,
        )
        self.bhoney = client.eth.contract(
            address=Web3.to_checksum_address(settings.bhoney_address),
            abi=BHONEY_ABI,
        )
        self.router = client.eth.contract(
            address=Web3.to_checksum_address(settings.berps_router_address),
            abi=ROUTER_ABI,
        )

    @property
    def address(self) -> str:
        return self.wallet.address

    async def _send(self, action: str, call) -> TxResult:
        tx = await call.build_transaction({"from": self.address})
        tx_hash = await send_transaction(self.client, self.wallet, tx)
        logger.info(
            "%s | %s transaction sent: %s",
            self.address, action, self.network.tx_link(tx_hash),
        )
        return TxResult(action=action, success=True, tx_hash=tx_hash)

    def _failed(self, action: str, error: str) -> TxResult:
        logger.error("%s | %s Error: %s", self.address, action, error)
        return TxResult(action=action, success=False, error=error)

    async def _ensure_allowance(self, amount: int) -> None:
        spender = self.router.address
        allowance = await self.honey.functions.allowance(
            self.address, spender,
        ).call()
        if allowance >= amount:
            return
        logger.info("%s | Approving HONEY for Berps Vault", self.address)
        await self._send("Approve HONEY", self.honey.functions.approve(spender, amount))

    async def deposit_honey(self, amount: Decimal) -> TxResult:
        """Deposit *amount* HONEY into the vault."""
        action = "Deposit HONEY"
        amount_wei = Web3.to_wei(amount, "ether")
        if amount_wei <= 0:
            return self._failed(action, "Nothing to deposit")

        logger.info(
            "%s | Deposit %s $HONEY to Berps Vault", self.address, amount,
        )
        try:
            await self._ensure_allowance(amount_wei)
            return await self._send(
                action,
                self.router.functions.deposit(amount_wei, self.address),
            )
        except Exception as exc:
            return self._failed(action, str(exc))

    async def request_withdraw(self) -> TxResult:
        """Request withdrawal of the whole bHONEY balance."""
        action = "Withdraw request"
        try:
            shares = await self.bhoney.functions.balanceOf(self.address).call()
            if shares <= 0:
                return self._failed(action, "No bHONEY to withdraw")
            logger.info(
                "%s | Withdraw %s bHONEY from Berps Vault",
                self.address, Web3.from_wei(shares, "ether"),
            )
            return await self._send(
                action, self.router.functions.makeWithdrawRequest(shares),
            )
        except Exception as exc:
            return self._failed(action, str(exc))

    async def finalize_withdraw(self) -> TxResult:
        """Redeem the shares whose withdraw request has matured."""
        action = "Final withdraw"
        try:
            shares = await self.bhoney.functions.completeBalanceOf(
                self.address,
            ).call()
            if shares <= 0:
                return self._failed(action, "No matured withdraw request")
            logger.info(
                "%s | Final withdraw %s bHONEY from Berps Vault",
                self.address, Web3.from_wei(shares, "ether"),
            )
            return await self._send(
                action,
                self.bhoney.functions.redeem(shares, self.address, self.address),
            )
        except Exception as exc:
            return self._failed(action, str(exc))

    async def claim_bgt(self) -> TxResult:
        """Claim 99% of the pending BGT."""
        action = "Claim BGT"
        try:
            pending = await self.router.functions.pendingBGT(self.address).call()
            amount = int(Decimal(pending) * BGT_CLAIM_RATIO)
            if amount <= 0:
                return self._failed(action, "No BGT to claim")
            logger.info(
                "%s | Claim %s BGT on Berps Vault",
                self.address, Web3.from_wei(amount, "ether"),
            )
            return await self._send(
                action, self.router.functions.claimBGT(amount, self.address),
            )
        except Exception as exc:
            return self._failed(action, str(exc))

    async def run_action(self, name: str) -> TxResult:
        if name == ACTION_DEPOSIT:
            amount = random_int(
                self.settings.deposit_honey_min,
                self.settings.deposit_honey_max,
            )
            return await self.deposit_honey(Decimal(amount))
        if name == ACTION_WITHDRAW_REQUEST:
            return await self.request_withdraw()
        if name == ACTION_WITHDRAW_FINALIZE:
            return await self.finalize_withdraw()
        if name == ACTION_CLAIM_BGT:
            return await self.claim_bgt()
        return self._failed(name, f"Unknown Berps action: {name}")


async def run_berps(
    settings: BotSettings,
    wallets: List[Wallet],
    oracle: BalanceOracle,
    stop_event: Optional[asyncio.Event] = None,
    reporter: Optional[SummaryReporter] = None,
) -> Dict[str, List[TxResult]]:
    """Run the configured Berps actions for every wallet in order.

    Returns:
        Mapping of wallet address to the results of its actions.
    """
    results: Dict[str, List[TxResult]] = {}
    client = oracle.get_client(VAULT_NETWORK)
    total = len(wallets)

    for index, wallet in enumerate(wallets, start=1):
        if stop_event is not None and stop_event.is_set():
            logger.warning("Stop requested, ending Berps run early")
            break

        actions = list(settings.berps_actions)
        if settings.shuffle_modules:
            random.shuffle(actions)

        vault = BerpsVault(settings, wallet, client)
        wallet_results: List[TxResult] = []
        for position, action in enumerate(actions):
            if position:
                await sleep_between(
                    settings.sleep_modules_from,
                    settings.sleep_modules_to,
                    "until next module...",
                    wallet.address,
                )
            wallet_results.append(await vault.run_action(action))
        results[wallet.address] = wallet_results

        if index < total:
            await sleep_between(
                settings.sleep_wallets_from,
                settings.sleep_wallets_to,
                "until next wallet...",
                wallet.address,
            )

    (reporter or SummaryReporter()).render_berps(results)
    return results
