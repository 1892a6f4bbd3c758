"""Tests for balance reads, the gas gate and transaction sending."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from web3 import Web3

from core.chain import BalanceOracle, GasGate, TransactionFailedError, send_transaction
from core.config import BotSettings
from core.networks import UnsupportedNetworkError
from core.wallet import Wallet

WALLET = Wallet.from_private_key("0x" + "11" * 32)
RECIPIENT = Web3.to_checksum_address("0xa5f565650890fba1824ee0f21ebbbf660a179934")


class FakeEth:
    """Stands in for ``AsyncWeb3.eth`` with awaitable properties."""

    def __init__(self, gas_price=10**9, chain_id=8453):
        self._gas_price = gas_price
        self._chain_id = chain_id
        self.get_balance = AsyncMock(return_value=5 * 10**14)
        self.get_transaction_count = AsyncMock(return_value=7)
        self.estimate_gas = AsyncMock(return_value=21000)
        self.send_raw_transaction = AsyncMock(return_value=b"\x12" * 32)
        self.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1})

    @property
    def gas_price(self):
        async def _value():
            return self._gas_price
        return _value()

    @property
    def chain_id(self):
        async def _value():
            return self._chain_id
        return _value()


def _oracle_with(network, eth):
    oracle = BalanceOracle(BotSettings())
    client = MagicMock()
    client.eth = eth
    oracle._clients[network] = client
    return oracle, client


class TestBalanceOracle:
    """Test suite for BalanceOracle."""

    @pytest.mark.asyncio
    async def test_get_balance_in_ether(self):
        eth = FakeEth()
        oracle, _ = _oracle_with("Ethereum", eth)

        balance = await oracle.get_balance(WALLET.address)

        assert balance == Decimal("0.0005")
        eth.get_balance.assert_awaited_once_with(WALLET.address)

    @pytest.mark.asyncio
    async def test_gas_price_in_gwei(self):
        oracle, _ = _oracle_with("Ethereum", FakeEth(gas_price=12 * 10**9))
        assert await oracle.get_gas_price_gwei() == Decimal("12")

    def test_clients_are_cached_per_network(self):
        oracle = BalanceOracle(BotSettings(rpc_urls={"Arb": "https://arb.example"}))
        with patch("core.chain.AsyncWeb3") as web3_cls:
            first = oracle.get_client("Arbitrum One")
            second = oracle.get_client("arb")

        assert first is second
        web3_cls.AsyncHTTPProvider.assert_called_once_with("https://arb.example")

    def test_unsupported_network(self):
        oracle = BalanceOracle(BotSettings())
        with pytest.raises(UnsupportedNetworkError):
            oracle.get_client("Solana")

    def test_missing_rpc_url(self):
        oracle = BalanceOracle(BotSettings(rpc_urls={}))
        with pytest.raises(UnsupportedNetworkError, match="No RPC URL"):
            oracle.get_client("Base")

    @pytest.mark.asyncio
    async def test_close_disconnects_providers(self):
        oracle, client = _oracle_with("Base", FakeEth())
        client.provider.disconnect = AsyncMock()

        await oracle.close()

        client.provider.disconnect.assert_awaited_once()
        assert oracle._clients == {}


class TestGasGate:
    """Test suite for GasGate."""

    @pytest.fixture
    def oracle(self):
        oracle = MagicMock()
        oracle.get_gas_price_gwei = AsyncMock()
        return oracle

    @pytest.mark.asyncio
    async def test_passes_when_gas_is_low(self, oracle):
        oracle.get_gas_price_gwei.return_value = Decimal("8")
        gate = GasGate(oracle, max_gas=15)

        assert await gate.wait_for_gas() is True
        oracle.get_gas_price_gwei.assert_awaited_once_with("Ethereum")

    @pytest.mark.asyncio
    async def test_polls_until_gas_drops(self, oracle):
        oracle.get_gas_price_gwei.side_effect = [Decimal("40"), Decimal("30"), Decimal("15")]
        gate = GasGate(oracle, max_gas=15, poll_interval=60)

        with patch("core.chain.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            assert await gate.wait_for_gas() is True

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(60)

    @pytest.mark.asyncio
    async def test_rpc_errors_keep_polling(self, oracle):
        oracle.get_gas_price_gwei.side_effect = [ConnectionError("rpc down"), Decimal("5")]
        gate = GasGate(oracle, max_gas=15, poll_interval=1)

        with patch("core.chain.asyncio.sleep", new=AsyncMock()):
            assert await gate.wait_for_gas() is True

    @pytest.mark.asyncio
    async def test_max_wait_gives_up(self, oracle):
        oracle.get_gas_price_gwei.return_value = Decimal("99")
        gate = GasGate(oracle, max_gas=15, poll_interval=60, max_wait=0)

        assert await gate.wait_for_gas() is False

    @pytest.mark.asyncio
    async def test_stop_event_already_set(self, oracle):
        stop = asyncio.Event()
        stop.set()
        gate = GasGate(oracle, max_gas=15)

        assert await gate.wait_for_gas(stop) is False
        oracle.get_gas_price_gwei.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_event_interrupts_wait(self, oracle):
        stop = asyncio.Event()

        async def high_gas(network):
            stop.set()
            return Decimal("99")

        oracle.get_gas_price_gwei.side_effect = high_gas
        gate = GasGate(oracle, max_gas=15, poll_interval=3600)

        assert await asyncio.wait_for(gate.wait_for_gas(stop), timeout=5) is False

    def test_from_settings(self, oracle):
        settings = BotSettings(max_gas=20, gas_poll_interval=5, gas_max_wait_seconds=600)
        gate = GasGate.from_settings(oracle, settings)
        assert gate.max_gas == Decimal("20")
        assert gate.poll_interval == 5
        assert gate.max_wait == 600


class TestSendTransaction:
    """Test suite for send_transaction."""

    @pytest.mark.asyncio
    async def test_fills_signs_and_sends(self):
        eth = FakeEth()
        client = MagicMock()
        client.eth = eth

        tx_hash = await send_transaction(client, WALLET, {"to": RECIPIENT, "value": 1})

        assert tx_hash == "0x" + "12" * 32
        filled = eth.estimate_gas.await_args.args[0]
        assert filled["from"] == WALLET.address
        assert filled["nonce"] == 7
        assert filled["chainId"] == 8453
        assert filled["gasPrice"] == 10**9
        eth.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_keeps_eip1559_fees(self):
        eth = FakeEth()
        client = MagicMock()
        client.eth = eth
        tx = {
            "to": RECIPIENT,
            "value": 1,
            "chainId": 8453,
            "gas": 50000,
            "maxFeePerGas": 2 * 10**9,
            "maxPriorityFeePerGas": 10**6,
        }

        await send_transaction(client, WALLET, tx)

        eth.estimate_gas.assert_not_awaited()
        eth.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reverted_transaction_raises(self):
        eth = FakeEth()
        eth.wait_for_transaction_receipt.return_value = {"status": 0}
        client = MagicMock()
        client.eth = eth

        with pytest.raises(TransactionFailedError) as exc_info:
            await send_transaction(client, WALLET, {"to": RECIPIENT, "value": 1})

        assert exc_info.value.tx_hash == "0x" + "12" * 32
