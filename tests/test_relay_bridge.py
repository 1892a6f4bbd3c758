"""Tests for the Relay bridge client."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.chain import TransactionFailedError
from core.config import BotSettings
from core.networks import UnsupportedNetworkError
from core.relay_bridge import NATIVE_CURRENCY, RelayBridge
from core.wallet import Wallet

WALLET = Wallet(
    address="0x71C7656EC7ab88b098defB751B7401B5f6d8976F",
    private_key="0x" + "11" * 32,
)
RELAY_TO = "0xa5f565650890fba1824ee0f21ebbbf660a179934"

QUOTE = {
    "fees": {
        "gas": {"amount": "60000000000000"},
        "relayer": {"amount": "40000000000000"},
    },
    "steps": [{
        "id": "deposit",
        "kind": "transaction",
        "items": [{
            "status": "incomplete",
            "data": {
                "to": RELAY_TO,
                "data": "0x58109c",
                "value": "600000000000000",
                "chainId": 8453,
                "maxFeePerGas": "1000000",
                "maxPriorityFeePerGas": "1000",
            },
            "check": {"endpoint": "/intents/status?requestId=0x01", "method": "GET"},
        }],
    }],
}


def _ctx(payload, status=200):
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=payload)
    ctx = MagicMock()
    ctx.__aenter__.return_value = resp
    return ctx


@pytest.fixture(autouse=True)
def no_sleep():
    # core.retry and core.relay_bridge share the asyncio module
    with patch("core.retry.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        yield mock_sleep


@pytest.fixture
def oracle():
    oracle = MagicMock()
    oracle.get_client.return_value = MagicMock(name="base-client")
    oracle.get_balance_wei = AsyncMock(return_value=2 * 10**15)
    return oracle


def _bridge(oracle, network="Base"):
    session = MagicMock()
    session.closed = False
    bridge = RelayBridge(BotSettings(), WALLET, network, oracle, session=session)
    return bridge, session


@pytest.mark.asyncio
async def test_get_balance_reads_source_network(oracle):
    bridge, _ = _bridge(oracle, "base")
    assert await bridge.get_balance() == 2 * 10**15
    oracle.get_balance_wei.assert_awaited_once_with(WALLET.address, "Base")


@pytest.mark.asyncio
async def test_get_quote_sums_fees(oracle):
    bridge, session = _bridge(oracle)
    session.post = MagicMock(return_value=_ctx(QUOTE))

    result = await bridge.get_quote(Decimal("0.0005"))

    assert result.ok
    assert result.value.total_fee == 10**14
    assert bridge.last_quote == result.value

    url = session.post.call_args.args[0]
    payload = session.post.call_args.kwargs["json"]
    assert url == "https://api.relay.link/quote"
    assert payload["originChainId"] == 8453
    assert payload["destinationChainId"] == 1
    assert payload["originCurrency"] == NATIVE_CURRENCY
    assert payload["amount"] == str(5 * 10**14)
    assert payload["tradeType"] == "EXACT_INPUT"
    assert payload["user"] == payload["recipient"] == WALLET.address


@pytest.mark.asyncio
async def test_get_quote_gives_up_after_three_attempts(oracle, no_sleep):
    bridge, session = _bridge(oracle)
    session.post = MagicMock(side_effect=[
        _ctx({"message": "Route not found"}, status=400) for _ in range(5)
    ])

    result = await bridge.get_quote(Decimal("0.0005"))

    assert not result.ok
    assert result.attempts == 3
    assert "Route not found" in result.error_message
    assert session.post.call_count == 3
    assert no_sleep.await_count == 2
    no_sleep.assert_awaited_with(30)


@pytest.mark.asyncio
async def test_bridge_sends_steps_and_waits_for_fill(oracle):
    bridge, session = _bridge(oracle)
    session.post = MagicMock(return_value=_ctx(QUOTE))
    session.get = MagicMock(side_effect=[
        _ctx({"status": "pending"}),
        _ctx({"status": "success"}),
    ])

    with patch("core.relay_bridge.send_transaction",
               new=AsyncMock(return_value="0xabc")) as send:
        result = await bridge.bridge(Decimal("0.0006"))

    assert result.success
    assert result.tx_hash == "0xabc"
    client, wallet, tx = send.await_args.args
    assert client is oracle.get_client.return_value
    assert wallet is WALLET
    assert tx["value"] == 6 * 10**14
    assert tx["chainId"] == 8453
    assert tx["maxFeePerGas"] == 1000000
    assert tx["to"].lower() == RELAY_TO
    assert session.get.call_args.args[0] == (
        "https://api.relay.link/intents/status?requestId=0x01"
    )


@pytest.mark.asyncio
async def test_bridge_retries_before_broadcast(oracle):
    bridge, session = _bridge(oracle)
    session.post = MagicMock(side_effect=[
        _ctx({"message": "busy"}, status=503),
        _ctx(QUOTE),
    ])
    session.get = MagicMock(return_value=_ctx({"status": "success"}))

    with patch("core.relay_bridge.send_transaction",
               new=AsyncMock(return_value="0xabc")) as send:
        result = await bridge.bridge(Decimal("0.0006"))

    assert result.success
    assert send.await_count == 1


@pytest.mark.asyncio
async def test_reverted_bridge_is_not_resent(oracle):
    bridge, session = _bridge(oracle)
    session.post = MagicMock(return_value=_ctx(QUOTE))

    failure = TransactionFailedError("Transaction 0xdead reverted", "0xdead")
    with patch("core.relay_bridge.send_transaction",
               new=AsyncMock(side_effect=failure)) as send:
        result = await bridge.bridge(Decimal("0.0006"))

    assert not result.success
    assert result.tx_hash == "0xdead"
    assert send.await_count == 1
    assert session.post.call_count == 1


@pytest.mark.asyncio
async def test_failure_after_first_broadcast_is_not_retried(oracle):
    approve = dict(QUOTE["steps"][0], id="approve")
    quote = dict(QUOTE, steps=[approve, QUOTE["steps"][0]])
    bridge, session = _bridge(oracle)
    session.post = MagicMock(return_value=_ctx(quote))
    session.get = MagicMock(return_value=_ctx({"status": "success"}))

    with patch("core.relay_bridge.send_transaction",
               new=AsyncMock(side_effect=["0xabc", RuntimeError("gas estimation failed")])) as send:
        result = await bridge.bridge(Decimal("0.0006"))

    assert not result.success
    assert result.tx_hash == "0xabc"
    assert "gas estimation failed" in result.error
    assert send.await_count == 2
    assert session.post.call_count == 1


@pytest.mark.asyncio
async def test_refund_status_fails_bridge(oracle):
    bridge, session = _bridge(oracle)
    session.post = MagicMock(return_value=_ctx(QUOTE))
    session.get = MagicMock(return_value=_ctx({"status": "refund"}))

    with patch("core.relay_bridge.send_transaction",
               new=AsyncMock(return_value="0xabc")) as send:
        result = await bridge.bridge(Decimal("0.0006"))

    assert not result.success
    assert result.tx_hash == "0xabc"
    assert "refund" in result.error
    assert send.await_count == 1


def test_unsupported_source_network(oracle):
    with pytest.raises(UnsupportedNetworkError):
        RelayBridge(BotSettings(), WALLET, "Solana", oracle)


def test_parse_fees_rejects_missing_fields():
    with pytest.raises(Exception, match="Malformed fees"):
        RelayBridge.parse_fees({"fees": {"gas": {}}})
