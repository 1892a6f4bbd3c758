import pytest

from core.networks import (
    BRIDGE_SOURCE_NETWORKS,
    NETWORKS,
    SETTLEMENT_NETWORK,
    UnsupportedNetworkError,
    get_network,
    normalize_network_name,
)


@pytest.mark.parametrize("name,key", [
    ("Arbitrum One", "Arb"),
    ("arb", "Arb"),
    ("Base", "Base"),
    ("Optimism", "Op"),
    ("zkSync Era", "zkSyncEra"),
    ("zksync   era", "zkSyncEra"),
    ("Linea", "Linea"),
    ("ERC20", "Ethereum"),
])
def test_normalize_network_name(name, key):
    assert normalize_network_name(name) == key


@pytest.mark.parametrize("name", ["Solana", "", None, "Arbitrum Nova"])
def test_unsupported_names(name):
    assert normalize_network_name(name) is None


def test_get_network_descriptor():
    base = get_network("base")
    assert base.chain_id == 8453
    assert base.tx_link("0xabc") == "https://basescan.org/tx/0xabc"


def test_get_network_unsupported():
    with pytest.raises(UnsupportedNetworkError):
        get_network("Solana")


def test_settlement_chain_is_mainnet():
    assert NETWORKS[SETTLEMENT_NETWORK].chain_id == 1


def test_bridge_sources_have_okx_names():
    for key in BRIDGE_SOURCE_NETWORKS:
        okx_name = NETWORKS[key].okx_chain
        assert okx_name
        assert normalize_network_name(okx_name) == key
