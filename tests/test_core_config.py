import json
from decimal import Decimal

import pytest

from core.config import BotSettings, TopupRange


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("CAPSOLVER_API_KEY", "CAP-mock")
    monkeypatch.setenv("OKX_API_KEY", "okx_key")
    monkeypatch.setenv("OKX_API_SECRET", "okx_secret")
    monkeypatch.setenv("OKX_PASSPHRASE", "okx_phrase")
    monkeypatch.setenv("MAX_GAS", "25")


def test_bot_settings_defaults():
    settings = BotSettings()
    assert settings.target_balance == Decimal("0.001")
    assert settings.sleep_wallets_from == 10
    assert settings.sleep_wallets_to == 15
    assert settings.bridge_networks_to_check == ["Arb", "Base", "Linea", "Op", "zkSyncEra"]
    assert settings.okx_dest_networks == [
        "Arbitrum One", "Base", "Optimism", "zkSync Era", "Linea",
    ]
    assert settings.bridge_retry_attempts == 3
    assert settings.bridge_retry_delay == 30
    assert settings.captcha_max_attempts == 60
    assert settings.faucet_site_key == "0x4AAAAAAARdAuciFArKhVwt"


def test_bot_settings_from_env(mock_env):
    settings = BotSettings()
    assert settings.capsolver_api_key == "CAP-mock"
    assert settings.max_gas == 25
    assert settings.okx_configured is True


def test_okx_not_configured_without_passphrase(monkeypatch):
    monkeypatch.delenv("OKX_PASSPHRASE", raising=False)
    settings = BotSettings(okx_api_key="k", okx_api_secret="s", okx_passphrase=None)
    assert settings.okx_configured is False


def test_topup_ranges():
    settings = BotSettings()
    arb = settings.get_topup_range("Arb")
    assert arb == TopupRange(min=0.00104, max=0.0015)
    assert settings.get_topup_range("Ethereum") is None


def test_rpc_url_lookup():
    settings = BotSettings(rpc_urls={"Base": "https://base.example"})
    assert settings.get_rpc_url("Base") == "https://base.example"
    assert settings.get_rpc_url("Arb") is None


class TestFarmConfigOverrides:
    """Test suite for JSON config merging."""

    def test_applies_known_keys(self, tmp_path):
        path = tmp_path / "farm_config.json"
        path.write_text(json.dumps({
            "sleep_wallets_from": 1,
            "topup_values": {"Base": {"min": 0.003, "max": 0.004}},
            "unknown_key": True,
        }))
        settings = BotSettings()

        settings._load_farm_config_overrides(path)

        assert settings.sleep_wallets_from == 1
        assert settings.topup_values["Base"].min == 0.003
        assert not hasattr(settings, "unknown_key")

    def test_explicit_values_win(self, tmp_path):
        path = tmp_path / "farm_config.json"
        path.write_text(json.dumps({"max_gas": 50}))
        settings = BotSettings(max_gas=5)

        settings._load_farm_config_overrides(path)

        assert settings.max_gas == 5

    def test_invalid_value_is_skipped(self, tmp_path):
        path = tmp_path / "farm_config.json"
        path.write_text(json.dumps({"sleep_modules_from": "soon", "max_gas": 9}))
        settings = BotSettings()

        settings._load_farm_config_overrides(path)

        assert settings.sleep_modules_from == 10
        assert settings.max_gas == 9

    def test_broken_file_is_ignored(self, tmp_path):
        path = tmp_path / "farm_config.json"
        path.write_text("{not json")
        settings = BotSettings()

        settings._load_farm_config_overrides(path)

        assert settings.max_gas == 15

    def test_missing_file_is_ignored(self, tmp_path):
        settings = BotSettings()
        settings._load_farm_config_overrides(tmp_path / "absent.json")
        assert settings.max_gas == 15

    def test_partial_rpc_urls_keep_other_defaults(self, tmp_path):
        path = tmp_path / "farm_config.json"
        path.write_text(json.dumps({"rpc_urls": {"Base": "https://base.example"}}))
        settings = BotSettings()

        settings._load_farm_config_overrides(path)

        assert settings.get_rpc_url("Base") == "https://base.example"
        assert settings.get_rpc_url("Arb") == "https://rpc.ankr.com/arbitrum"
        assert settings.get_rpc_url("Ethereum") == "https://rpc.ankr.com/eth"
        assert len(settings.topup_values) == 5
