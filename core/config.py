"""Application configuration for the Berachain faucet farm.

Central configuration module powered by Pydantic v2.  Settings are loaded from
environment variables (with ``.env`` file support) and an optional
``config/farm_config.json`` file holding non-secret tuning values.

Key exports:
    BotSettings: Root settings model (instantiate once per run).
    TopupRange: ``[min, max]`` band for randomized exchange withdrawals.
    BASE_DIR / CONFIG_DIR / LOGS_DIR: Canonical project paths.
"""

# pylint: disable=no-member

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, TypeAdapter
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base Paths
# ---------------------------------------------------------------------------
BASE_DIR: Path = Path(__file__).parent.parent
"""Project root directory (parent of ``core/``)."""

CONFIG_DIR: Path = BASE_DIR / "config"
"""Directory containing optional runtime configuration files."""

LOGS_DIR: Path = BASE_DIR / "logs"
"""Directory for log output files."""

logger: logging.Logger = logging.getLogger(__name__)


class TopupRange(BaseModel):
    """Withdrawal amount band for one destination network.

    Attributes:
        min: Lower bound in native units (inclusive).
        max: Upper bound in native units (inclusive).
    """

    min: float
    max: float


class BotSettings(BaseSettings):
    """Root configuration model.

    All fields can be set via environment variables or a ``.env`` file.
    Non-secret values may also come from ``config/farm_config.json``;
    anything given through the environment wins over the JSON file.

    Section overview:
        * **Core** -- log level, key list, shuffling.
        * **RPC** -- per-network JSON-RPC endpoints.
        * **Pacing** -- random sleep ranges between steps and wallets.
        * **Gas** -- settlement-chain gas ceiling and polling.
        * **Faucet / CapSolver** -- challenge and claim endpoints.
        * **OKX** -- exchange credentials and destination preference.
        * **Relay bridge** -- candidate networks and retry policy.
        * **Berps** -- vault amounts, actions and contract addresses.
    """

    # Core
    log_level: str = "INFO"
    keys_file: str = str(BASE_DIR / "keys.txt")
    shuffle_wallets: bool = False
    shuffle_modules: bool = True

    # RPC endpoints keyed by canonical network key
    rpc_urls: Dict[str, str] = {
        "Ethereum": "https://rpc.ankr.com/eth",
        "Arb": "https://rpc.ankr.com/arbitrum",
        "Base": "https://rpc.ankr.com/base",
        "Linea": "https://rpc.linea.build",
        "Op": "https://rpc.ankr.com/optimism",
        "zkSyncEra": "https://mainnet.era.zksync.io",
        "Berachain": "https://bartio.rpc.berachain.com",
    }

    # Pacing (seconds)
    sleep_withdraw_from: int = 1
    sleep_withdraw_to: int = 5
    sleep_modules_from: int = 10
    sleep_modules_to: int = 15
    sleep_wallets_from: int = 10
    sleep_wallets_to: int = 15

    # Gas gate (gwei on the settlement chain)
    max_gas: float = 15
    gas_poll_interval: float = 60
    # None waits forever
    gas_max_wait_seconds: Optional[float] = None

    # Faucet requirement on the settlement chain
    target_balance: Decimal = Decimal("0.001")

    # Exchange withdrawal bands per canonical network key
    topup_values: Dict[str, TopupRange] = {
        "Arb": TopupRange(min=0.00104, max=0.0015),
        "Base": TopupRange(min=0.00204, max=0.0025),
        "Linea": TopupRange(min=0.0003, max=0.0005),
        "Op": TopupRange(min=0.00014, max=0.0005),
        "zkSyncEra": TopupRange(min=0.000141, max=0.0005),
    }

    # Faucet / CapSolver
    capsolver_api_key: Optional[str] = None
    # Proxy template, "<sessionId>" is replaced per claim
    capsolver_proxy_url: str = ""
    capsolver_api_url: str = "https://api.capsolver.com"
    captcha_poll_interval: float = 1.0
    captcha_max_attempts: int = 60
    faucet_url: str = "https://bartio.faucet.berachain.com/"
    faucet_site_key: str = "0x4AAAAAAARdAuciFArKhVwt"
    faucet_claim_url: str = "https://bartio-faucet.berachain-devnet.com/api/claim"
    http_timeout_seconds: float = 10

    # OKX
    okx_api_key: Optional[str] = None
    okx_api_secret: Optional[str] = None
    okx_passphrase: Optional[str] = None
    okx_proxy: Optional[str] = None
    okx_base_url: str = "https://www.okx.com"
    # "random" or a single OKX network name
    okx_dest_network: str = "random"
    okx_dest_networks: List[str] = Field(
        default_factory=lambda: [
            "Arbitrum One", "Base", "Optimism", "zkSync Era", "Linea",
        ]
    )
    okx_coin: str = "ETH"
    # Sweep sub-account balances to the master account before withdrawing
    okx_use_refill: bool = False

    # Relay bridge
    relay_api_url: str = "https://api.relay.link"
    bridge_networks_to_check: List[str] = Field(
        default_factory=lambda: ["Arb", "Base", "Linea", "Op", "zkSyncEra"]
    )
    # "all", "random" or a single network name
    bridge_source_network: str = "all"
    bridge_retry_attempts: int = 3
    bridge_retry_delay: float = 30
    bridge_status_poll_interval: float = 5
    bridge_status_max_attempts: int = 60

    # Berps vault
    deposit_honey_min: int = 90
    deposit_honey_max: int = 100
    # Any of: deposit, withdraw_request, withdraw_finalize, claim_bgt
    berps_actions: List[str] = Field(
        default_factory=lambda: ["withdraw_request"]
    )
    honey_address: str = "0x0E4aaF1351de4c0264C5c7056Ef3777b41BD8e03"
    bhoney_address: str = "0x1306D3c36eC7E38dd2c128fBe3097C2C2449af64"
    berps_router_address: str = "0x1306D3c36eC7E38dd2c128fBe3097C2C2449af64"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Merge ``config/farm_config.json`` into the constructed settings."""
        self._load_farm_config_overrides(CONFIG_DIR / "farm_config.json")

    def _load_farm_config_overrides(self, config_path: Path) -> None:
        """Apply values from a JSON config file.

        Only keys that match a settings field are applied, and only when
        the field was not set explicitly (env var, ``.env`` or constructor
        argument).  Mapping fields such as ``rpc_urls`` are merged
        entry by entry.  Invalid entries are logged and skipped.

        Args:
            config_path: Path of the JSON file to merge.
        """
        if not config_path.exists():
            return

        try:
            data: Dict[str, Any] = json.loads(
                config_path.read_text(encoding="utf-8")
            )
        except Exception as exc:
            logger.warning(
                "Failed to load %s: %s", config_path.name, exc
            )
            return

        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top level must be an object",
                config_path.name,
            )
            return

        fields = type(self).model_fields
        for key, value in data.items():
            field = fields.get(key)
            if field is None:
                logger.debug("Unknown config key %s ignored", key)
                continue
            if key in self.model_fields_set:
                continue
            try:
                validated = TypeAdapter(field.annotation).validate_python(
                    value
                )
            except Exception as exc:
                logger.warning(
                    "Invalid value for %s in %s: %s",
                    key, config_path.name, exc,
                )
                continue
            current = getattr(self, key)
            if isinstance(current, dict) and isinstance(validated, dict):
                # per-network tables extend the defaults
                validated = {**current, **validated}
            setattr(self, key, validated)

    def get_rpc_url(self, network_key: str) -> Optional[str]:
        """Return the RPC endpoint configured for *network_key*."""
        return self.rpc_urls.get(network_key)

    def get_topup_range(self, network_key: str) -> Optional[TopupRange]:
        """Return the withdrawal band for *network_key*, if configured."""
        return self.topup_values.get(network_key)

    @property
    def okx_configured(self) -> bool:
        """Whether all three OKX credentials are present."""
        return bool(
            self.okx_api_key and self.okx_api_secret and self.okx_passphrase
        )
