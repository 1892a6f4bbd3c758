"""
Core module for the Berachain faucet farm.

This package contains configuration, chain access, the external service
clients and the per-wallet funding workflow.

Submodules:
    config: Application settings (``BotSettings``) via Pydantic.
    logging_setup: Compressed rotating file + safe console logging.
    networks: Network lookup table and name normalization.
    wallet: Private key list loading and ``Wallet`` records.
    chain: ``BalanceOracle``, ``GasGate`` and transaction sending (web3).
    retry: ``retry_async`` bounded-retry helper.
    models: Claim, bridge, withdrawal and run-summary result types.
    relay_bridge: ``RelayBridge`` client for the Relay REST API.
    okx: ``OKXClient`` signed REST client for exchange withdrawals.
    orchestrator: ``FundingOrchestrator`` per-wallet funding and claim flow.
    summary: Rich summary tables.
    menu: Interactive workflow selection.
    utils: Random draws and paced sleeps.
"""
