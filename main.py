"""
Berachain Faucet Farm - Main Entry Point

Reads the wallet list, asks which workflow to run and drives it to
completion:

* ``berachain_faucet`` funds each wallet on Ethereum (Relay bridge or OKX
  withdrawal when needed) and claims the bArtio faucet.
* ``berps`` runs the configured Berps vault actions.

Usage:
    python main.py                          # Interactive menu
    python main.py --mode berachain_faucet  # Skip the menu
    python main.py --mode berps
"""
from dotenv import load_dotenv

# Load environment variables from .env file into os.environ
load_dotenv()

import asyncio
import argparse
import logging
import signal
import sys
from typing import List, Optional

from core.chain import BalanceOracle, GasGate
from core.config import BotSettings
from core.logging_setup import setup_logging
from core.menu import MODE_BERPS, MODE_FAUCET, choose_mode
from core.okx import OKXClient
from core.orchestrator import FundingOrchestrator
from core.summary import SummaryReporter
from core.wallet import Wallet, load_wallets
from faucets import BerachainFaucet
from tasks.berps import run_berps

logger = logging.getLogger(__name__)


async def run_faucet(
    settings: BotSettings,
    wallets: List[Wallet],
    oracle: BalanceOracle,
    stop_event: asyncio.Event,
) -> None:
    """Fund and claim for every wallet, then print the summary table."""
    exchange: Optional[OKXClient] = None
    if settings.okx_configured:
        exchange = OKXClient(settings)
    else:
        logger.warning("⚠️ OKX credentials missing. Exchange top-ups disabled.")

    orchestrator = FundingOrchestrator(
        settings,
        oracle,
        GasGate.from_settings(oracle, settings),
        BerachainFaucet(settings),
        exchange=exchange,
        stop_event=stop_event,
    )
    try:
        summary = await orchestrator.run(wallets)
    finally:
        if exchange:
            await exchange.close()
    SummaryReporter().render(summary, len(wallets))


async def main():
    """
    Main execution flow.

    1. Parses command line arguments and configures logging.
    2. Loads the wallet list (optionally shuffled).
    3. Picks the workflow from ``--mode`` or the interactive menu.
    4. Runs it until completion or SIGTERM, then closes RPC clients.
    """
    parser = argparse.ArgumentParser(description="Berachain Faucet Farm")
    parser.add_argument(
        "--mode",
        choices=[MODE_FAUCET, MODE_BERPS],
        help="Workflow to run without showing the menu",
    )
    parser.add_argument("--keys", type=str, help="Path to the private key list")
    args = parser.parse_args()

    settings = BotSettings()
    setup_logging(settings.log_level)

    wallets = load_wallets(args.keys or settings.keys_file, shuffle=settings.shuffle_wallets)
    if not wallets:
        logger.warning("⚠️ No wallets loaded. Nothing to do.")
        return

    mode = args.mode or await choose_mode()
    if mode is None:
        logger.info("👋 No action selected.")
        return

    stop_event = asyncio.Event()

    def handle_sigterm():
        logger.info("🛑 Received SIGTERM. Finishing current wallet and stopping...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGTERM, handle_sigterm)

    oracle = BalanceOracle(settings)
    try:
        if mode == MODE_FAUCET:
            await run_faucet(settings, wallets, oracle, stop_event)
        elif mode == MODE_BERPS:
            await run_berps(settings, wallets, oracle, stop_event)
    except KeyboardInterrupt:
        logger.info("👋 Stopping Farm (KeyboardInterrupt)...")
    finally:
        logger.info("🧹 Cleaning up resources...")
        await oracle.close()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
