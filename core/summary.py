"""Run summary tables.

Renders the end-of-run tallies of the faucet workflow and the per-wallet
results of the Berps workflow with ``rich``.
"""

import logging
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from core.models import RunSummary, TxResult

logger = logging.getLogger(__name__)


class SummaryReporter:
    """Builds and prints the console report for a run.

    Args:
        console: Console to print to; a new one is created when omitted.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    @staticmethod
    def build_table(summary: RunSummary, total_wallets: int) -> Table:
        """Faucet tallies as a single-row table."""
        table = Table(
            title="Berachain Faucet",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Wallets", justify="right")
        table.add_column("Successful", justify="right", style="green")
        table.add_column("Cooldown", justify="right", style="yellow")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Skipped", justify="right")
        table.add_row(
            str(total_wallets),
            str(len(summary.successful)),
            str(len(summary.cooldown)),
            str(len(summary.errors)),
            str(len(summary.skipped)),
        )
        return table

    @staticmethod
    def build_berps_table(results: Dict[str, List[TxResult]]) -> Table:
        """One row per wallet and action of a Berps run."""
        table = Table(
            title="Berps Vault",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Wallet", style="cyan", no_wrap=True)
        table.add_column("Action")
        table.add_column("Result")
        table.add_column("Details", overflow="fold")

        for address, actions in results.items():
            for result in actions:
                status = "[green]OK[/green]" if result.success else "[red]FAIL[/red]"
                table.add_row(
                    address,
                    result.action,
                    status,
                    result.tx_hash or result.error or "",
                )
        if not results:
            table.add_row("No data", "-", "-", "-")
        return table

    def render(self, summary: RunSummary, total_wallets: int) -> None:
        """Print the faucet table and log the counts."""
        self.console.print(self.build_table(summary, total_wallets))
        logger.info(
            "Wallets: %d | Successful: %d | Cooldown: %d | Failed: %d | Skipped: %d",
            total_wallets,
            len(summary.successful),
            len(summary.cooldown),
            len(summary.errors),
            len(summary.skipped),
        )
        for address, reason in summary.errors.items():
            logger.debug("%s | Failed: %s", address, reason)
        for address, reason in summary.skipped.items():
            logger.debug("%s | Skipped: %s", address, reason)

    def render_berps(self, results: Dict[str, List[TxResult]]) -> None:
        self.console.print(self.build_berps_table(results))
