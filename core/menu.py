"""Interactive workflow selection."""

from typing import Optional

import questionary

MODE_FAUCET = "berachain_faucet"
MODE_BERPS = "berps"

MENU_CHOICES = [
    questionary.Choice("Berachain faucet", value=MODE_FAUCET),
    questionary.Choice("Berps", value=MODE_BERPS),
]


async def choose_mode() -> Optional[str]:
    """Ask which workflow to run; ``None`` when the prompt is aborted."""
    return await questionary.select(
        "Choose an action:", choices=MENU_CHOICES,
    ).ask_async()
