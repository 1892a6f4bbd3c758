"""
Faucet claim services.

Submodules:
    berachain: ``BerachainFaucet`` – Turnstile-gated claim against the
        Berachain bArtio faucet API, returning a ``ClaimOutcome``.
"""

from .berachain import BerachainFaucet

__all__ = ["BerachainFaucet"]
