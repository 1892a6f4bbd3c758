"""
Secondary on-chain workflows.

Submodules:
    berps: ``BerpsVault`` deposit / withdraw / BGT claim actions and the
        ``run_berps`` wallet loop.
"""
