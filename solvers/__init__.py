"""
Solvers module for the faucet farm.

Provides CAPTCHA solving used by the faucet claim workflow.

Submodules:
    capsolver: ``CapSolverClient`` – async API client for the CapSolver
        service, used for the faucet's Cloudflare Turnstile challenge.
"""
