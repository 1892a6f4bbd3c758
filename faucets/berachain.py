"""Berachain bArtio faucet claim service.

One claim = fresh proxy session, a Turnstile token from CapSolver and a
single POST to the faucet API.  Every path ends in exactly one
:class:`~core.models.ClaimOutcome`; nothing is raised to the caller.
"""

import logging
import uuid
from typing import Optional

import aiohttp
from fake_useragent import UserAgent

from core.config import BotSettings
from core.models import ClaimOutcome
from solvers.capsolver import CapSolverClient, CapSolverError

logger = logging.getLogger(__name__)

SESSION_PLACEHOLDER = "<sessionId>"
COOLDOWN_MESSAGE = "Wallet in cooldown, try again later"
NO_BALANCE_MESSAGE = "Failed request, reason: You don't have 0.001 ETH"


class BerachainFaucet:
    """Claims bArtio faucet tokens for an address.

    Args:
        settings: Settings with the CapSolver key, proxy template and
            faucet endpoints.
    """

    faucet_name = "Berachain bArtio"

    def __init__(self, settings: BotSettings) -> None:
        self.settings = settings
        self.user_agent = UserAgent()

    def get_proxy_url_with_new_session(self) -> Optional[str]:
        """Proxy URL with a fresh sticky-session id, ``None`` if unset."""
        template = self.settings.capsolver_proxy_url
        if not template:
            return None
        return template.replace(SESSION_PLACEHOLDER, uuid.uuid4().hex)

    async def claim(self, address: str) -> ClaimOutcome:
        """Solve the challenge and request tokens for *address*."""
        if not self.settings.capsolver_api_key:
            reason = "CAPSOLVER_API_KEY is not configured"
            logger.error("%s | %s", address, reason)
            return ClaimOutcome.error(address, reason)

        proxy = self.get_proxy_url_with_new_session()
        timeout = aiohttp.ClientTimeout(
            total=self.settings.http_timeout_seconds,
        )

        async with aiohttp.ClientSession(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        ) as session:
            try:
                token = await self._solve_token(session, proxy)
            except CapSolverError as exc:
                logger.error("%s | %s", address, exc)
                return ClaimOutcome.error(address, str(exc))
            except Exception as exc:
                reason = f"Failed to create captcha task: {exc}"
                logger.error("%s | %s", address, reason)
                return ClaimOutcome.error(address, reason)

            return await self._submit_claim(session, address, token, proxy)

    async def _solve_token(
        self, session: aiohttp.ClientSession, proxy: Optional[str],
    ) -> str:
        solver = CapSolverClient(
            self.settings.capsolver_api_key,
            polling_interval=self.settings.captcha_poll_interval,
            max_attempts=self.settings.captcha_max_attempts,
            base_url=self.settings.capsolver_api_url,
            session=session,
            request_proxy=proxy,
        )
        return await solver.solve_turnstile(
            self.settings.faucet_url,
            self.settings.faucet_site_key,
            user_agent=self.user_agent.random,
            proxy=proxy,
        )

    async def _submit_claim(
        self,
        session: aiohttp.ClientSession,
        address: str,
        token: str,
        proxy: Optional[str],
    ) -> ClaimOutcome:
        headers = {
            "User-Agent": self.user_agent.random,
            "Authorization": f"Bearer {token}",
        }
        try:
            async with session.post(
                self.settings.faucet_claim_url,
                params={"address": address},
                json={"address": address},
                headers=headers,
                proxy=proxy,
            ) as resp:
                status = resp.status
                body = await resp.text()
        except Exception as exc:
            reason = f"Failed request, reason: {exc}"
            logger.error("%s | %s", address, reason)
            return ClaimOutcome.error(address, reason)

        if status == 200:
            logger.info(
                "%s | Captcha passed successfully, the tokens were sent",
                address,
            )
            return ClaimOutcome.success(address, status)
        if status == 429:
            logger.info("%s | %s", address, COOLDOWN_MESSAGE)
            return ClaimOutcome.cooldown(address, COOLDOWN_MESSAGE, status)
        if status == 402:
            logger.error("%s | %s", address, NO_BALANCE_MESSAGE)
            return ClaimOutcome.error(address, NO_BALANCE_MESSAGE, status)

        reason = f"Failed request, reason: HTTP {status} {body.strip()[:200]}"
        logger.error("%s | %s", address, reason)
        return ClaimOutcome.error(address, reason, status)
