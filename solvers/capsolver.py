"""CapSolver API client for Cloudflare Turnstile challenges.

The faucet protects its claim endpoint with Turnstile; this client creates
a CapSolver task for it and polls until a token is ready.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)


class CapSolverError(Exception):
    """CapSolver rejected a request or reported the task as failed."""


class CaptchaTimeoutError(CapSolverError, TimeoutError):
    """No solution arrived before polling gave up."""


class CapSolverClient:
    """Async API client for the CapSolver CAPTCHA-solving service.

    Tasks are created via ``createTask`` and polled via ``getTaskResult``
    at a fixed interval for a bounded number of attempts.

    Attributes:
        BASE_URL: Default CapSolver API base URL.
        TASK_TURNSTILE: Task type when the solve runs through our proxy.
        TASK_TURNSTILE_PROXYLESS: Task type when no proxy is configured.

    Example::

        async with CapSolverClient(api_key) as solver:
            token = await solver.solve_turnstile(url, site_key)
    """

    BASE_URL = "https://api.capsolver.com"

    TASK_TURNSTILE = "AntiTurnstileTask"
    TASK_TURNSTILE_PROXYLESS = "AntiTurnstileTaskProxyLess"

    def __init__(
        self,
        api_key: str,
        polling_interval: float = 1.0,
        max_attempts: int = 60,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        request_proxy: Optional[str] = None,
    ) -> None:
        """Initialise the CapSolver client.

        Args:
            api_key: CapSolver API key.
            polling_interval: Seconds between status checks (default 1).
            max_attempts: Status checks before giving up (default 60).
            base_url: Override for :attr:`BASE_URL`.
            session: Shared aiohttp session; created lazily when omitted.
            request_proxy: Proxy used for the API calls themselves.
        """
        self.api_key = api_key
        self.polling_interval = polling_interval
        self.max_attempts = max_attempts
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.session = session
        self.request_proxy = request_proxy or None
        self._owns_session = session is None

    async def __aenter__(self) -> "CapSolverClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._ensure_session()
        url = f"{self.base_url}/{path}"
        async with session.post(
            url, json=payload, proxy=self.request_proxy,
        ) as resp:
            return await resp.json(content_type=None)

    async def _create_task(self, task_data: Dict[str, Any]) -> str:
        """Create a task and return its id.

        Raises:
            CapSolverError: If the API returns a non-zero ``errorId``.
        """
        payload = {
            "clientKey": self.api_key,
            "task": task_data,
        }
        logger.debug("Creating CapSolver task: %s", task_data.get("type"))

        data = await self._post("createTask", payload)
        if data.get("errorId") != 0:
            raise CapSolverError(
                "CapSolver task creation failed: "
                f"{data.get('errorCode', 'UNKNOWN')} - "
                f"{data.get('errorDescription', 'No description')}"
            )

        task_id = data.get("taskId")
        if not task_id:
            raise CapSolverError("CapSolver returned no taskId")
        logger.debug("CapSolver task created: %s", task_id)
        return task_id

    async def _get_task_result(self, task_id: str) -> Dict[str, Any]:
        """Poll until the task is ready and return its ``solution``.

        The first poll happens one interval after task creation.

        Raises:
            CaptchaTimeoutError: Not ready after :attr:`max_attempts` polls.
            CapSolverError: The task failed server side.
        """
        payload = {
            "clientKey": self.api_key,
            "taskId": task_id,
        }

        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.polling_interval)
            data = await self._post("getTaskResult", payload)

            status = data.get("status")
            if status == "ready":
                logger.debug(
                    "CapSolver task %s solved after %d polls", task_id, attempt,
                )
                return data.get("solution") or {}

            if status == "failed" or data.get("errorId"):
                raise CapSolverError(
                    "Captcha solving failed: "
                    f"{data.get('errorDescription', 'unknown error')}"
                )

        raise CaptchaTimeoutError(
            "Captcha solving timed out after maximum attempts"
        )

    async def solve_turnstile(
        self,
        site_url: str,
        site_key: str,
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
    ) -> str:
        """Solve a Cloudflare Turnstile challenge.

        Args:
            site_url: URL of the page where the challenge appears.
            site_key: Turnstile site key.
            user_agent: Browser user-agent string (optional).
            proxy: Proxy URL the solver should use; proxyless when empty.

        Returns:
            The Turnstile response token.
        """
        task_data: Dict[str, Any] = {
            "type": (
                self.TASK_TURNSTILE if proxy else self.TASK_TURNSTILE_PROXYLESS
            ),
            "websiteURL": site_url,
            "websiteKey": site_key,
        }
        if proxy:
            task_data["proxy"] = proxy
        if user_agent:
            task_data["userAgent"] = user_agent

        task_id = await self._create_task(task_data)
        solution = await self._get_task_result(task_id)
        token = solution.get("token")
        if not token:
            raise CapSolverError("CapSolver solution contained no token")
        return token
