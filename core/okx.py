"""OKX exchange client for on-chain withdrawals.

Talks to the OKX v5 REST API with HMAC-SHA256 signed requests.  Only the
funding-account calls the farm needs are implemented: withdrawal fee
lookup, withdrawal, and sweeping sub-account balances to the master
account.
"""

import base64
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from core.config import BotSettings
from core.models import WithdrawalResult, WithdrawalStatus

logger = logging.getLogger(__name__)

CODE_SUCCESS = "0"
CODE_INSUFFICIENT_BALANCE = "58350"
CODE_RATE_LIMITED = "50011"

# OKX funding account id used by asset transfers
FUNDING_ACCOUNT = "6"
# Withdrawal destination type "on-chain"
DEST_ON_CHAIN = "4"


class OKXApiError(Exception):
    """Non-zero ``code`` or malformed body from the OKX API."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"OKX error {code}: {message}")
        self.code = code
        self.message = message


class OKXClient:
    """Minimal async OKX REST client.

    Args:
        settings: Settings carrying credentials, proxy and coin.
        session: Optional shared aiohttp session.
    """

    def __init__(
        self,
        settings: BotSettings,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.okx_base_url.rstrip("/")
        self.coin = settings.okx_coin.upper()
        self.proxy = settings.okx_proxy or None
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self.settings.http_timeout_seconds,
                ),
            )
        return self._session

    async def close(self) -> None:
        if self._session:
            await self._session.close()

    @staticmethod
    def _timestamp() -> str:
        now = datetime.now(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

    def get_headers(
        self, method: str, request_path: str, body: str = "",
    ) -> Dict[str, str]:
        """Build signed ``OK-ACCESS-*`` headers.

        Args:
            method: HTTP method in upper case.
            request_path: Path including the query string.
            body: Exact JSON body that will be sent (empty for GET).
        """
        timestamp = self._timestamp()
        prehash = f"{timestamp}{method}{request_path}{body}"
        digest = hmac.new(
            (self.settings.okx_api_secret or "").encode(),
            prehash.encode(),
            hashlib.sha256,
        ).digest()
        return {
            "OK-ACCESS-KEY": self.settings.okx_api_key or "",
            "OK-ACCESS-SIGN": base64.b64encode(digest).decode(),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self.settings.okx_passphrase or "",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Send a signed request and return the ``data`` list.

        Raises:
            OKXApiError: Non-zero ``code`` in the response.
        """
        request_path = path
        if params:
            request_path = f"{path}?{urlencode(params)}"
        body_str = json.dumps(body) if body is not None else ""

        session = await self._get_session()
        async with session.request(
            method,
            self.base_url + request_path,
            data=body_str or None,
            headers=self.get_headers(method, request_path, body_str),
            proxy=self.proxy,
        ) as resp:
            payload = await resp.json(content_type=None)

        if not isinstance(payload, dict) or "code" not in payload:
            raise OKXApiError("", "Invalid response data")
        code = str(payload.get("code"))
        if code != CODE_SUCCESS:
            raise OKXApiError(code, payload.get("msg") or "Unknown error")
        return payload.get("data") or []

    async def get_withdrawal_fee(
        self, coin: str, network: str,
    ) -> Optional[Decimal]:
        """Withdrawal fee for *coin* on the OKX *network*.

        Returns:
            Fee in coin units, or ``None`` when it cannot be determined.
        """
        chain = f"{coin}-{network}"
        try:
            currencies = await self._request(
                "GET", "/api/v5/asset/currencies", params={"ccy": coin},
            )
        except Exception as exc:
            logger.error("Failed to fetch OKX currencies: %s", exc)
            return None

        for entry in currencies:
            if entry.get("chain") != chain:
                continue
            fee = entry.get("minFee") or entry.get("fee")
            if fee in (None, ""):
                return None
            return Decimal(str(fee))
        return None

    async def withdraw(
        self, address: str, amount: Decimal, network: str,
    ) -> WithdrawalResult:
        """Withdraw *amount* of the configured coin to *address*.

        Args:
            address: Destination wallet address.
            amount: Amount in coin units.
            network: OKX network name (``"Arbitrum One"``, ``"Base"`` ...).
        """
        coin = self.coin
        fee = await self.get_withdrawal_fee(coin, network)
        if fee is None:
            logger.error(
                "%s | Failed to get withdrawal fee for %s on %s",
                address, coin, network,
            )
            return WithdrawalResult(
                success=False,
                status=WithdrawalStatus.FAILED,
                amount=amount,
                error="Failed to get withdrawal fee",
            )

        logger.info(
            "%s | OKX withdraw %s -> %s: %s %s",
            address, coin, network, amount, coin,
        )
        body = {
            "ccy": coin,
            "amt": str(amount),
            "dest": DEST_ON_CHAIN,
            "toAddr": address,
            "chain": f"{coin}-{network}",
            "fee": str(fee),
        }

        try:
            await self._request(
                "POST", "/api/v5/asset/withdrawal", body=body,
            )
        except OKXApiError as exc:
            status = _classify_withdrawal_error(exc.code)
            logger.error(
                "%s | OKX withdraw unsuccessful: %s", address, exc.message,
            )
            return WithdrawalResult(
                success=False, status=status, amount=amount, error=exc.message,
            )
        except Exception as exc:
            logger.error("%s | OKX withdraw error: %s", address, exc)
            return WithdrawalResult(
                success=False,
                status=WithdrawalStatus.FAILED,
                amount=amount,
                error=str(exc),
            )

        logger.info(
            "%s | OKX withdraw success %s -> %s: %s %s",
            address, coin, network, amount, coin,
        )
        return WithdrawalResult(
            success=True,
            status=WithdrawalStatus.SUCCESS,
            network=network,
            amount=amount,
        )

    async def get_sub_accounts(self) -> List[Dict[str, Any]]:
        try:
            return await self._request("GET", "/api/v5/users/subaccount/list")
        except Exception as exc:
            logger.error("Failed to list OKX sub-accounts: %s", exc)
            return []

    async def transfer_to_main(self) -> int:
        """Move every sub-account's available funding balance to master.

        Returns:
            Number of successful transfers.
        """
        transfers = 0
        for sub_account in await self.get_sub_accounts():
            name = sub_account.get("subAcct")
            if not name:
                continue
            try:
                balances = await self._request(
                    "GET",
                    "/api/v5/asset/subaccount/balances",
                    params={"subAcct": name},
                )
            except Exception as exc:
                logger.error("%s | Failed to read balances: %s", name, exc)
                continue

            for balance in balances:
                available = Decimal(str(balance.get("availBal") or "0"))
                if available <= 0:
                    continue
                body = {
                    "ccy": balance.get("ccy"),
                    "amt": str(available),
                    "subAcct": name,
                    "from": FUNDING_ACCOUNT,
                    "to": FUNDING_ACCOUNT,
                    "type": "2",
                }
                try:
                    await self._request(
                        "POST", "/api/v5/asset/transfer", body=body,
                    )
                except Exception as exc:
                    logger.error("%s | Transfer to main failed: %s", name, exc)
                    continue
                transfers += 1
                logger.info(
                    "%s | Transfer to main complete: %s %s",
                    name, available, balance.get("ccy"),
                )
        return transfers


def _classify_withdrawal_error(code: str) -> WithdrawalStatus:
    if code == CODE_INSUFFICIENT_BALANCE:
        return WithdrawalStatus.INSUFFICIENT_BALANCE
    if code == CODE_RATE_LIMITED:
        return WithdrawalStatus.RATE_LIMITED
    return WithdrawalStatus.FAILED
