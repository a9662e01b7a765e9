"""Server-side client for the Luxor mining pool API.

Only the calls the wallet service needs are exposed. The API key travels in
the ``Authorization`` header and never leaves this process.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx
from loguru import logger

from .metrics import TimedCall

DEFAULT_BASE_URL = "https://app.luxor.tech/api/v1"

LUXOR_ENDPOINTS = {
    "payment-settings": "/pool/payment-settings",
}


class LuxorError(Exception):
    """Structured failure from the Luxor API, carrying an HTTP-style status."""

    def __init__(self, status_code: int, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"LuxorError(status_code={self.status_code}, message={self.message!r})"


class LuxorClient:
    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0) -> None:
        if not api_key:
            raise ValueError("Luxor API key is required. Set WALLET_LUXOR_API_KEY in environment.")
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout)

    def build_url(self, path: str, params: Mapping[str, Any] | None = None) -> tuple[str, dict[str, str]]:
        """Return the absolute URL and the query params that carry a value."""
        query: dict[str, str] = {}
        for key, value in (params or {}).items():
            if value is None or value == "":
                continue
            query[key] = str(value)
        return f"{self.base_url}{path}", query

    async def request(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        method: str = "GET",
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url, query = self.build_url(path, params)
        headers = {"Authorization": self._api_key}
        if body is not None:
            headers["Content-Type"] = "application/json"

        logger.debug("Luxor {} {} params={}", method, path, query)
        with TimedCall(method) as timer:
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, params=query, headers=headers, json=body)
            except httpx.TimeoutException as exc:
                timer.status_code = 504
                raise LuxorError(504, "Request to Luxor timed out", {"error": str(exc)}) from exc
            except httpx.HTTPError as exc:
                timer.status_code = 502
                raise LuxorError(502, f"Luxor request failed: {exc}", {"error": str(exc)}) from exc
            timer.status_code = response.status_code

        try:
            data = response.json()
        except ValueError as exc:
            status = response.status_code if response.status_code >= 400 else 502
            raise LuxorError(status, f"Luxor returned a non-JSON response (status {response.status_code})") from exc

        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning("Luxor {} {} returned {}", method, path, response.status_code)
            raise LuxorError(
                response.status_code,
                message or f"API returned status {response.status_code}",
                data if isinstance(data, dict) else {"body": data},
            )
        return data

    async def get_payment_settings(self, currency: str, subaccount_name: str) -> dict[str, Any]:
        """Fetch the payout configuration of one subaccount for ``currency``."""
        path = f"{LUXOR_ENDPOINTS['payment-settings']}/{currency}"
        return await self.request(path, {"subaccount_names": subaccount_name})
