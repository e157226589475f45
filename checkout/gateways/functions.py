"""
Async HTTP client for the backend's remote functions.

The functions answer errors with a JSON body such as {"error": "..."} and a
4xx/5xx status, so the decoded body is returned regardless of status code and
left to the normalizer. Only transport failures and non-JSON bodies raise.
"""
import logging
from typing import Dict, Any, Optional

import httpx

from checkout.errors import ChargeInitiationError

logger = logging.getLogger(__name__)


class FunctionsClient:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
            headers["apikey"] = api_key
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    async def invoke(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self._client.post(f"/{name}", json=body)
        except httpx.HTTPError as e:
            logger.error("Remote function %s unreachable: %s", name, e)
            raise ChargeInitiationError(f"Failed to reach payment service: {e}")

        try:
            data = resp.json()
        except ValueError:
            logger.error(
                "Remote function %s returned non-JSON body: status=%s body=%s",
                name, resp.status_code, resp.text[:200],
            )
            raise ChargeInitiationError(
                f"Payment service returned an invalid response (status {resp.status_code})"
            )

        if not isinstance(data, dict):
            raise ChargeInitiationError("Payment service returned an invalid response")

        if resp.status_code >= 400:
            logger.warning("Remote function %s answered %s: %s", name, resp.status_code, data)
        return data

    async def aclose(self):
        await self._client.aclose()
