"""
Resolution of the public base URL the carrier calls back.

Priority:
  1) TELEPHONY_WEBHOOK_BASE_URL (recommended)
  2) first tunnel reported by the local ngrok agent API
"""

import httpx

from callrelay.shared.logging import get_logger
from callrelay.telephony.config import TelephonyConfig
from callrelay.telephony.interface import TelephonyProviderError

logger = get_logger(__name__)


class PublicUrlResolver:
    """Resolve the public base URL for status callbacks."""

    def __init__(
        self,
        config: TelephonyConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds

    async def resolve(self) -> str:
        """Return the public base URL, without a trailing slash.

        The ngrok lookup is repeated on every call: tunnels get new hostnames
        when the agent restarts.

        Raises:
            TelephonyProviderError: If no URL is configured and ngrok is unavailable.
        """
        configured = self._config.webhook_base_url.strip()
        if configured:
            return configured.rstrip("/")

        try:
            if self._http_client is not None:
                response = await self._http_client.get(self._config.ngrok_api_url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                    response = await client.get(self._config.ngrok_api_url)
            response.raise_for_status()
            tunnels = response.json().get("tunnels") or []
            public_url = tunnels[0]["public_url"]
        except (httpx.HTTPError, ValueError, LookupError, TypeError, AttributeError) as e:
            logger.error(
                "Could not resolve ngrok public URL",
                extra={"ngrok_api_url": self._config.ngrok_api_url, "error": str(e)},
            )
            raise TelephonyProviderError(
                message="No public webhook URL configured and ngrok tunnel unavailable",
                error_code="NO_PUBLIC_URL",
            ) from e

        logger.info("Using ngrok public URL", extra={"public_url": public_url})
        return str(public_url).rstrip("/")

    async def status_callback_url(self) -> str:
        return self._config.get_webhook_url(base_url=await self.resolve())
