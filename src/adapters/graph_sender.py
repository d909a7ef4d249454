"""Graph API send adapter.

Delivers webhook-path replies through the platform's ``/me/messages`` endpoint.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request

from core.errors import SendError

LOGGER = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"


class GraphApiSender:
    """ReplySenderPort adapter that posts text messages to the Graph API."""

    def __init__(
        self,
        access_token: str,
        api_version: str = "v18.0",
        base_url: str = GRAPH_BASE_URL,
        timeout: float = 10,
    ) -> None:
        self._access_token = access_token
        self._api_version = api_version
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _endpoint(self) -> str:
        query = urllib.parse.urlencode({"access_token": self._access_token})
        return f"{self._base_url}/{self._api_version}/me/messages?{query}"

    def _post(self, recipient_id: str, text: str) -> None:
        payload = {
            "recipient": {"id": recipient_id},
            "message": {"text": text},
        }
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                status = response.status
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise SendError(f"Graph API error {e.code}: {body}") from e
        except (urllib.error.URLError, OSError) as e:
            raise SendError(f"Graph API request failed: {e}") from e
        if not 200 <= status < 300:
            raise SendError(f"Graph API returned status {status}")

    async def send_message(self, recipient_id: str, text: str) -> None:
        """Send a text reply without blocking the event loop."""

        await asyncio.to_thread(self._post, recipient_id, text)
        LOGGER.debug("Graph API message delivered to %s", recipient_id)
