"""
HTTP client for the recipient feed API.

Transport failures, non-2xx answers and bodies that do not decode into
feed entries all surface as ClientSyncNetworkError, the one error the sync
loop retries on.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import httpx
from django.utils.dateparse import parse_datetime

from notifications.client.store import FeedEntry
from notifications.utils.exceptions import ClientSyncNetworkError

logger = logging.getLogger('notifications.client')

DEFAULT_TIMEOUT = 10.0  # seconds
USER_AGENT = "TutoringNotifications-Client/1.0"


@dataclass(frozen=True)
class FeedPage:
    entries: List[FeedEntry]
    cursor: Optional[datetime]
    unread_count: int


class NotificationApiClient:
    """
    Async client for ``/notifications/`` endpoints.

    Args:
        base_url: API root, e.g. ``https://host/api``
        token: Bearer token of the signed-in recipient
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(self, base_url: str, token: str, timeout: float = DEFAULT_TIMEOUT, transport=None):
        if not base_url:
            raise ValueError("base_url is required")

        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
        }
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ClientSyncNetworkError(f"Request timed out: {e}")
        except httpx.HTTPError as e:
            raise ClientSyncNetworkError(f"Failed to reach notification service: {e}")

        if response.status_code >= 400:
            raise ClientSyncNetworkError(
                f"{method} {path} failed with {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, parse):
        """A 2xx body that is not the expected JSON (a proxy error page, a truncated feed) is a sync failure too"""
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed response from {response.request.url}: {e!r}")
            raise ClientSyncNetworkError(f"Malformed response: {e}", status_code=response.status_code)

    async def fetch(self, since: Optional[datetime] = None) -> FeedPage:
        params = {'since': since.isoformat()} if since else None
        response = await self._request("GET", "/notifications/", params=params)
        return self._decode(response, lambda data: FeedPage(
            entries=[FeedEntry.from_dict(item) for item in data.get('results', [])],
            cursor=parse_datetime(data['cursor']) if data.get('cursor') else None,
            unread_count=int(data.get('unread_count', 0)),
        ))

    async def mark_read(self, notification_id: str) -> FeedEntry:
        response = await self._request("POST", f"/notifications/{notification_id}/read/")
        return self._decode(response, FeedEntry.from_dict)

    async def delete(self, notification_id: str) -> None:
        await self._request("DELETE", f"/notifications/{notification_id}/")

    async def mark_all_read(self) -> int:
        response = await self._request("POST", "/notifications/read-all/")
        return self._decode(response, lambda data: int(data.get('marked', 0)))

    async def close(self) -> None:
        await self._client.aclose()
