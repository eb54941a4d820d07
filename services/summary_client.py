"""
Client for the time-tracking service's summary endpoint.

GET {base_url}/summary?user=...&from=...&to=...&recompute=true returns the
complete per-category totals for a user over a UTC range.
"""
import asyncio

import aiohttp
from loguru import logger

from config import get_summary_api_base_url, get_summary_api_timeout_seconds
from helpers.timezone_utils import format_utc
from services.errors import UpstreamError


class SummaryClient:
    def __init__(self, base_url=None, timeout_seconds=None, session: aiohttp.ClientSession = None):
        self.base_url = (base_url or get_summary_api_base_url()).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds if timeout_seconds is not None else get_summary_api_timeout_seconds()
        )
        self._session = session
        self._owns_session = session is None

    async def _get_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def build_params(self, user_id, start_utc, end_utc, editor=None, language=None):
        params = {
            "user": user_id,
            "from": format_utc(start_utc),
            "to": format_utc(end_utc),
            "recompute": "true"
        }
        if editor:
            params["editor"] = editor
        if language:
            params["language"] = language
        return params

    async def fetch_summary(self, user_id, api_key, start_utc, end_utc, editor=None, language=None):
        """
        Fetch the aggregated summary for one UTC range.

        Raises UpstreamError on network failure, timeout, non-2xx status,
        unparseable JSON or a payload without a categories list.
        """
        url = f"{self.base_url}/summary"
        params = self.build_params(user_id, start_utc, end_utc, editor, language)
        headers = {"Authorization": f"Bearer {api_key}"}
        session = await self._get_session()

        try:
            async with session.get(url, params=params, headers=headers, timeout=self.timeout) as response:
                if response.status < 200 or response.status >= 300:
                    raise UpstreamError(
                        f"Failed to fetch summary for {user_id}: {response.status} {response.reason}",
                        status=response.status
                    )
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise UpstreamError(f"Malformed summary payload for {user_id}: {e}", status=response.status)
        except asyncio.TimeoutError:
            raise UpstreamError(f"Timed out fetching summary for {user_id}")
        except aiohttp.ClientError as e:
            raise UpstreamError(f"Network error fetching summary for {user_id}: {e}")

        if not isinstance(payload, dict) or not isinstance(payload.get("categories"), list):
            raise UpstreamError(f"Summary payload for {user_id} has no categories list")

        logger.debug(f"Fetched summary for {user_id} {params['from']}..{params['to']}")
        return payload
