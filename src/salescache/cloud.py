"""Best-effort one-shot push/pull of a cache snapshot to a remote backend.

The remote is a PocketBase-style REST API holding one snapshot record per
user.  This is not a synchronization protocol: pull returns whatever the
remote holds, push overwrites it, and conflicts resolve as last-write-wins.
:meth:`CloudSync.push` and :meth:`CloudSync.pull` never raise; failures are
logged and reported as ``False``/``None``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import aiohttp

from salescache._redact import redact_for_log
from salescache.config import CacheConfig
from salescache.exceptions import CloudSyncError

_logger = logging.getLogger(__name__)


class CloudSync:
    """Async client for the remote snapshot collection.

    Usage::

        async with CloudSync(config) as cloud:
            await cloud.login(email, password)
            await cloud.push(await cache.snapshot())
    """

    def __init__(self, config: CacheConfig, *, session: aiohttp.ClientSession | None = None) -> None:
        self._config = config
        self._external_session = session is not None
        self._http = session
        self._token: str | None = None
        self._user_id: str | None = None

    async def __aenter__(self) -> CloudSync:
        if self._http is None:
            self._http = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30))
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._http is not None and not self._external_session:
            await self._http.close()
        self._http = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None and self._user_id is not None

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def logout(self) -> None:
        self._token = None
        self._user_id = None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        payload: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        if self._http is None:
            raise CloudSyncError("CloudSync used outside of its context manager", endpoint=endpoint)

        headers = {"content-type": "application/json"}
        if self._token:
            headers["authorization"] = self._token
        url = f"{self._config.cloud_url.rstrip('/')}{endpoint}"
        _logger.debug("%s %s %s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                data=json.dumps(payload) if payload is not None else None,
                params=params,
                headers=headers,
            ) as resp:
                text = await resp.text()
                if resp.status >= 300:
                    raise CloudSyncError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except CloudSyncError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise CloudSyncError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        try:
            body: Any = json.loads(text) if text else {}
        except json.JSONDecodeError as exc:
            raise CloudSyncError(f"Invalid JSON from {endpoint}: {text[:200]}", endpoint=endpoint) from exc
        if not isinstance(body, dict):
            raise CloudSyncError(f"Unexpected response shape from {endpoint}", endpoint=endpoint)
        return body

    def _records_endpoint(self) -> str:
        return f"/api/collections/{self._config.cloud_collection}/records"

    async def _find_own_record(self) -> dict[str, Any] | None:
        body = await self._request(
            "GET",
            self._records_endpoint(),
            params={"filter": f'user="{self._user_id}"', "perPage": "1"},
        )
        items = body.get("items")
        if isinstance(items, list) and items and isinstance(items[0], dict):
            return items[0]
        return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> bool:
        """Authenticate; returns ``False`` (and logs) on failure."""
        try:
            body = await self._request(
                "POST",
                "/api/collections/users/auth-with-password",
                payload={"identity": email, "password": password},
            )
        except CloudSyncError as exc:
            _logger.error("Login failed: %s", exc)
            return False
        record = body.get("record")
        token = body.get("token")
        if not isinstance(token, str) or not isinstance(record, dict) or not record.get("id"):
            _logger.error("Login response missing token or record")
            return False
        self._token = token
        self._user_id = str(record["id"])
        return True

    async def push(self, snapshot: Mapping[str, Any]) -> bool:
        """Upsert the caller's snapshot record; ``False`` when skipped or failed."""
        if not self.is_authenticated:
            _logger.warning("Not authenticated, skipping push")
            return False
        payload = {
            "user": self._user_id,
            **snapshot,
            "lastUpdated": datetime.now(UTC).isoformat(),
        }
        try:
            existing = await self._find_own_record()
            if existing is not None:
                await self._request("PATCH", f"{self._records_endpoint()}/{existing['id']}", payload=payload)
            else:
                await self._request("POST", self._records_endpoint(), payload=payload)
        except CloudSyncError as exc:
            _logger.error("Push error: %s", exc)
            return False
        _logger.info("Data pushed to %s", self._config.cloud_url)
        return True

    async def pull(self) -> dict[str, Any] | None:
        """Fetch the caller's snapshot record; ``None`` when absent or failed."""
        if not self.is_authenticated:
            _logger.warning("Not authenticated, skipping pull")
            return None
        try:
            record = await self._find_own_record()
        except CloudSyncError as exc:
            if exc.status_code == 404:
                _logger.info("No cloud data found (first sync)")
            else:
                _logger.error("Pull error: %s", exc)
            return None
        if record is None:
            _logger.info("No cloud data found (first sync)")
            return None
        _logger.info("Data pulled from %s", self._config.cloud_url)
        return record

    async def full_sync(self, local: Mapping[str, Any]) -> dict[str, Any] | None:
        """Pull the remote snapshot; when there is none, push *local* instead.

        Returns the remote snapshot (remote wins), or ``None`` if local data
        was pushed or nothing could be fetched.
        """
        remote = await self.pull()
        if remote is None:
            await self.push(local)
            return None
        return remote
