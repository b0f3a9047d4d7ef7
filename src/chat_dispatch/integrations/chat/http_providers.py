"""HTTP-backed permission providers.

The remote service is expected to answer with a JSON object holding the ids
under one known key (``admins`` for group metadata, ``sudo`` for the sudo
list). Anything else is rejected instead of guessed at.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import httpx

from ...core.exceptions import PermanentError, TransientError


def extract_subject_ids(payload: Any, *, key: str) -> set[str]:
    """Pull ``payload[key]`` as a set of ids; raise PermanentError otherwise."""

    if not isinstance(payload, dict):
        raise PermanentError(f"Expected a JSON object with {key!r}")
    values = payload.get(key)
    if not isinstance(values, list):
        raise PermanentError(f"Expected {key!r} to be a list")
    ids: set[str] = set()
    for item in values:
        if isinstance(item, dict):
            item = item.get("id")
        if isinstance(item, (str, int)) and str(item).strip():
            ids.add(str(item).strip())
    return ids


class _JsonEndpoint:
    def __init__(
        self,
        *,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 10.0,
        token: Optional[str] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds, headers=headers
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, path: str) -> Any:
        try:
            response = await self._client.get(path)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429 or status >= 500:
                raise TransientError(f"GET {path} failed with {status}") from exc
            raise PermanentError(f"GET {path} failed with {status}") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"GET {path} failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise PermanentError(f"GET {path} returned invalid JSON") from exc


class HttpGroupMetadataProvider(_JsonEndpoint):
    async def get_admins(self, chat_id: str) -> set[str]:
        payload = await self._get_json(f"/groups/{quote(chat_id, safe='')}/admins")
        return extract_subject_ids(payload, key="admins")


class HttpSudoListProvider(_JsonEndpoint):
    async def list(self) -> set[str]:
        payload = await self._get_json("/sudo")
        return extract_subject_ids(payload, key="sudo")
