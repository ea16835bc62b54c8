"""Twitter API v2 adapter.

Implements the core SpaceSourcePort over ``spaces/by/creator_ids`` and the
user lookups used at startup to resolve the watch list. A shared
``httpx.AsyncClient`` is injected so all requests reuse one connection pool.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from adapters.twitter_mapper import build_creators, build_fetch_result, parse_rate_limit
from core.errors import FetchError
from core.models import Creator, FetchResult, RateLimit

LOGGER = logging.getLogger(__name__)

API_BASE_URL = "https://api.twitter.com/2/"

SPACE_FIELDS = ["id", "title", "creator_id", "state", "started_at", "scheduled_start", "created_at", "updated_at"]
USER_FIELDS = ["id", "name", "username"]


class TwitterClient:
    """Bearer-token client for the handful of v2 endpoints the watcher needs."""

    def __init__(self, client: httpx.AsyncClient, bearer_token: str, base_url: str = API_BASE_URL) -> None:
        self._client = client
        self._bearer_token = bearer_token
        self._base_url = base_url

    async def _get(self, api: str, params: dict[str, str]) -> tuple[dict[str, Any], Optional[RateLimit]]:
        headers = {"Authorization": f"Bearer {self._bearer_token}"}
        try:
            resp = await self._client.get(self._base_url + api, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise FetchError(f"GET {api} failed: {exc}") from exc

        # Rate-limit headers are read before the status check so a 429 still
        # tells the scheduler when the window resets.
        rate_limit = parse_rate_limit(resp.headers)
        if resp.status_code != 200:
            raise FetchError(f"GET {api} returned status {resp.status_code}", rate_limit=rate_limit)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise FetchError(f"GET {api} returned invalid JSON", rate_limit=rate_limit) from exc
        if not isinstance(payload, dict):
            raise FetchError(f"GET {api} returned unexpected payload", rate_limit=rate_limit)
        return payload, rate_limit

    async def fetch(self, creator_ids: list[str]) -> FetchResult:
        """Fetch every current Space hosted by ``creator_ids``."""

        if not creator_ids:
            raise FetchError("no creator ids to watch")
        params = {
            "user_ids": ",".join(creator_ids),
            "expansions": "creator_id",
            "space.fields": ",".join(SPACE_FIELDS),
            "user.fields": ",".join(USER_FIELDS),
        }
        payload, rate_limit = await self._get("spaces/by/creator_ids", params)
        for error in payload.get("errors") or []:
            LOGGER.warning("API reported partial error: %s", error)
        return build_fetch_result(payload, rate_limit)

    async def lookup_users(self, usernames: list[str]) -> list[Creator]:
        """Resolve screen names to accounts."""

        if not usernames:
            return []
        params = {"usernames": ",".join(usernames), "user.fields": ",".join(USER_FIELDS)}
        payload, _ = await self._get("users/by", params)
        for error in payload.get("errors") or []:
            LOGGER.warning("User lookup error: %s", error)
        return build_creators(payload.get("data"))

    async def get_following(self, user_id: str) -> list[Creator]:
        """Return every account ``user_id`` follows, walking all pages."""

        creators: list[Creator] = []
        params = {"max_results": "1000", "user.fields": ",".join(USER_FIELDS)}
        while True:
            payload, _ = await self._get(f"users/{user_id}/following", params)
            creators.extend(build_creators(payload.get("data")))
            meta = payload.get("meta")
            next_token = meta.get("next_token") if isinstance(meta, dict) else None
            if not next_token:
                return creators
            params = {**params, "pagination_token": next_token}
