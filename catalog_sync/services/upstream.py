"""
HTTP client for the upstream catalog, economy and thumbnails APIs

Every call goes through the host's adaptive rate controller and the retry
policy. Timeouts, transport errors and unreadable bodies are treated exactly
like a 5xx.
"""
from typing import Any, Dict, Iterable, Optional

import httpx
from pydantic import BaseModel

from catalog_sync.core.clock import Sleeper, sleep
from catalog_sync.core.config import Settings
from catalog_sync.core.logging import log
from catalog_sync.services.rate_controller import AdaptiveRateController, RateControllers
from catalog_sync.services.retry_policy import RetryOutcome, RetryPolicy, parse_retry_after

ERROR_BODY_LIMIT = 200


class UpstreamResponse(BaseModel):
    """Final result of one logical upstream call, after retries"""
    status: Optional[int] = None
    outcome: RetryOutcome
    payload: Any = None
    error: Optional[str] = None
    retry_after_ms: Optional[int] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.outcome == RetryOutcome.SUCCESS

    @property
    def not_found(self) -> bool:
        return self.outcome == RetryOutcome.NOT_FOUND

    @property
    def rate_limited(self) -> bool:
        return self.status == 429


def _is_success(status: Optional[int]) -> bool:
    return status is not None and 200 <= status < 300


class UpstreamClient:
    """Rate-controlled JSON GETs against one upstream host class"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        controller: AdaptiveRateController,
        policy: RetryPolicy,
        sleeper: Optional[Sleeper] = None,
    ):
        self.client = client
        self.controller = controller
        self.policy = policy
        self._sleep = sleeper or sleep

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> UpstreamResponse:
        attempt = 0
        while True:
            await self.controller.acquire()

            status: Optional[int] = None
            payload: Any = None
            error: Optional[str] = None
            retry_after_ms: Optional[int] = None

            try:
                response = await self.client.get(url, params=params)
            except httpx.TimeoutException as e:
                error = f"Timeout: {e.__class__.__name__}"
            except httpx.HTTPError as e:
                error = f"Transport error: {e.__class__.__name__}: {e}"
            else:
                status = response.status_code
                retry_after_ms = parse_retry_after(response.headers.get("retry-after"))
                if _is_success(status):
                    try:
                        payload = response.json()
                    except ValueError:
                        error = "Malformed JSON body"
                else:
                    body = response.text[:ERROR_BODY_LIMIT].strip()
                    error = f"HTTP {status}: {body}" if body else f"HTTP {status}"

            if status == 429:
                self.controller.record_rate_limit(retry_after_ms)
            elif status is not None and (status < 400 or status == 404):
                self.controller.record_success()

            # An unreadable 2xx body is retried like a server error
            decision_status = None if _is_success(status) and error else status
            decision = self.policy.decide(decision_status, attempt, retry_after_ms)

            if decision.should_retry:
                log.debug(
                    "Retrying upstream call",
                    controller=self.controller.name,
                    status=status,
                    attempt=attempt + 1,
                    delay_ms=decision.delay_ms,
                )
                await self._sleep(decision.delay_ms / 1000)
                attempt += 1
                continue

            return UpstreamResponse(
                status=status,
                outcome=decision.outcome,
                payload=payload,
                error=error,
                retry_after_ms=retry_after_ms,
                attempts=attempt + 1,
            )


class CatalogApi:
    """
    Typed entry points for the four upstream endpoints.

    Search and categories share the search controller; item details and
    thumbnails each have their own.
    """

    def __init__(
        self,
        settings: Settings,
        controllers: Optional[RateControllers] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleeper: Optional[Sleeper] = None,
        rng: Optional[Any] = None,
    ):
        self.settings = settings
        self.controllers = controllers or RateControllers.from_settings(settings)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            headers={
                "Accept": "application/json",
                "User-Agent": settings.user_agent,
            },
            follow_redirects=True,
        )
        policy = RetryPolicy.from_settings(settings, rng=rng)
        detail_policy = RetryPolicy.from_settings(settings, base_ms=settings.detail_retry_base_ms, rng=rng)

        self.search = UpstreamClient(self.client, self.controllers.search, policy, sleeper)
        self.detail = UpstreamClient(self.client, self.controllers.detail, detail_policy, sleeper)
        self.thumbnail = UpstreamClient(self.client, self.controllers.thumbnail, policy, sleeper)

    async def __aenter__(self) -> "CatalogApi":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self.client.aclose()

    async def search_items(
        self,
        category: str,
        subcategory: Optional[str],
        sort_type: str,
        keyword: str,
        limit: int,
        cursor: Optional[str] = None,
    ) -> UpstreamResponse:
        params: Dict[str, Any] = {"category": category, "sortType": sort_type, "limit": str(limit)}
        if subcategory:
            params["subcategory"] = subcategory
        if keyword:
            params["keyword"] = keyword
        if cursor:
            params["cursor"] = cursor
        return await self.search.get_json(self.settings.search_api_url, params=params)

    async def fetch_categories(self) -> UpstreamResponse:
        return await self.search.get_json(self.settings.categories_api_url)

    async def fetch_item_details(self, item_id: int) -> UpstreamResponse:
        url = self.settings.detail_api_url.format(item_id=item_id)
        return await self.detail.get_json(url)

    async def fetch_thumbnails(self, item_ids: Iterable[int]) -> UpstreamResponse:
        params = {
            "assetIds": ",".join(str(item_id) for item_id in item_ids),
            "size": self.settings.thumbnail_size,
            "format": self.settings.thumbnail_format,
        }
        return await self.thumbnail.get_json(self.settings.thumbnails_api_url, params=params)
