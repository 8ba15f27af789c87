"""HTTP client for the catalog API, routed through the request policy chain."""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping

import httpx
import structlog

from ..config import ApiConfig
from ..errors import NotFoundError, RedirectedError, SourceFetchError
from ..infra import UserAgentPool
from .policy import RequestContext, RequestOutcome, RequestPolicyChain, build_chain


def _extract_id(item: Any, key: str) -> int:
    if isinstance(item, Mapping):
        return int(item[key])
    return int(item)


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, Mapping) and "result" in payload:
        return payload["result"]
    return payload


class CatalogSource:
    """Read-only collaborator exposing listings and detail records.

    Listing responses are reduced to plain id lists; detail responses are
    returned as raw mappings for the transform engine. A 404 surfaces as
    :class:`NotFoundError`, a redirect (never followed) as
    :class:`RedirectedError`, and any other failure that survives the retry
    policy as :class:`SourceFetchError`.
    """

    def __init__(
        self,
        api: ApiConfig,
        ua_pool: UserAgentPool | None = None,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        chain: RequestPolicyChain | None = None,
    ) -> None:
        self.api = api
        self.ua_pool = ua_pool
        self.logger = logger or structlog.get_logger("catalog_crawler.fetcher")
        self._client = client or httpx.Client(base_url=api.base_url, follow_redirects=False)
        self._sleep = sleep
        self._chain = chain or build_chain(ua_pool)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "CatalogSource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Collaborator API
    # ------------------------------------------------------------------
    def list_products(self, page: int = 1) -> dict[str, Any]:
        payload = self._get_json("/products", kind="product listing", entity_id=page, params={"page": page})
        items = _unwrap(payload) or []
        pager = payload.get("pager", {}) if isinstance(payload, Mapping) else {}
        next_page = pager.get("next_page")
        if pager.get("is_final_page"):
            next_page = None
        return {
            "product_ids": [_extract_id(item, "itemNumber") for item in items],
            "next_page": next_page,
        }

    def list_stores(self) -> dict[str, Any]:
        payload = self._get_json("/stores", kind="store listing")
        items = _unwrap(payload) or []
        return {"store_ids": [_extract_id(item, "locationNumber") for item in items]}

    def get_store(self, store_id: int) -> dict[str, Any]:
        return dict(_unwrap(self._get_json(f"/stores/{store_id}", kind="store", entity_id=store_id)))

    def get_product(self, product_id: int) -> dict[str, Any]:
        return dict(
            _unwrap(self._get_json(f"/products/{product_id}", kind="product", entity_id=product_id))
        )

    def get_inventory(self, product_id: int) -> dict[str, Any]:
        payload = self._get_json(
            f"/products/{product_id}/inventory", kind="product", entity_id=product_id
        )
        lines = [dict(line) for line in (_unwrap(payload) or [])]
        count = payload.get("inventory_count") if isinstance(payload, Mapping) else None
        if count is None:
            count = sum(int(line.get("quantity") or 0) for line in lines)
        return {"inventory_count": int(count), "inventories": lines}

    # ------------------------------------------------------------------
    def _get_json(
        self,
        path: str,
        *,
        kind: str,
        entity_id: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        context = RequestContext(api=self.api, path=path)
        last_error: Exception | None = None
        while True:
            directive = self._chain.directive_for(context)
            if directive.delay:
                self._sleep(directive.delay)
            try:
                response = self._client.get(
                    path, params=params, headers=directive.headers, timeout=directive.timeout
                )
            except httpx.HTTPError as exc:
                self.logger.warning(
                    "fetch_error", path=path, attempt=context.attempt, error=str(exc)
                )
                outcome = RequestOutcome(error=exc)
                last_error = exc
            else:
                status = response.status_code
                if status == 404:
                    raise NotFoundError(kind, entity_id)
                if 300 <= status < 400:
                    raise RedirectedError(kind, entity_id, response.headers.get("location"))
                if status < 400:
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise SourceFetchError(f"GET {path} returned invalid JSON") from exc
                error = SourceFetchError(f"GET {path} returned status {status}")
                outcome = RequestOutcome(response=response)
                if not outcome.transient:
                    raise error
                self.logger.warning(
                    "fetch_retryable_status", path=path, attempt=context.attempt, status=status
                )
                last_error = error

            if not self._chain.next_attempt(context, outcome):
                break

        raise SourceFetchError(f"GET {path} failed after {context.attempt} attempts") from last_error


__all__ = ["CatalogSource"]
