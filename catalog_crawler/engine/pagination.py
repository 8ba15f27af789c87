"""Discover every identifier exposed by a paginated listing endpoint."""

from __future__ import annotations

from typing import Any, Generic, Protocol, TypeVar

import structlog

from ..errors import PaginationError

ResponseT = TypeVar("ResponseT")


class PageStrategy(Protocol[ResponseT]):
    """How one listing endpoint is paged and reduced."""

    def initial_params(self) -> dict[str, Any]:
        """Parameters for the first request."""

    def fetch_page(self, params: dict[str, Any]) -> ResponseT:
        """Issue one listing request."""

    def should_continue(self, response: ResponseT) -> bool:
        """Whether the response signals another page."""

    def next_params(self, response: ResponseT) -> dict[str, Any]:
        """Parameters for the request following ``response``."""

    def reduce(self, responses: list[ResponseT]) -> list[Any]:
        """Fold every response into one flat result."""


class PaginationReducer(Generic[ResponseT]):
    """Drive a :class:`PageStrategy` until the source runs out of pages.

    The loop stops on the first response without a next-page indicator, so an
    empty terminal page is fine. Request failures propagate and abort the whole
    discovery pass.
    """

    def __init__(
        self,
        strategy: PageStrategy[ResponseT],
        max_pages: int | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.strategy = strategy
        self.max_pages = max_pages
        self.logger = logger or structlog.get_logger("catalog_crawler.pagination")
        self.responses: list[ResponseT] = []

    @property
    def requests_made(self) -> int:
        return len(self.responses)

    def run(self) -> list[Any]:
        self.responses = []
        params = self.strategy.initial_params()
        while True:
            if self.max_pages is not None and len(self.responses) >= self.max_pages:
                raise PaginationError(f"listing exceeded {self.max_pages} pages")
            response = self.strategy.fetch_page(params)
            self.responses.append(response)
            self.logger.debug("page_fetched", page=len(self.responses), params=params)
            if not self.strategy.should_continue(response):
                break
            params = self.strategy.next_params(response)
        return self.strategy.reduce(self.responses)


class ProductListStrategy:
    """Pages through ``list_products`` following its ``next_page`` cursor."""

    def __init__(self, source: Any) -> None:
        self.source = source

    def initial_params(self) -> dict[str, Any]:
        return {"page": 1}

    def fetch_page(self, params: dict[str, Any]) -> dict[str, Any]:
        return self.source.list_products(params.get("page") or 1)

    def should_continue(self, response: dict[str, Any]) -> bool:
        return bool(response.get("next_page"))

    def next_params(self, response: dict[str, Any]) -> dict[str, Any]:
        return {"page": response["next_page"]}

    def reduce(self, responses: list[dict[str, Any]]) -> list[int]:
        return [product_id for response in responses for product_id in response.get("product_ids") or []]


__all__ = ["PageStrategy", "PaginationReducer", "ProductListStrategy"]
