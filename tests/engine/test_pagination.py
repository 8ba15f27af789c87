from __future__ import annotations

from typing import Any

import pytest

from catalog_crawler.engine.pagination import PaginationReducer, ProductListStrategy
from catalog_crawler.errors import PaginationError, SourceFetchError


class ListedPages:
    """Serve canned pages and record which pages were requested."""

    def __init__(self, pages: list[list[int]], fail_on: int | None = None) -> None:
        self.pages = pages
        self.fail_on = fail_on
        self.requested: list[int] = []

    def list_products(self, page: int = 1) -> dict[str, Any]:
        self.requested.append(page)
        if page == self.fail_on:
            raise SourceFetchError(f"page {page} failed")
        ids = self.pages[page - 1]
        return {"product_ids": ids, "next_page": page + 1 if page < len(self.pages) else None}


def test_reducer_flattens_pages_in_order() -> None:
    source = ListedPages([[1, 2], [3, 4], [5]])
    reducer = PaginationReducer(ProductListStrategy(source))
    assert reducer.run() == [1, 2, 3, 4, 5]
    assert reducer.requests_made == 3
    assert source.requested == [1, 2, 3]


def test_reducer_keeps_duplicates() -> None:
    source = ListedPages([[1, 2], [2, 3]])
    assert PaginationReducer(ProductListStrategy(source)).run() == [1, 2, 2, 3]


def test_empty_terminal_page_costs_one_extra_request() -> None:
    source = ListedPages([[1, 2], [3, 4], []])
    reducer = PaginationReducer(ProductListStrategy(source))
    assert reducer.run() == [1, 2, 3, 4]
    assert reducer.requests_made == 3


def test_single_empty_page() -> None:
    source = ListedPages([[]])
    reducer = PaginationReducer(ProductListStrategy(source))
    assert reducer.run() == []
    assert reducer.requests_made == 1


def test_request_failure_aborts_discovery() -> None:
    source = ListedPages([[1], [2], [3]], fail_on=2)
    with pytest.raises(SourceFetchError):
        PaginationReducer(ProductListStrategy(source)).run()
    assert source.requested == [1, 2]


def test_max_pages_bounds_runaway_listing() -> None:
    class Endless:
        def list_products(self, page: int = 1) -> dict[str, Any]:
            return {"product_ids": [page], "next_page": page + 1}

    with pytest.raises(PaginationError):
        PaginationReducer(ProductListStrategy(Endless()), max_pages=5).run()


def test_custom_strategy() -> None:
    class CursorStrategy:
        def __init__(self) -> None:
            self.cursors = {None: ("a", ["x"]), "a": ("b", ["y"]), "b": (None, ["z"])}

        def initial_params(self) -> dict[str, Any]:
            return {"cursor": None}

        def fetch_page(self, params: dict[str, Any]) -> dict[str, Any]:
            cursor, items = self.cursors[params["cursor"]]
            return {"cursor": cursor, "items": items}

        def should_continue(self, response: dict[str, Any]) -> bool:
            return response["cursor"] is not None

        def next_params(self, response: dict[str, Any]) -> dict[str, Any]:
            return {"cursor": response["cursor"]}

        def reduce(self, responses: list[dict[str, Any]]) -> list[str]:
            return [item for response in responses for item in response["items"]]

    assert PaginationReducer(CursorStrategy()).run() == ["x", "y", "z"]
