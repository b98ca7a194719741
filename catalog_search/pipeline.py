"""Filter and sort pipeline over an in-memory product collection.

:func:`apply` is a pure function of ``(candidates, filter_state, sort_mode)``:
the candidates are never mutated, nothing is carried over between calls and
every call recomputes all stages from scratch. Stages run in a fixed order:

    1) text: best fuzzy score of the query against brand and product name must
       reach :data:`MATCH_THRESHOLD` (skipped when the query is blank);
    2) brand: exact membership of the brand name in the selected brands;
    3) size: at least one size entry in the selected sizes, stock ignored;
    4) price: ``min_price <= price <= max_price`` for whichever bounds are set;
    5) sort: stable, by price or not at all for ``SortMode.NEW``.

Stages 1-4 are independent predicates, so their order only affects speed.

Cost is ``O(N * T * L^2)`` per pass for ``N`` candidates, ``T`` whitespace
tokens per name and ``L`` the longer of query and token length. There is no
caching or incremental evaluation. That suits catalogs of a few thousand
products and is the first thing to revisit for anything larger.
"""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Iterable, Optional

from .fuzzy import score
from .models import FilterState, Product, SortMode, parse_price_bound

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.5
AVAILABLE_SIZES: tuple[str, ...] = ("XS", "S", "M", "L", "XL", "XXL")

__all__ = [
    "AVAILABLE_SIZES",
    "MATCH_THRESHOLD",
    "apply",
    "best_field_score",
    "distinct_brands",
    "filter_products",
    "parse_price_bound",
    "sort_products",
]


def best_field_score(query: str, product: Product) -> float:
    return max(score(query, product.brand_name), score(query, product.name or ""))


def _matches_query(product: Product, query: str) -> bool:
    return best_field_score(query, product) >= MATCH_THRESHOLD


def _matches_brand(product: Product, brands: frozenset[str]) -> bool:
    return product.brand_name in brands


def _matches_size(product: Product, sizes: frozenset[str]) -> bool:
    return any(entry.size in sizes for entry in product.sizes)


def _matches_price(product: Product, min_price: Optional[float], max_price: Optional[float]) -> bool:
    if min_price is not None and product.price < min_price:
        return False
    if max_price is not None and product.price > max_price:
        return False
    return True


def filter_products(candidates: Iterable[Product], state: FilterState) -> list[Product]:
    """Run the predicate stages and keep survivors in their input order."""

    query = state.query.strip()
    min_price = parse_price_bound(state.min_price)
    max_price = parse_price_bound(state.max_price)

    survivors: list[Product] = []
    for product in candidates:
        if query and not _matches_query(product, query):
            continue
        if state.selected_brands and not _matches_brand(product, state.selected_brands):
            continue
        if state.selected_sizes and not _matches_size(product, state.selected_sizes):
            continue
        if not _matches_price(product, min_price, max_price):
            continue
        survivors.append(product)
    return survivors


def sort_products(products: Iterable[Product], sort_mode: SortMode | str = SortMode.NEW) -> list[Product]:
    mode = SortMode(sort_mode)
    if mode == SortMode.PRICE_LOW:
        return sorted(products, key=lambda product: product.price)
    if mode == SortMode.PRICE_HIGH:
        return sorted(products, key=lambda product: product.price, reverse=True)
    # Recency relies on the source already delivering newest first.
    return list(products)


def apply(
    candidates: Iterable[Product],
    filter_state: FilterState | None = None,
    sort_mode: SortMode | str = SortMode.NEW,
) -> list[Product]:
    """Return the render-ready product list for the given filters and sort."""

    state = filter_state or FilterState()
    t0 = perf_counter()
    pool = list(candidates)
    filtered = filter_products(pool, state)
    t1 = perf_counter()
    ordered = sort_products(filtered, sort_mode)
    t2 = perf_counter()
    logger.info(
        "timing: total=%.2fms filter=%.2fms sort=%.2fms q=%r brands=%s sizes=%s price=%s..%s sort=%s kept=%s/%s",
        (t2 - t0) * 1000,
        (t1 - t0) * 1000,
        (t2 - t1) * 1000,
        state.query,
        sorted(state.selected_brands),
        sorted(state.selected_sizes),
        state.min_price,
        state.max_price,
        SortMode(sort_mode).value,
        len(ordered),
        len(pool),
    )
    return ordered


def distinct_brands(candidates: Iterable[Product]) -> list[str]:
    """Brand filter options: distinct non-empty brand names, first seen first."""

    seen: set[str] = set()
    brands: list[str] = []
    for product in candidates:
        name = product.brand_name
        if name and name not in seen:
            seen.add(name)
            brands.append(name)
    return brands
