"""Shared fixtures: a small streetwear catalog and an isolated cache."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from catalog_search import cache as cache_module
from catalog_search.cache import InMemoryCache
from catalog_search.currency import RATES_CACHE_KEY
from catalog_search.events import get_channel
from catalog_search.models import Brand, Product, ProductSize


def make_product(
    product_id: str,
    name: str,
    price: float,
    brand: str | None = None,
    sizes: list[tuple[str, bool]] | None = None,
    country: str | None = None,
    created_at: datetime | None = None,
    currency: str = "EUR",
) -> Product:
    return Product(
        id=product_id,
        name=name,
        price=price,
        currency=currency,
        brand=Brand(name=brand, country=country) if brand is not None else None,
        sizes=tuple(ProductSize(size=size, in_stock=in_stock) for size, in_stock in (sizes or [])),
        created_at=created_at,
    )


@pytest.fixture
def catalog() -> list[Product]:
    """Newest first, the way the candidate source hands products over."""
    return [
        make_product(
            "p1",
            "Black Hoodie",
            120,
            brand="Corteiz",
            country="GB",
            sizes=[("S", True), ("M", False)],
            created_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
        ),
        make_product(
            "p2",
            "Cargo Pants",
            150,
            brand="Corteiz",
            country="GB",
            sizes=[("M", True), ("L", True)],
            created_at=datetime(2026, 9, 20, tzinfo=timezone.utc),
        ),
        make_product(
            "p3",
            "Box Logo Tee",
            60,
            brand="Supreme",
            country="US",
            sizes=[("S", True), ("M", True), ("L", True)],
            created_at=datetime(2026, 8, 2, tzinfo=timezone.utc),
        ),
        make_product(
            "p4",
            "Zip Hoodie",
            95,
            brand="Trapstar",
            country="GB",
            sizes=[("L", True), ("XL", True)],
            created_at=datetime(2026, 7, 15, tzinfo=timezone.utc),
        ),
        make_product("p5", "Beanie", 30),
    ]


@pytest.fixture(autouse=True)
def memory_cache():
    """Never touch Redis or the exchange-rate API from tests."""
    backend = InMemoryCache()
    backend.set(RATES_CACHE_KEY, {"usd_to_eur": 0.92, "gbp_to_eur": 1.17}, 3600)
    cache_module.set_cache(backend)
    yield backend
    cache_module.set_cache(None)


def ids(products) -> list[str]:
    return [product.id for product in products]


@pytest.fixture(autouse=True)
def fresh_channel():
    yield get_channel()
    get_channel().clear()
