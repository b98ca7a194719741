"""FastAPI application exposing the catalog filter pipeline."""
from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from time import perf_counter
from typing import List, Optional

from fastapi import Depends, FastAPI, Query

from .cache import get_cache
from .config import settings
from .currency import DisplayCurrency, fetch_exchange_rates, format_price
from .es_client import get_client
from .fuzzy import score
from .importer import import_if_empty, reindex_data
from .models import CatalogResponse, FilterState, Product, ProductResult, ScoreResponse, SortMode
from .pipeline import AVAILABLE_SIZES, apply, best_field_score, distinct_brands
from .source import CandidateSource, ElasticsearchCandidateSource, JsonCandidateSource

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# Force a predictable logging setup even when run under uvicorn. ``force=True``
# replaces uvicorn's default handlers.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

BRANDS_CACHE_KEY = "brand_options"
NEW_PRODUCT_DAYS = 30


class CatalogStore:
    """Holds the candidate list fetched once per load; requests only read it."""

    def __init__(self, source: CandidateSource) -> None:
        self.source = source
        self._products: List[Product] = []
        self._lock = threading.Lock()

    @property
    def products(self) -> List[Product]:
        return self._products

    def reload(self) -> int:
        products = self.source.load()
        with self._lock:
            self._products = products
        get_cache().delete(BRANDS_CACHE_KEY)
        return len(products)


def build_source() -> CandidateSource:
    if settings.catalog_backend == "elasticsearch":
        return ElasticsearchCandidateSource(get_client(), settings.es_index)
    return JsonCandidateSource(settings.catalog_path, settings.catalog_source_url or None)


_store: CatalogStore | None = None


def get_store() -> CatalogStore:
    global _store
    if _store is None:
        _store = CatalogStore(build_source())
    return _store


def is_new(product: Product, now: Optional[datetime] = None) -> bool:
    if product.created_at is None:
        return False
    created = product.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (now or datetime.now(timezone.utc)) - created <= timedelta(days=NEW_PRODUCT_DAYS)


app = FastAPI(title="Streetwear Catalog Search")


@app.on_event("startup")
async def startup_event() -> None:
    if not settings.load_on_startup:
        return
    store = get_store()
    if settings.catalog_backend == "elasticsearch":
        imported = await import_if_empty(get_client())
        if imported:
            logger.info("Imported %s products on startup", imported)
    count = await asyncio.to_thread(store.reload)
    logger.info("Loaded %s candidates from %s source", count, store.source.name)


@app.get("/health")
async def health(store: CatalogStore = Depends(get_store)) -> dict:
    return {
        "backend": store.source.name,
        "candidates": len(store.products),
    }


@app.get("/catalog", response_model=CatalogResponse)
async def catalog(
    q: str = Query("", description="Free-text query, matched with typo tolerance"),
    brand: List[str] = Query([], description="Brand names to keep"),
    size: List[str] = Query([], description="Sizes to keep, stock ignored"),
    min_price: Optional[str] = Query(None, description="Inclusive lower price bound"),
    max_price: Optional[str] = Query(None, description="Inclusive upper price bound"),
    sort: SortMode = SortMode.NEW,
    currency: Optional[DisplayCurrency] = None,
    store: CatalogStore = Depends(get_store),
) -> CatalogResponse:
    started = perf_counter()
    state = FilterState(
        query=q,
        selected_brands=brand,
        selected_sizes=size,
        min_price=min_price,
        max_price=max_price,
    )
    products = store.products
    ordered = apply(products, state, sort)

    display = currency or DisplayCurrency(settings.display_currency)
    rates = await asyncio.to_thread(fetch_exchange_rates)
    query = q.strip()
    now = datetime.now(timezone.utc)
    results = [
        ProductResult(
            id=product.id,
            name=product.name,
            slug=product.slug,
            brand=product.brand_name or None,
            country=product.brand.country if product.brand else None,
            price=product.price,
            currency=product.currency,
            display_price=format_price(product.price, product.currency, display, rates),
            image_url=product.main_image.image_url if product.main_image else None,
            sizes=list(product.sizes),
            score=best_field_score(query, product) if query else None,
            is_new=is_new(product, now),
        )
        for product in ordered
    ]
    return CatalogResponse(
        query=query,
        sort=sort,
        total=len(results),
        brands=_brand_options(store),
        sizes=list(AVAILABLE_SIZES),
        results=results,
        took_ms=(perf_counter() - started) * 1000,
    )


def _brand_options(store: CatalogStore) -> List[str]:
    cache = get_cache()
    cached = cache.get(BRANDS_CACHE_KEY)
    if cached is not None:
        return cached
    brands = distinct_brands(store.products)
    cache.set(BRANDS_CACHE_KEY, brands, settings.cache_ttl_seconds)
    return brands


@app.get("/brands")
async def brands(store: CatalogStore = Depends(get_store)) -> List[str]:
    return _brand_options(store)


@app.get("/score", response_model=ScoreResponse)
async def score_text(
    q: str = Query(..., description="Query to score"),
    text: str = Query(..., description="Text to score against"),
) -> ScoreResponse:
    return ScoreResponse(query=q, text=text, score=score(q, text))


@app.post("/reload")
async def reload(store: CatalogStore = Depends(get_store)) -> dict:
    indexed = None
    if isinstance(store.source, ElasticsearchCandidateSource):
        indexed = await reindex_data(store.source.es)
    count = await asyncio.to_thread(store.reload)
    return {"indexed": indexed, "candidates": count}
