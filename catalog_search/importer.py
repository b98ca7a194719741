"""Bulk import of the catalog JSON file into the Elasticsearch document store."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable

from elasticsearch import Elasticsearch, helpers

from .config import settings
from .indexing import drop_index, ensure_index, index_is_empty
from .models import Product
from .source import load_raw_records, prepare_product

logger = logging.getLogger(__name__)


def _iter_actions(index: str, products: Iterable[Product]) -> Iterable[dict]:
    for product in products:
        yield {
            "_index": index,
            "_id": product.id,
            "_source": product.model_dump(mode="json"),
        }


def read_catalog(path: Path) -> list[Product]:
    records = load_raw_records(path)
    products = [product for product in (prepare_product(item) for item in records) if product]
    skipped = len(records) - len(products)
    if skipped:
        logger.warning("Skipped %s unusable records from %s", skipped, path)
    return products


async def import_products(es: Elasticsearch, path: Path | None = None, index: str | None = None) -> int:
    """Index every usable record; moderation status is kept so the source can filter it."""

    products = read_catalog(path or Path(settings.catalog_path))
    if not products:
        return 0
    actions = list(_iter_actions(index or settings.es_index, products))
    await asyncio.to_thread(helpers.bulk, es, actions, refresh="wait_for")
    logger.info("Indexed %s products into %s", len(actions), index or settings.es_index)
    return len(actions)


async def import_if_empty(es: Elasticsearch) -> int:
    await ensure_index(es)
    if not await index_is_empty(es):
        return 0
    return await import_products(es)


async def reindex_data(es: Elasticsearch) -> int:
    await drop_index(es)
    await ensure_index(es)
    return await import_products(es)
