"""Catalog index creation and maintenance helpers."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import BadRequestError, NotFoundError

from .config import settings

logger = logging.getLogger(__name__)

# Used when no mapping file is deployed next to the service. Text fields are
# plain keywords: the index is a document store, not a search engine.
DEFAULT_MAPPING: dict = {
    "mappings": {
        "properties": {
            "id": {"type": "keyword"},
            "name": {"type": "keyword"},
            "slug": {"type": "keyword"},
            "price": {"type": "double"},
            "currency": {"type": "keyword"},
            "category": {"type": "keyword"},
            "created_at": {"type": "date"},
            "status": {"type": "keyword"},
            "brand": {
                "properties": {
                    "name": {"type": "keyword"},
                    "slug": {"type": "keyword"},
                    "country": {"type": "keyword"},
                    "logo_url": {"type": "keyword", "index": False},
                }
            },
            "images": {"type": "object", "enabled": False},
            "sizes": {
                "properties": {
                    "size": {"type": "keyword"},
                    "in_stock": {"type": "boolean"},
                }
            },
        }
    }
}


def load_mapping(mapping_path: Path) -> dict:
    try:
        with mapping_path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError:
        logger.info("Mapping file %s not found; using built-in mapping", mapping_path)
        return DEFAULT_MAPPING


async def ensure_index(es: Elasticsearch, index: str | None = None) -> bool:
    """Create the catalog index if it is missing. Returns True when created."""

    index = index or settings.es_index
    exists = await asyncio.to_thread(es.indices.exists, index=index)
    if exists:
        return False
    mapping_path = Path(settings.mapping_path)
    body = load_mapping(mapping_path)
    logger.info("Creating index %s", index)
    try:
        await asyncio.to_thread(es.indices.create, index=index, body=body)
    except BadRequestError as exc:
        if getattr(exc, "error", "") == "resource_already_exists_exception":
            logger.info("Index %s already exists", index)
            return False
        logger.exception("Failed to create index: %s", exc)
        raise
    return True


async def drop_index(es: Elasticsearch, index: str | None = None) -> None:
    try:
        await asyncio.to_thread(es.indices.delete, index=index or settings.es_index)
    except NotFoundError:
        return


async def index_is_empty(es: Elasticsearch, index: str | None = None) -> bool:
    try:
        stats = await asyncio.to_thread(es.count, index=index or settings.es_index)
        return stats.get("count", 0) == 0
    except NotFoundError:
        return True
