"""Candidate sources: where the approved, newest-first product list comes from."""
from __future__ import annotations

import json
import logging
import re
from datetime import timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import NotFoundError
from pydantic import ValidationError
from unidecode import unidecode

from .data_files import ensure_data_file
from .models import Brand, Product, ProductImage, ProductSize

logger = logging.getLogger(__name__)

APPROVED = "approved"
ES_PAGE_SIZE = 1000
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


class CandidateSource(Protocol):
    name: str

    def load(self) -> List[Product]: ...


def slugify(text: Optional[str]) -> str:
    """ASCII slug for brand and product URLs (``"Cafe Noir"`` -> ``"cafe-noir"``)."""
    if not text:
        return ""
    ascii_text = unidecode(text).lower()
    return _NON_SLUG_RE.sub("-", ascii_text).strip("-")


def _first(value: Any) -> Any:
    # Joined rows may come back as a single object or a one-element list.
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _prepare_brand(raw: Any) -> Optional[Brand]:
    raw = _first(raw)
    if not raw:
        return None
    if isinstance(raw, str):
        return Brand(name=raw, slug=slugify(raw))
    name = raw.get("name") or ""
    return Brand(
        name=name,
        slug=raw.get("slug") or slugify(name) or None,
        country=raw.get("country"),
        logo_url=raw.get("logo_url"),
    )


def prepare_product(raw: dict) -> Optional[Product]:
    """Normalize a raw catalog record into a :class:`Product`, or ``None`` if unusable."""

    if not isinstance(raw, dict):
        logger.warning("Skipping non-object catalog record: %r", raw)
        return None
    brand = _prepare_brand(raw.get("brand") or raw.get("brands"))
    images = raw.get("images") or raw.get("product_images") or []
    sizes = raw.get("sizes") or raw.get("product_sizes") or []
    name = raw.get("name") or raw.get("title") or ""
    try:
        return Product(
            id=str(raw.get("id") or raw.get("slug") or name),
            name=name,
            slug=raw.get("slug") or slugify(name) or None,
            price=raw.get("price") or 0,
            currency=(raw.get("currency") or "EUR").upper(),
            category=raw.get("category"),
            created_at=raw.get("created_at"),
            status=raw.get("status") or APPROVED,
            brand=brand,
            images=tuple(ProductImage.model_validate(item) for item in images),
            sizes=tuple(ProductSize.model_validate(item) for item in sizes),
        )
    except (ValidationError, TypeError, AttributeError) as exc:
        logger.warning("Skipping invalid catalog record id=%r: %s", raw.get("id"), exc)
        return None


def _created_key(product: Product) -> float:
    created = product.created_at
    if created is None:
        return float("-inf")
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


def approved_newest_first(products: Iterable[Product]) -> List[Product]:
    """Keep approved products, newest first; undated ones trail in input order."""
    approved = [product for product in products if product.status == APPROVED]
    return sorted(approved, key=_created_key, reverse=True)


def load_raw_records(path: Path) -> list[dict]:
    if not path.exists():
        logger.warning("Catalog file %s is missing", path)
        return []
    # Detect Git LFS placeholder to avoid attempting to parse it as JSON.
    with path.open("r", encoding="utf-8") as fh:
        first_line = fh.readline()
        if first_line.startswith("version https://git-lfs.github.com/spec/v1"):
            logger.warning("Catalog file %s is a Git LFS pointer; real data not downloaded", path)
            return []
        fh.seek(0)
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            logger.error("Catalog file %s is not valid JSON: %s", path, exc)
            return []
    if isinstance(data, dict):
        data = data.get("products", [])
    if not isinstance(data, list):
        logger.error("Catalog file %s does not hold a list of products", path)
        return []
    return data


class JsonCandidateSource:
    name = "json"

    def __init__(self, path: str | Path, source_url: Optional[str] = None) -> None:
        self.path = Path(path)
        self.source_url = source_url

    def load(self) -> List[Product]:
        if self.source_url:
            ensure_data_file(self.path, self.source_url)
        records = load_raw_records(self.path)
        products = [product for product in (prepare_product(item) for item in records) if product]
        ordered = approved_newest_first(products)
        logger.info(
            "Loaded %s approved products (%s records) from %s",
            len(ordered),
            len(records),
            self.path,
        )
        return ordered


class ElasticsearchCandidateSource:
    """Reads approved products from an Elasticsearch index used as a document store."""

    name = "elasticsearch"

    def __init__(self, es: Elasticsearch, index: str, page_size: int = ES_PAGE_SIZE) -> None:
        self.es = es
        self.index = index
        self.page_size = page_size

    def _query(self) -> dict:
        return {
            "size": self.page_size,
            "query": {"bool": {"filter": [{"term": {"status": APPROVED}}]}},
            "sort": [{"created_at": {"order": "desc", "missing": "_last"}}, {"id": "asc"}],
        }

    def load(self) -> List[Product]:
        body = self._query()
        products: List[Product] = []
        while True:
            try:
                response = self.es.search(index=self.index, body=body)
            except NotFoundError:
                logger.warning("Index %s does not exist; no candidates", self.index)
                return []
            hits = response.get("hits", {}).get("hits", [])
            for hit in hits:
                product = prepare_product(hit.get("_source", {}))
                if product is not None:
                    products.append(product)
            if len(hits) < self.page_size:
                break
            body = {**body, "search_after": hits[-1]["sort"]}
        logger.info("Loaded %s approved products from index %s", len(products), self.index)
        return products
