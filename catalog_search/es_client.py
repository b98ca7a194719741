"""Elasticsearch client factory.

Elasticsearch only stores the catalog documents here; candidate search and
ranking happen in-process. Blocking calls are wrapped via ``asyncio.to_thread``
by the caller where necessary.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from elasticsearch import Elasticsearch

from .config import settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    logger.info("Connecting to Elasticsearch at %s (index %s)", settings.es_host, settings.es_index)
    return Elasticsearch(settings.es_host, request_timeout=REQUEST_TIMEOUT_SECONDS)
