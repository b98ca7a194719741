"""Tests for candidate sources and record normalization."""

import json

from catalog_search.source import (
    ElasticsearchCandidateSource,
    JsonCandidateSource,
    prepare_product,
    slugify,
)

HOSTED_RECORDS = [
    {
        "id": "old",
        "name": "Washed Tee",
        "price": 45,
        "currency": "usd",
        "status": "approved",
        "created_at": "2026-01-05T10:00:00+00:00",
        "brands": [{"name": "Corteiz", "slug": "corteiz", "country": "GB", "logo_url": None}],
        "product_images": [
            {"image_url": "https://cdn.test/back.jpg", "is_main": False, "display_order": 1},
            {"image_url": "https://cdn.test/front.jpg", "is_main": True, "display_order": 0},
        ],
        "product_sizes": [{"size": "M", "in_stock": False}],
    },
    {
        "id": "new",
        "name": "Puffer Jacket",
        "price": "310.00",
        "status": "approved",
        "created_at": "2026-09-30T08:00:00Z",
        "brands": {"name": "Café Noir", "country": "FR"},
        "product_sizes": [{"size": "L", "in_stock": True}],
    },
    {"id": "pending", "name": "Draft", "price": 10, "status": "pending"},
    {"id": "undated", "name": "Socks", "price": 9},
    {"id": "broken", "name": "Broken", "price": "free"},
    "not-a-record",
]


def test_slugify_transliterates():
    assert slugify("Café Noir") == "cafe-noir"
    assert slugify("  Box Logo / Tee ") == "box-logo-tee"
    assert slugify(None) == ""


def test_prepare_product_accepts_hosted_shape():
    product = prepare_product(HOSTED_RECORDS[0])
    assert product.brand_name == "Corteiz"
    assert product.brand.country == "GB"
    assert product.currency == "USD"
    assert product.main_image.image_url == "https://cdn.test/front.jpg"
    assert product.sizes[0].size == "M"
    assert product.sizes[0].in_stock is False


def test_prepare_product_fills_missing_slugs():
    product = prepare_product(HOSTED_RECORDS[1])
    assert product.price == 310.0
    assert product.slug == "puffer-jacket"
    assert product.brand.slug == "cafe-noir"


def test_prepare_product_rejects_invalid_records():
    assert prepare_product({"id": "x", "name": "Broken", "price": "free"}) is None
    assert prepare_product("not-a-record") is None


def test_json_source_keeps_approved_newest_first(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(HOSTED_RECORDS), encoding="utf-8")
    products = JsonCandidateSource(path).load()
    assert [product.id for product in products] == ["new", "old", "undated"]


def test_json_source_accepts_wrapped_payload(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"products": HOSTED_RECORDS[:2]}), encoding="utf-8")
    assert len(JsonCandidateSource(path).load()) == 2


def test_json_source_missing_or_placeholder_file(tmp_path):
    assert JsonCandidateSource(tmp_path / "missing.json").load() == []
    pointer = tmp_path / "lfs.json"
    pointer.write_text("version https://git-lfs.github.com/spec/v1\noid sha256:abc\n", encoding="utf-8")
    assert JsonCandidateSource(pointer).load() == []
    garbage = tmp_path / "garbage.json"
    garbage.write_text("{not json", encoding="utf-8")
    assert JsonCandidateSource(garbage).load() == []


class FakeElasticsearch:
    def __init__(self, pages):
        self.pages = list(pages)
        self.bodies = []

    def search(self, index, body):
        self.bodies.append(body)
        hits = self.pages.pop(0) if self.pages else []
        return {"hits": {"hits": hits}}


def _hit(product_id, created_at):
    return {
        "_source": {"id": product_id, "name": product_id.title(), "price": 10, "created_at": created_at},
        "sort": [created_at, product_id],
    }


def test_elasticsearch_source_pages_through_approved_products():
    es = FakeElasticsearch(
        [
            [_hit("c", "2026-03-01T00:00:00Z"), _hit("b", "2026-02-01T00:00:00Z")],
            [_hit("a", "2026-01-01T00:00:00Z")],
        ]
    )
    products = ElasticsearchCandidateSource(es, "products", page_size=2).load()
    assert [product.id for product in products] == ["c", "b", "a"]
    first, second = es.bodies
    assert first["query"]["bool"]["filter"] == [{"term": {"status": "approved"}}]
    assert first["sort"][0] == {"created_at": {"order": "desc", "missing": "_last"}}
    assert "search_after" not in first
    assert second["search_after"] == ["2026-02-01T00:00:00Z", "b"]
