"""Pydantic models for catalog records, filter state and response payloads."""
from __future__ import annotations

import math
import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Leading numeric literal of a free-text bound ("25", "25.50", "25eur").
_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_price_bound(raw: object) -> Optional[float]:
    """Turn a user-entered price bound into a number, or ``None`` for no bound.

    Mirrors lenient browser parsing: the leading number of the string is used
    and anything unparseable (blank, ``"abc"``, NaN) imposes no constraint.
    """

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        match = _LEADING_NUMBER_RE.match(str(raw))
        if not match:
            return None
        value = float(match.group(1))
    if math.isnan(value):
        return None
    return value


class Brand(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    slug: Optional[str] = None
    country: Optional[str] = None
    logo_url: Optional[str] = None


class ProductImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    image_url: str
    is_main: bool = False
    display_order: int = 0


class ProductSize(BaseModel):
    model_config = ConfigDict(frozen=True)

    size: str
    in_stock: bool = True


class Product(BaseModel):
    """A catalog candidate as handed over by the candidate source.

    Products are frozen: a filter pass only ever reads them.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    slug: Optional[str] = None
    price: float = 0.0
    currency: str = "EUR"
    category: Optional[str] = None
    created_at: Optional[datetime] = None
    status: str = "approved"
    brand: Optional[Brand] = None
    images: tuple[ProductImage, ...] = ()
    sizes: tuple[ProductSize, ...] = ()

    @property
    def brand_name(self) -> str:
        if self.brand is None:
            return ""
        return self.brand.name or ""

    @property
    def main_image(self) -> Optional[ProductImage]:
        if not self.images:
            return None
        for image in self.images:
            if image.is_main:
                return image
        return sorted(self.images, key=lambda image: image.display_order)[0]


class SortMode(str, Enum):
    NEW = "NEW"
    PRICE_LOW = "PRICE_LOW"
    PRICE_HIGH = "PRICE_HIGH"

    def next(self) -> "SortMode":
        """Cycle NEW -> PRICE_LOW -> PRICE_HIGH -> NEW like the sort button."""
        order = list(SortMode)
        return order[(order.index(self) + 1) % len(order)]

    @property
    def label(self) -> str:
        return _SORT_LABELS[self]


_SORT_LABELS = {
    SortMode.NEW: "BY RECENCY",
    SortMode.PRICE_LOW: "PRICE LOW-HIGH",
    SortMode.PRICE_HIGH: "PRICE HIGH-LOW",
}


class FilterState(BaseModel):
    """Client-local filter selection; never persisted."""

    model_config = ConfigDict(frozen=True)

    query: str = ""
    selected_brands: frozenset[str] = frozenset()
    selected_sizes: frozenset[str] = frozenset()
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    @field_validator("min_price", "max_price", mode="before")
    @classmethod
    def lenient_bound(cls, value: object) -> Optional[float]:
        return parse_price_bound(value)

    @field_validator("selected_brands", "selected_sizes", mode="before")
    @classmethod
    def coerce_selection(cls, value: object) -> object:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset({value})
        return value

    @classmethod
    def cleared(cls) -> "FilterState":
        return cls()

    @property
    def is_active(self) -> bool:
        return bool(
            self.query.strip()
            or self.selected_brands
            or self.selected_sizes
            or self.min_price is not None
            or self.max_price is not None
        )


class ProductResult(BaseModel):
    id: str
    name: str
    slug: str | None = None
    brand: str | None = None
    country: str | None = None
    price: float
    currency: str
    display_price: str
    image_url: str | None = None
    sizes: list[ProductSize] = Field(default_factory=list)
    score: float | None = None
    is_new: bool = False


class CatalogResponse(BaseModel):
    query: str
    sort: SortMode
    total: int
    brands: list[str]
    sizes: list[str]
    results: list[ProductResult]
    took_ms: float


class ScoreResponse(BaseModel):
    query: str
    text: str
    score: float
