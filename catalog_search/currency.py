"""Display-currency conversion and price formatting.

Prices are stored in the seller's currency. For display they are converted to
EUR and then into the shopper's display currency. Filtering and sorting
always use the raw stored price; conversion only affects rendered strings.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional
from urllib.error import URLError
from urllib.request import urlopen

from .cache import CacheBackend, get_cache
from .config import settings
from .events import CURRENCY_CHANGED, EventChannel, get_channel

logger = logging.getLogger(__name__)

RATES_CACHE_KEY = "exchange_rates"
# Kept longer than the fresh entry; served when a refresh fails.
LAST_GOOD_RATES_KEY = "exchange_rates:last_good"
LAST_GOOD_TTL_SECONDS = 30 * 24 * 3600
FETCH_TIMEOUT_SECONDS = 5


class DisplayCurrency(str, Enum):
    EUR = "EUR"
    USD = "USD"
    GBP = "GBP"


CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}


@dataclass(frozen=True)
class ExchangeRates:
    usd_to_eur: float
    gbp_to_eur: float

    @property
    def eur_to_usd(self) -> float:
        return 1 / self.usd_to_eur

    @property
    def eur_to_gbp(self) -> float:
        return 1 / self.gbp_to_eur


FALLBACK_RATES = ExchangeRates(usd_to_eur=0.92, gbp_to_eur=1.17)


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get((currency or "").upper(), currency)


def _rates_from_payload(payload: dict) -> ExchangeRates:
    rates = payload["rates"]
    return ExchangeRates(usd_to_eur=1 / float(rates["USD"]), gbp_to_eur=1 / float(rates["GBP"]))


def _cached_rates(backend: CacheBackend, key: str) -> Optional[ExchangeRates]:
    cached = backend.get(key)
    if not cached:
        return None
    try:
        return ExchangeRates(**cached)
    except TypeError:
        logger.warning("Ignoring malformed cached exchange rates under %s: %r", key, cached)
        return None


def fetch_exchange_rates(cache: Optional[CacheBackend] = None, url: Optional[str] = None) -> ExchangeRates:
    """Return EUR-based rates, from cache when fresh, else from the rates API.

    Any network or payload problem falls back to the last rates fetched successfully
    or to :data:`FALLBACK_RATES`; this function does not raise.
    """

    backend = cache if cache is not None else get_cache()
    cached = _cached_rates(backend, RATES_CACHE_KEY)
    if cached is not None:
        return cached

    source = url or settings.exchange_rates_url
    try:
        with urlopen(source, timeout=FETCH_TIMEOUT_SECONDS) as response:
            payload = json.load(response)
        rates = _rates_from_payload(payload)
    except (OSError, URLError, ValueError, KeyError, TypeError, ZeroDivisionError) as exc:
        logger.warning("Failed to fetch exchange rates from %s, using fallback: %s", source, exc)
        return _cached_rates(backend, LAST_GOOD_RATES_KEY) or FALLBACK_RATES

    backend.set(RATES_CACHE_KEY, asdict(rates), settings.exchange_rates_ttl_seconds)
    backend.set(LAST_GOOD_RATES_KEY, asdict(rates), LAST_GOOD_TTL_SECONDS)
    logger.info("Exchange rates updated: usd_to_eur=%.4f gbp_to_eur=%.4f", rates.usd_to_eur, rates.gbp_to_eur)
    return rates


def convert_to_eur(price: float, currency: str, rates: ExchangeRates = FALLBACK_RATES) -> float:
    code = (currency or "EUR").upper()
    if code == "USD":
        return price * rates.usd_to_eur
    if code == "GBP":
        return price * rates.gbp_to_eur
    return price


def convert_from_eur(price_in_eur: float, display: DisplayCurrency | str, rates: ExchangeRates = FALLBACK_RATES) -> float:
    code = DisplayCurrency(display)
    if code == DisplayCurrency.USD:
        return price_in_eur * rates.eur_to_usd
    if code == DisplayCurrency.GBP:
        return price_in_eur * rates.eur_to_gbp
    return price_in_eur


def format_price(
    price: float,
    from_currency: str = "EUR",
    display: DisplayCurrency | str = DisplayCurrency.EUR,
    rates: ExchangeRates = FALLBACK_RATES,
) -> str:
    code = DisplayCurrency(display)
    amount = convert_from_eur(convert_to_eur(price, from_currency, rates), code, rates)
    return f"{currency_symbol(code.value)}{amount:.2f}"


def set_display_currency(display: DisplayCurrency | str, channel: Optional[EventChannel] = None) -> DisplayCurrency:
    """Validate the new display currency and broadcast the change."""
    code = DisplayCurrency(str(display).upper())
    (channel or get_channel()).publish(CURRENCY_CHANGED, code)
    return code
