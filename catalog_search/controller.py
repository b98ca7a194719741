"""Long-lived catalog filter state driven by user input.

The controller is the single owner of :class:`FilterState`. Every change goes
through it and produces a fresh pipeline pass; nothing from a previous pass is
reused. Raw query input is debounced with a single-slot timer so a burst of
keystrokes results in one applied query (the last one).
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, List, Optional, Protocol

from .config import settings
from .events import CURRENCY_CHANGED, EventChannel
from .models import FilterState, Product, SortMode, parse_price_bound
from .pipeline import AVAILABLE_SIZES, apply, distinct_brands

logger = logging.getLogger(__name__)

Listener = Callable[[List[Product]], None]


class TimerLike(Protocol):
    def cancel(self) -> None: ...


# Builds and starts a timer that calls ``fn`` once after ``delay`` seconds.
TimerFactory = Callable[[float, Callable[[], None]], TimerLike]


def _thread_timer(delay: float, fn: Callable[[], None]) -> TimerLike:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    timer.start()
    return timer


class Debouncer:
    """Cancel-and-reschedule timer holding at most one pending value."""

    def __init__(
        self,
        delay_seconds: float,
        callback: Callable[[Any], None],
        timer_factory: TimerFactory = _thread_timer,
    ) -> None:
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[TimerLike] = None
        self._pending: Any = None
        self._has_pending = False
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._has_pending

    def call(self, value: Any) -> None:
        if self.delay_seconds <= 0:
            self.cancel()
            self._callback(value)
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._pending = value
            self._has_pending = True
            self._timer = self._timer_factory(self.delay_seconds, lambda: self._fire(generation))

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer that lost the race against a newer call must not deliver.
            if generation != self._generation or not self._has_pending:
                return
            value = self._take()
        self._callback(value)

    def _take(self) -> Any:
        value = self._pending
        self._pending = None
        self._has_pending = False
        self._timer = None
        return value

    def flush(self) -> bool:
        """Deliver the pending value right away. Returns False if none was pending."""
        with self._lock:
            if not self._has_pending:
                return False
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            value = self._take()
        self._callback(value)
        return True

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._take()


class CatalogController:
    def __init__(
        self,
        products: Iterable[Product],
        sort_mode: SortMode = SortMode.NEW,
        debounce_seconds: Optional[float] = None,
        timer_factory: TimerFactory = _thread_timer,
        channel: Optional[EventChannel] = None,
    ) -> None:
        self._products: List[Product] = list(products)
        self._sort_mode = SortMode(sort_mode)
        self._state = FilterState()
        self._raw_query = ""
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        if debounce_seconds is None:
            debounce_seconds = settings.search_debounce_ms / 1000
        self._debouncer = Debouncer(debounce_seconds, self._apply_query, timer_factory)
        self._display_currency = str(settings.display_currency).upper()
        self._unsubscribe_currency: Optional[Callable[[], None]] = None
        if channel is not None:
            self._unsubscribe_currency = channel.subscribe(CURRENCY_CHANGED, self._on_currency_changed)

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def raw_query(self) -> str:
        return self._raw_query

    @property
    def sort_mode(self) -> SortMode:
        return self._sort_mode

    @property
    def display_currency(self) -> str:
        return self._display_currency

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    @property
    def results(self) -> List[Product]:
        with self._lock:
            return apply(self._products, self._state, self._sort_mode)

    @property
    def brands(self) -> List[str]:
        return distinct_brands(self._products)

    @property
    def sizes(self) -> List[str]:
        return list(AVAILABLE_SIZES)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._debouncer.cancel()
        if self._unsubscribe_currency is not None:
            self._unsubscribe_currency()
            self._unsubscribe_currency = None

    def type_query(self, raw: str) -> None:
        self._raw_query = raw or ""
        self._debouncer.call(self._raw_query)

    def flush_query(self) -> bool:
        return self._debouncer.flush()

    def _apply_query(self, value: str) -> None:
        logger.debug("applying debounced query %r", value)
        self._update(query=value)

    def toggle_brand(self, brand: str) -> None:
        self._update(selected_brands=self._state.selected_brands ^ {brand})

    def toggle_size(self, size: str) -> None:
        self._update(selected_sizes=self._state.selected_sizes ^ {size})

    def set_price_range(self, min_price: object = None, max_price: object = None) -> None:
        self._update(min_price=parse_price_bound(min_price), max_price=parse_price_bound(max_price))

    def set_sort(self, sort_mode: SortMode | str) -> None:
        with self._lock:
            self._sort_mode = SortMode(sort_mode)
        self._notify()

    def cycle_sort(self) -> SortMode:
        self.set_sort(self._sort_mode.next())
        return self._sort_mode

    def clear_all(self) -> None:
        """Reset raw input, applied query and every filter in one step."""
        self._debouncer.cancel()
        with self._lock:
            self._raw_query = ""
            self._state = FilterState.cleared()
        self._notify()

    def replace_products(self, products: Iterable[Product]) -> None:
        with self._lock:
            self._products = list(products)
        self._notify()

    def remove_product(self, product_id: str) -> bool:
        """Drop a product from the collection, e.g. after it was unfavorited."""
        with self._lock:
            remaining = [product for product in self._products if product.id != product_id]
            removed = len(remaining) != len(self._products)
            self._products = remaining
        if removed:
            self._notify()
        return removed

    def _on_currency_changed(self, code: Any) -> None:
        # Prices are re-rendered in the new currency; filters are untouched.
        self._display_currency = str(getattr(code, "value", code)).upper()
        self._notify()

    def _update(self, **changes: Any) -> None:
        with self._lock:
            self._state = self._state.model_copy(update=changes)
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        results = self.results
        for listener in list(self._listeners):
            try:
                listener(results)
            except Exception:
                logger.exception("Catalog listener %r failed", listener)
