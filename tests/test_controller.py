"""Tests for the debounced query controller."""

import threading

from catalog_search.controller import CatalogController, Debouncer
from catalog_search.events import CURRENCY_CHANGED, EventChannel
from catalog_search.models import FilterState, SortMode
from conftest import ids


class FakeTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fn()


class FakeTimers:
    def __init__(self):
        self.created = []

    def __call__(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.created.append(timer)
        return timer

    @property
    def live(self):
        return [timer for timer in self.created if not timer.cancelled]


def test_debouncer_keeps_only_the_last_value():
    timers = FakeTimers()
    delivered = []
    debouncer = Debouncer(0.15, delivered.append, timers)
    for value in ("h", "ho", "hoodie"):
        debouncer.call(value)
    assert len(timers.live) == 1
    assert timers.live[0].delay == 0.15
    assert delivered == []
    timers.live[0].fire()
    assert delivered == ["hoodie"]
    assert not debouncer.pending


def test_stale_timer_does_not_deliver():
    """A timer that fires after being replaced must be ignored."""
    timers = FakeTimers()
    delivered = []
    debouncer = Debouncer(0.15, delivered.append, timers)
    debouncer.call("ho")
    stale = timers.created[0]
    debouncer.call("hoodie")
    stale.fire()
    assert delivered == []
    timers.created[-1].fire()
    assert delivered == ["hoodie"]


def test_debouncer_flush_and_cancel():
    timers = FakeTimers()
    delivered = []
    debouncer = Debouncer(0.15, delivered.append, timers)
    assert debouncer.flush() is False
    debouncer.call("tee")
    assert debouncer.flush() is True
    assert delivered == ["tee"]
    debouncer.call("cap")
    debouncer.cancel()
    timers.created[-1].fire()
    assert delivered == ["tee"]


def test_debouncer_with_real_timer():
    fired = threading.Event()
    delivered = []

    def callback(value):
        delivered.append(value)
        fired.set()

    debouncer = Debouncer(0.2, callback)
    debouncer.call("a")
    debouncer.call("b")
    assert fired.wait(2)
    assert delivered == ["b"]


def test_zero_delay_applies_immediately(catalog):
    controller = CatalogController(catalog, debounce_seconds=0)
    controller.type_query("hoodie")
    assert controller.state.query == "hoodie"


def test_typed_query_applies_after_quiet_period(catalog):
    timers = FakeTimers()
    controller = CatalogController(catalog, debounce_seconds=0.15, timer_factory=timers)
    controller.type_query("hod")
    controller.type_query("hodie")
    assert controller.raw_query == "hodie"
    assert controller.state.query == ""
    assert len(controller.results) == len(catalog)
    timers.live[0].fire()
    assert controller.state.query == "hodie"
    assert ids(controller.results) == ["p1", "p4"]



def test_flush_query_applies_pending_input_now(catalog):
    timers = FakeTimers()
    controller = CatalogController(catalog, debounce_seconds=0.15, timer_factory=timers)
    assert controller.flush_query() is False
    controller.type_query("tee")
    assert controller.flush_query() is True
    assert controller.state.query == "tee"
    assert timers.live == []
    assert ids(controller.results) == ["p3"]

def test_toggles_and_price_range(catalog):
    controller = CatalogController(catalog, debounce_seconds=0)
    controller.toggle_brand("Corteiz")
    controller.toggle_size("M")
    controller.set_price_range("100", "abc")
    assert controller.state == FilterState(selected_brands={"Corteiz"}, selected_sizes={"M"}, min_price=100)
    assert ids(controller.results) == ["p1", "p2"]
    controller.toggle_brand("Corteiz")
    controller.set_price_range(None, None)
    assert controller.state.selected_brands == frozenset()
    assert ids(controller.results) == ["p1", "p2", "p3"]


def test_clear_all_restores_initial_load(catalog):
    timers = FakeTimers()
    controller = CatalogController(catalog, debounce_seconds=0.15, timer_factory=timers)
    initial = controller.results
    controller.toggle_brand("Supreme")
    controller.toggle_size("XL")
    controller.set_price_range("1", "2")
    controller.type_query("zzz")
    controller.clear_all()
    assert controller.raw_query == ""
    assert controller.state == FilterState.cleared()
    assert timers.live == []
    assert controller.results == initial == catalog


def test_sort_cycles_like_the_sort_button(catalog):
    controller = CatalogController(catalog, debounce_seconds=0)
    assert controller.sort_mode == SortMode.NEW
    assert controller.cycle_sort() == SortMode.PRICE_LOW
    assert ids(controller.results)[0] == "p5"
    assert controller.cycle_sort() == SortMode.PRICE_HIGH
    assert controller.cycle_sort() == SortMode.NEW
    assert ids(controller.results) == ids(catalog)


def test_listeners_receive_fresh_results(catalog):
    controller = CatalogController(catalog, debounce_seconds=0)
    seen = []
    unsubscribe = controller.subscribe(lambda results: seen.append(ids(results)))
    controller.toggle_brand("Trapstar")
    unsubscribe()
    controller.toggle_brand("Trapstar")
    assert seen == [["p4"]]


def test_failing_listener_does_not_block_others(catalog):
    controller = CatalogController(catalog, debounce_seconds=0)
    seen = []

    def broken(results):
        raise RuntimeError("render failed")

    controller.subscribe(broken)
    controller.subscribe(lambda results: seen.append(len(results)))
    controller.toggle_size("XL")
    assert seen == [1]


def test_currency_change_rerenders_without_touching_filters(catalog):
    channel = EventChannel()
    controller = CatalogController(catalog, debounce_seconds=0, channel=channel)
    controller.toggle_brand("Supreme")
    seen = []
    controller.subscribe(lambda results: seen.append(ids(results)))
    channel.publish(CURRENCY_CHANGED, "USD")
    assert seen == [["p3"]]
    assert controller.display_currency == "USD"
    controller.close()
    channel.publish(CURRENCY_CHANGED, "GBP")
    assert seen == [["p3"]]



def test_replace_products_keeps_filters(catalog):
    controller = CatalogController(catalog, debounce_seconds=0)
    controller.toggle_brand("Corteiz")
    seen = []
    controller.subscribe(lambda results: seen.append(ids(results)))
    controller.replace_products(catalog[1:])
    assert seen == [["p2"]]
    assert "Corteiz" in controller.state.selected_brands

def test_remove_product(catalog):
    controller = CatalogController(catalog, debounce_seconds=0)
    assert controller.remove_product("p2") is True
    assert controller.remove_product("missing") is False
    assert "p2" not in ids(controller.results)
    assert controller.brands == ["Corteiz", "Supreme", "Trapstar"]
