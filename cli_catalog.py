"""Terminal client that drives the in-process catalog filter pipeline."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable, List

from catalog_search.config import settings
from catalog_search.controller import CatalogController
from catalog_search.currency import DisplayCurrency, fetch_exchange_rates, format_price, set_display_currency
from catalog_search.events import get_channel
from catalog_search.models import Product, SortMode
from catalog_search.pipeline import AVAILABLE_SIZES, best_field_score
from catalog_search.source import JsonCandidateSource

MAX_RESULTS = 100
GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"

REPL_HELP = """Commands:
  <text>            search (typo tolerant)
  :brand NAME       toggle a brand filter
  :size SIZE        toggle a size filter
  :min X / :max Y   set a price bound (blank clears it)
  :sort             cycle BY RECENCY -> PRICE LOW-HIGH -> PRICE HIGH-LOW
  :currency CODE    show prices in EUR, USD or GBP
  :reload           re-read the catalog export
  :brands           list brand options
  :clear            clear query and all filters
  exit              quit"""


def load_controller(source: JsonCandidateSource) -> CatalogController:
    # No keystroke bursts to coalesce in a line-based shell.
    return CatalogController(source.load(), debounce_seconds=0, channel=get_channel())


def normalize_size(value: str) -> str:
    """Map ``m`` onto the ``M`` option; sizes outside the option list stay as typed."""
    for option in AVAILABLE_SIZES:
        if option.lower() == value.lower():
            return option
    return value


def pretty_print_results(controller: CatalogController, results: List[Product]) -> None:
    state = controller.state
    query = state.query.strip()
    filters = []
    if state.selected_brands:
        filters.append(f"brands={sorted(state.selected_brands)}")
    if state.selected_sizes:
        filters.append(f"sizes={sorted(state.selected_sizes)}")
    if state.min_price is not None or state.max_price is not None:
        filters.append(f"price={state.min_price}..{state.max_price}")
    rates = fetch_exchange_rates()
    display = controller.display_currency
    color = GREEN if results else RED
    print(
        f"Query: {query or '-'} | {' '.join(filters) or 'no filters'} | "
        f"sort: {controller.sort_mode.label} | {color}{len(results)} items{RESET}"
    )
    for idx, product in enumerate(results[:MAX_RESULTS], start=1):
        score_repr = f"{best_field_score(query, product):.2f}" if query else "-"
        sizes = ",".join(
            entry.size if entry.in_stock else f"({entry.size})" for entry in product.sizes
        )
        print(
            f"  {idx:02d}. score={score_repr} | {product.brand_name or '-'} | "
            f"{product.name} | {format_price(product.price, product.currency, display, rates)} | {sizes}"
        )


def handle_command(
    controller: CatalogController, line: str, source: JsonCandidateSource | None = None
) -> bool:
    """Apply one REPL line. Returns False when the line was not a command."""
    if not line.startswith(":"):
        return False
    # Arguments are free text and may contain apostrophes ("Levi's").
    parts = line[1:].split(None, 1)
    if not parts:
        return True
    command = parts[0].lower()
    value = parts[1].strip() if len(parts) > 1 else ""
    if command == "brand" and value:
        controller.toggle_brand(value)
    elif command == "size" and value:
        controller.toggle_size(normalize_size(value))
    elif command == "min":
        controller.set_price_range(value, controller.state.max_price)
    elif command == "max":
        controller.set_price_range(controller.state.min_price, value)
    elif command == "sort":
        controller.cycle_sort()
    elif command == "currency" and value:
        try:
            set_display_currency(value)
        except ValueError:
            print(f"Unknown currency {value!r}; choose from {', '.join(code.value for code in DisplayCurrency)}")
    elif command == "reload" and source is not None:
        controller.replace_products(source.load())
    elif command == "clear":
        controller.clear_all()
    elif command == "brands":
        print("\n".join(controller.brands) or "(no brands)")
    else:
        print(REPL_HELP)
    return True


def interactive_shell(controller: CatalogController, source: JsonCandidateSource | None = None) -> None:
    print("Interactive catalog search. Type ':help' for commands, 'exit' to quit.")
    controller.subscribe(lambda results: pretty_print_results(controller, results))
    while True:
        try:
            line = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not line:
            continue
        if line.lower() in {"exit", "quit"}:
            return
        if not handle_command(controller, line, source):
            controller.type_query(line)


def batch_mode(controller: CatalogController, file_path: Path) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            controller.type_query(query)
            controller.flush_query()
            pretty_print_results(controller, controller.results)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the catalog search")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--catalog", type=Path, default=Path(settings.catalog_path), help="Catalog JSON export")
    parser.add_argument("--brand", action="append", default=[], help="Keep only this brand (repeatable)")
    parser.add_argument("--size", action="append", default=[], help="Keep only this size (repeatable)")
    parser.add_argument("--min", dest="min_price", help="Inclusive lower price bound")
    parser.add_argument("--max", dest="max_price", help="Inclusive upper price bound")
    parser.add_argument("--sort", type=SortMode, choices=list(SortMode), default=SortMode.NEW)
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    args = parser.parse_args(list(argv) if argv is not None else None)

    source = JsonCandidateSource(args.catalog, settings.catalog_source_url or None)
    controller = load_controller(source)
    for brand in args.brand:
        controller.toggle_brand(brand)
    for size in args.size:
        controller.toggle_size(normalize_size(size))
    controller.set_price_range(args.min_price, args.max_price)
    controller.set_sort(args.sort)

    try:
        if args.batch:
            batch_mode(controller, args.batch)
        elif args.query:
            controller.type_query(args.query)
            controller.flush_query()
            pretty_print_results(controller, controller.results)
        else:
            interactive_shell(controller, source)
    finally:
        controller.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
