"""Terminal client that reuses the in-process search engine."""
from __future__ import annotations

import argparse
from pathlib import Path
from time import perf_counter
from typing import Iterable, List, Sequence

from cura.bootstrap import build_search_engine
from cura.config import settings
from cura.models import SearchFilters, SearchResult, SortBy
from cura.search_engine import SearchEngine

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def perform_query(
    engine: SearchEngine,
    query: str,
    filters: SearchFilters,
    cities: Sequence[str],
    locale: str,
) -> tuple[List[SearchResult], float]:
    started = perf_counter()
    results = engine.search(query, filters, cities, locale)
    return results, (perf_counter() - started) * 1000


def pretty_print_response(query: str, results: List[SearchResult], eta: float) -> None:
    color = GREEN if eta < 200 else RED
    eta_label = f"{color}{eta:.1f} ms{RESET}"
    print(f"Query: {query} | results: {len(results)} | ETA: {eta_label}")
    for idx, item in enumerate(results, start=1):
        price = item.metadata.get("price")
        price_repr = f"{price:.2f}" if isinstance(price, (int, float)) else "-"
        print(
            f"  {idx:02d}. score={item.relevance_score:.2f} | {item.title} | "
            f"price={price_repr} | {item.metadata.get('category', item.type)}"
        )


def interactive_shell(engine: SearchEngine, filters: SearchFilters, cities: Sequence[str], locale: str) -> None:
    print("Interactive product search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        results, eta = perform_query(engine, query, filters, cities, locale)
        pretty_print_response(query, results, eta)


def batch_mode(engine: SearchEngine, file_path: Path, filters: SearchFilters, cities: Sequence[str], locale: str) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            results, eta = perform_query(engine, query, filters, cities, locale)
            pretty_print_response(query, results, eta)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the product search engine")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--city", action="append", default=[], help="Restrict results to a city id (repeatable)")
    parser.add_argument("--category", action="append", default=[], help="Restrict results to a category (repeatable)")
    parser.add_argument("--sort", choices=[item.value for item in SortBy], default=SortBy.RELEVANCE.value)
    parser.add_argument("--in-stock", action="store_true", help="Only show products in stock")
    parser.add_argument("--locale", choices=["en", "ar"], default="en")
    args = parser.parse_args(list(argv) if argv is not None else None)

    engine = build_search_engine(settings)
    filters = SearchFilters(category=args.category, in_stock_only=args.in_stock, sort_by=SortBy(args.sort))

    if args.batch:
        batch_mode(engine, args.batch, filters, args.city, args.locale)
        return 0
    if args.query:
        results, eta = perform_query(engine, args.query, filters, args.city, args.locale)
        pretty_print_response(args.query, results, eta)
        return 0
    interactive_shell(engine, filters, args.city, args.locale)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
