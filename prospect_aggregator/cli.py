"""Command line interface for running aggregated prospect searches."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from .config import ConfigurationError, load_configuration
from .factory import build_aggregator
from .io import write_response

LOGGER = logging.getLogger(__name__)


def _parse_filter(value: str) -> tuple[str, str]:
    key, separator, filter_value = value.partition("=")
    if not separator or not key.strip():
        raise argparse.ArgumentTypeError(f"Filters must look like key=value, got '{value}'")
    return key.strip(), filter_value.strip()


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description="Search several prospect sources and merge the results")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Run one aggregated search")
    search.add_argument("query", help="Free-text search query")
    search.add_argument(
        "--config",
        required=True,
        help="Path to the aggregator configuration file (YAML or JSON)",
    )
    search.add_argument(
        "--source",
        dest="sources",
        action="append",
        default=[],
        help="Source to query (repeatable, defaults to the configured default sources)",
    )
    search.add_argument(
        "--filter",
        dest="filters",
        action="append",
        type=_parse_filter,
        default=[],
        help="Search filter as key=value (repeatable), e.g. --filter city=Paris",
    )
    search.add_argument(
        "--mode",
        choices=["sequential", "concurrent"],
        default=None,
        help="Whether to query sources sequentially or concurrently (overrides the configuration)",
    )
    search.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Maximum number of workers to use in concurrent mode",
    )
    search.add_argument(
        "--output",
        default=None,
        help="Write the response to this CSV, Excel or JSON file instead of stdout",
    )
    search.add_argument(
        "--enrich",
        action="store_true",
        help="Attach emails found for each result's domain using the email finder source",
    )

    sources = subparsers.add_parser("sources", help="List configured sources and their availability")
    sources.add_argument(
        "--config",
        required=True,
        help="Path to the aggregator configuration file (YAML or JSON)",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _run_search(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    concurrent = None if args.mode is None else args.mode == "concurrent"
    aggregator = build_aggregator(config, concurrent=concurrent, max_workers=args.max_workers)
    filters: Dict[str, Any] = dict(args.filters)
    sources: List[str] = list(args.sources)

    response = aggregator.search(args.query, filters, sources)
    if response.error:
        LOGGER.error("Search failed: %s", response.error)
        return 1
    if args.enrich:
        response.aggregated_results = aggregator.enrich_results(response.aggregated_results)

    if args.output:
        output_path = write_response(args.output, response)
        LOGGER.info("Aggregated %s result(s) written to %s", response.total_found, Path(output_path).resolve())
    else:
        json.dump(response.as_dict(), sys.stdout, ensure_ascii=False, indent=2, default=str)
        sys.stdout.write("\n")
    return 0


def _run_sources(config: Dict[str, Any]) -> int:
    aggregator = build_aggregator(config)
    json.dump(aggregator.available_sources(), sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        config = load_configuration(args.config)
        if args.command == "sources":
            return _run_sources(config)
        return _run_search(args, config)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
