"""Command-line entrypoint for Portfolio Pulse."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from .ai import VertesiaClient
from .config import DEFAULT_CONFIG_PATH, PulseConfig, load_config
from .contracts import Digest
from .data import DigestHistory, PortfolioStore, StateStore
from .digest import DigestPipeline, GenerationResult
from .errors import ValidationError
from .notifications import DigestScheduler
from .parsing import AggregationMode, cards_by_category, parse_digest
from .parsing.extractor import DEFAULT_RESOLVER

logger = logging.getLogger(__name__)


def render_digest(digest: Digest) -> str:
    """Plain-text rendering: title, time label, then cards bucketed by category."""
    lines = [digest.title]
    if digest.time_label:
        lines.append(digest.time_label)
    for category, cards in cards_by_category(digest).items():
        if not cards:
            continue
        lines.append("")
        lines.append(f"== {category.value} ({len(cards)}) ==")
        for card in cards:
            tag = f" [{card.ticker_tag}]" if card.ticker_tag else ""
            exposure = f" {card.exposure:.1f}%" if card.exposure is not None else ""
            lines.append(f"* {card.title}{tag}{exposure}")
            lines.extend(f"    - {bullet}" for bullet in card.bullets)
            lines.extend(f"    > {source.title}: {source.url}" for source in card.sources)
    return "\n".join(lines)


class App:
    """Wires storage, remote client, pipeline and scheduler from one config."""

    def __init__(self, config: PulseConfig):
        self.config = config
        storage = config.storage
        self.state = StateStore(storage.database_url)
        self.portfolio = PortfolioStore(self.state, key=storage.portfolio_key)
        self.history = DigestHistory(self.state, key=storage.digests_key, max_history=storage.max_history)
        self._client: Optional[VertesiaClient] = None
        self._pipeline: Optional[DigestPipeline] = None

    @property
    def client(self) -> VertesiaClient:
        if self._client is None:
            self._client = VertesiaClient(self.config.vertesia, self.config.news)
        return self._client

    @property
    def pipeline(self) -> DigestPipeline:
        if self._pipeline is None:
            self._pipeline = DigestPipeline(
                self.portfolio, self.client, self.client, self.history, self.config.generation
            )
        return self._pipeline

    def scheduler(self) -> DigestScheduler:
        return DigestScheduler(
            self.state, self.config.schedule, self.pipeline.generate, storage=self.config.storage
        )


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _report(result: GenerationResult, as_json: bool) -> int:
    if result.ok:
        print(json.dumps(result.digest.to_dict(), indent=2) if as_json else render_digest(result.digest))
        return 0
    print(f"Digest {result.status.value}: {result.error or 'another generation is in flight'}")
    if result.digest is not None:
        print(f"Last good digest: {result.digest.title} ({result.digest.time_label})")
    return 1


def cmd_save_portfolio(app: App, args: argparse.Namespace) -> int:
    try:
        portfolio = app.portfolio.parse_and_save(_read_input(args.file))
    except ValidationError as e:
        print(str(e))
        return 1
    print(f"Saved {len(portfolio.holdings)} holdings (${portfolio.total_value:,.2f})")
    return cmd_portfolio(app, args)


def cmd_portfolio(app: App, args: argparse.Namespace) -> int:
    summary = app.portfolio.summary(top_n=args.top)
    if summary is None:
        print("No portfolio saved. Use: portfolio-pulse save-portfolio FILE")
        return 1
    print(f"Total value: ${summary['total_value']:,.2f} "
          f"({summary['holding_count']} holdings, updated {summary['last_updated']})")
    df = app.portfolio.to_frame().head(args.top)
    print(df.to_string(index=False, formatters={
        'dollar_value': lambda v: f"${v:,.2f}",
        'exposure': lambda v: f"{v:.2f}%",
    }))
    return 0


def cmd_generate(app: App, args: argparse.Namespace) -> int:
    return _report(app.pipeline.generate(), args.json)


def cmd_refresh(app: App, args: argparse.Namespace) -> int:
    return _report(app.pipeline.refresh(), args.json)


def cmd_show(app: App, args: argparse.Namespace) -> int:
    digest = app.history.latest()
    if digest is None:
        print("No digest generated yet. Run: portfolio-pulse generate")
        return 1
    print(json.dumps(digest.to_dict(), indent=2) if args.json else render_digest(digest))
    return 0


def cmd_schedule(app: App, args: argparse.Namespace) -> int:
    scheduler = app.scheduler()
    if args.action == "enable":
        scheduler.enable()
    elif args.action == "disable":
        scheduler.disable()
    elif args.action == "run":
        if not scheduler.enabled:
            print("Schedule is disabled. Run: portfolio-pulse schedule enable")
            return 1
        scheduler.start()
        try:
            while scheduler.running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Stopping scheduler")
        finally:
            scheduler.stop()
        return 0

    snapshot = scheduler.snapshot()
    print(f"Schedule: {scheduler.status.value}")
    if snapshot.enabled:
        print(f"Next run: {scheduler.next_run_time():%a %Y-%m-%d %H:%M} (in {scheduler.countdown()})")
    if snapshot.last_run_key:
        print(f"Last run: {snapshot.last_run_key}")
    return 0


def cmd_parse(app: App, args: argparse.Namespace) -> int:
    portfolio = app.portfolio.load()
    exposures = {h.ticker: h.exposure for h in portfolio.holdings} if portfolio else {}
    resolver = DEFAULT_RESOLVER.with_symbols(portfolio.tickers) if portfolio else DEFAULT_RESOLVER
    digest = parse_digest(
        _read_input(args.file),
        mode=AggregationMode(args.mode),
        resolver=resolver,
        exposure_lookup=exposures.get,
    )
    print(json.dumps(digest.to_dict(), indent=2) if args.json else render_digest(digest))
    return 0 if digest.cards else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="portfolio-pulse", description="Portfolio Pulse digest CLI")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    save = sub.add_parser("save-portfolio", help="Replace the portfolio from TICKER QUANTITY VALUE lines")
    save.add_argument("file", help="Holdings file ('-' for stdin)")
    save.add_argument("--top", type=int, default=5, help="Holdings to show afterwards (default: 5)")
    save.set_defaults(handler=cmd_save_portfolio)

    show_portfolio = sub.add_parser("portfolio", help="Show the saved portfolio")
    show_portfolio.add_argument("--top", type=int, default=5, help="Holdings to show (default: 5)")
    show_portfolio.set_defaults(handler=cmd_portfolio)

    generate = sub.add_parser("generate", help="Trigger a new digest and wait for it")
    generate.add_argument("--json", action="store_true", help="Print the digest as JSON")
    generate.set_defaults(handler=cmd_generate)

    refresh = sub.add_parser("refresh", help="Load the newest existing digest without triggering")
    refresh.add_argument("--json", action="store_true", help="Print the digest as JSON")
    refresh.set_defaults(handler=cmd_refresh)

    show = sub.add_parser("show", help="Show the latest stored digest")
    show.add_argument("--json", action="store_true", help="Print the digest as JSON")
    show.set_defaults(handler=cmd_show)

    schedule = sub.add_parser("schedule", help="Manage the digest schedule")
    schedule.add_argument("action", choices=["enable", "disable", "status", "run"])
    schedule.set_defaults(handler=cmd_schedule)

    parse = sub.add_parser("parse", help="Parse a local digest text file")
    parse.add_argument("file", help="Digest text file ('-' for stdin)")
    parse.add_argument("--mode", choices=[m.value for m in AggregationMode], default=AggregationMode.FLAT.value)
    parse.add_argument("--json", action="store_true", help="Print the digest as JSON")
    parse.set_defaults(handler=cmd_parse)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not getattr(args, "handler", None):
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        return 2

    return args.handler(App(config), args)


if __name__ == "__main__":
    raise SystemExit(main())
