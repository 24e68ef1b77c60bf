"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the portfolio tracker.

- Direct and queued market syncs
- Sales rollups and retention pruning
- Portfolio summary
- Marketplace API health
- Dashboard API server

============================================================
USAGE
============================================================
python -m orchestrator sync --sku DD1391-100
python -m orchestrator enqueue --inventory
python -m orchestrator process-queue --batch-size 20
python -m orchestrator rollup --full
python -m orchestrator portfolio --repricing
python -m orchestrator health --json

============================================================
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from data_sources.exceptions import DataSourceError
from data_sources.models import Provider
from data_sources.providers import AliasMarketSource, StockXMarketSource
from data_sources.registry import SourceRegistry
from database import configure_engine, get_db_session, initialize_database
from market_pricing import PricingEngine
from market_pricing import load_config as load_pricing_config
from market_sync import (
    AliasSyncService,
    StockXSyncService,
    SyncError,
    SyncQueue,
    SyncQueueWorker,
)
from market_sync import load_config as load_sync_config
from market_sync.queue import PROVIDERS
from portfolio import PortfolioService
from portfolio import load_config as load_portfolio_config
from sales_analytics.config import load_config as load_sales_config
from sales_analytics.service import SalesRollupService
from storage.repositories.catalog import CatalogRepository, InventoryRepository
from storage.repositories.exceptions import RepositoryException


logger = logging.getLogger("orchestrator")

COMMANDS = ("sync", "enqueue", "process-queue", "rollup", "prune", "portfolio", "health", "serve")
PROVIDER_CHOICES = ("all",) + PROVIDERS


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sneaker-portfolio",
        description="Sneaker and collectibles portfolio tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  sync           - Sync market data for one SKU now, or drain the queue
  enqueue        - Queue market syncs for SKUs
  process-queue  - Process one or more batches of queued syncs
  rollup         - Roll recent sales into daily and monthly aggregates
  prune          - Delete data past the retention windows
  portfolio      - Print portfolio value, ROI and repricing
  health         - Probe the StockX and Alias APIs
  serve          - Run the dashboard API

Examples:
  %(prog)s sync --sku DD1391-100 --provider stockx
  %(prog)s enqueue --inventory
  %(prog)s process-queue --batch-size 20 --max-batches 5
  %(prog)s rollup --sku DD1391-100 --full
        """,
    )

    # -------------------------------------------------------------------------
    # Logging Options
    # -------------------------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    # -------------------------------------------------------------------------
    # System Options
    # -------------------------------------------------------------------------
    system_group = parser.add_argument_group("System Options")

    system_group.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: DATABASE_URL or sqlite:///./portfolio.db)",
    )

    system_group.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config with pricing/portfolio/sync/sales sections",
    )

    system_group.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # -------------------------------------------------------------------------
    # sync
    # -------------------------------------------------------------------------
    sync = subparsers.add_parser("sync", help="Sync market data now")
    target = sync.add_mutually_exclusive_group()
    target.add_argument("--sku", type=str, help="Style code to sync")
    target.add_argument(
        "--queued",
        action="store_true",
        help="Process queued jobs until none are due",
    )
    sync.add_argument(
        "--provider",
        choices=PROVIDER_CHOICES,
        default="all",
        help="Provider to sync (default: all)",
    )
    sync.add_argument("--product-id", type=str, help="StockX product id (skips search)")
    sync.add_argument("--catalog-id", type=str, help="Alias catalog id")
    sync.add_argument("--force", action="store_true", help="Ignore the freshness window")
    sync.add_argument("--max-batches", type=int, default=50, help="Batch limit for --queued")

    # -------------------------------------------------------------------------
    # enqueue
    # -------------------------------------------------------------------------
    enqueue = subparsers.add_parser("enqueue", help="Queue market syncs")
    enqueue.add_argument("skus", nargs="*", help="Style codes to queue")
    enqueue.add_argument(
        "--inventory",
        action="store_true",
        help="Queue every SKU held in active inventory",
    )
    enqueue.add_argument(
        "--provider",
        choices=PROVIDER_CHOICES,
        default="all",
        help="Provider to queue (default: all)",
    )

    # -------------------------------------------------------------------------
    # process-queue
    # -------------------------------------------------------------------------
    process = subparsers.add_parser("process-queue", help="Process queued syncs")
    process.add_argument("--batch-size", type=int, default=None, help="Jobs per batch")
    process.add_argument("--delay-ms", type=int, default=None, help="Pause between jobs")
    process.add_argument("--max-batches", type=int, default=1, help="Batches to run (default: 1)")
    process.add_argument(
        "--provider",
        choices=PROVIDER_CHOICES,
        default="all",
        help="Only claim jobs for this provider",
    )
    process.add_argument(
        "--retry-failed",
        action="store_true",
        help="Reset failed jobs to pending first",
    )

    # -------------------------------------------------------------------------
    # rollup / prune
    # -------------------------------------------------------------------------
    rollup = subparsers.add_parser("rollup", help="Aggregate sales events")
    rollup.add_argument("--sku", type=str, help="Limit to one style code")
    rollup.add_argument("--full", action="store_true", help="Re-aggregate all stored events")

    subparsers.add_parser("prune", help="Apply retention windows")

    # -------------------------------------------------------------------------
    # portfolio
    # -------------------------------------------------------------------------
    portfolio = subparsers.add_parser("portfolio", help="Portfolio summary")
    portfolio.add_argument("--owner", type=str, help="Owner id filter")
    portfolio.add_argument("--repricing", action="store_true", help="Include repricing suggestions")
    portfolio.add_argument("--json", action="store_true", help="Print JSON")

    # -------------------------------------------------------------------------
    # health
    # -------------------------------------------------------------------------
    health = subparsers.add_parser("health", help="Probe marketplace APIs")
    health.add_argument("--provider", choices=PROVIDER_CHOICES, default="all")
    health.add_argument("--json", action="store_true", help="Print JSON")

    # -------------------------------------------------------------------------
    # serve
    # -------------------------------------------------------------------------
    serve = subparsers.add_parser("serve", help="Run the dashboard API")
    serve.add_argument("--host", type=str, default=os.getenv("DASHBOARD_HOST", "0.0.0.0"))
    serve.add_argument("--port", type=int, default=int(os.getenv("DASHBOARD_PORT", "8000")))
    serve.add_argument("--reload", action="store_true")

    return parser


# ============================================================
# ARGUMENT VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate parsed arguments.

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    if args.command is None:
        errors.append(f"A command is required: {', '.join(COMMANDS)}")
        return errors

    if args.config and not Path(args.config).exists():
        errors.append(f"Config file not found: {args.config}")

    if args.command == "sync":
        if not args.sku and not args.queued:
            errors.append("sync requires --sku or --queued")
        if args.catalog_id and args.provider == Provider.STOCKX.value:
            errors.append("--catalog-id only applies to the alias provider")
        if args.product_id and args.provider == Provider.ALIAS.value:
            errors.append("--product-id only applies to the stockx provider")
        if args.max_batches < 1:
            errors.append("--max-batches must be at least 1")

    if args.command == "enqueue" and not args.skus and not args.inventory:
        errors.append("enqueue requires SKUs or --inventory")

    if args.command == "process-queue":
        if args.batch_size is not None and args.batch_size < 1:
            errors.append("--batch-size must be at least 1")
        if args.delay_ms is not None and args.delay_ms < 0:
            errors.append("--delay-ms cannot be negative")
        if args.max_batches < 1:
            errors.append("--max-batches must be at least 1")

    if args.command == "serve" and not 0 < args.port < 65536:
        errors.append(f"Invalid port: {args.port}")

    return errors


def _providers(choice: str) -> tuple:
    return PROVIDERS if choice == "all" else (choice,)


def _provider_filter(choice: str) -> Optional[str]:
    return None if choice == "all" else choice


# ============================================================
# COMMANDS
# ============================================================

async def run_sync(args: argparse.Namespace) -> int:
    """Sync one SKU directly, or drain due queue jobs."""
    config = load_sync_config(args.config)

    if args.queued:
        return await run_process_queue(args)

    exit_code = 0
    with get_db_session() as session:
        results = []
        if Provider.STOCKX.value in _providers(args.provider):
            async with StockXSyncService(session, config=config) as service:
                results.append(await service.sync_product(
                    sku=args.sku, product_id=args.product_id, force=args.force
                ))
            session.commit()

        if Provider.ALIAS.value in _providers(args.provider):
            catalog_id = args.catalog_id
            if catalog_id is None:
                catalog = CatalogRepository(session).get_by_sku(args.sku)
                catalog_id = catalog.alias_catalog_id if catalog else None
            if catalog_id:
                async with AliasSyncService(session, config=config) as service:
                    results.append(await service.sync_catalog(
                        catalog_id, sku=args.sku, force=args.force
                    ))
                session.commit()
            else:
                logger.warning(f"No Alias catalog id for {args.sku}, skipping alias")
                if args.provider == Provider.ALIAS.value:
                    exit_code = 1

        for result in results:
            counts = result.counts
            state = "cached" if result.cached else ("ok" if result.success else "failed")
            print(
                f"{result.provider:<7} {result.sku or '-':<14} {state:<7} "
                f"variants={counts.variants_synced} inserted={counts.rows_inserted} "
                f"updated={counts.rows_updated} errors={len(result.errors)}"
            )
            if not result.success:
                exit_code = 1
                if result.first_error:
                    print(f"  {result.first_error}", file=sys.stderr)

    return exit_code


async def run_process_queue(args: argparse.Namespace) -> int:
    """Run worker batches; stops early once a batch claims nothing."""
    config = load_sync_config(args.config)
    totals = {"processed": 0, "successful": 0, "failed": 0}

    with get_db_session() as session:
        async with SyncQueueWorker(session, config=config) as worker:
            if getattr(args, "retry_failed", False):
                reset = worker.queue.retry_failed()
                session.commit()
                logger.info(f"Reset {reset} failed jobs")

            for _ in range(args.max_batches):
                result = await worker.process_batch(
                    batch_size=getattr(args, "batch_size", None),
                    delay_ms=getattr(args, "delay_ms", None),
                    provider=_provider_filter(args.provider),
                )
                totals["processed"] += result.processed
                totals["successful"] += result.successful
                totals["failed"] += result.failed
                for error in result.errors:
                    print(f"  {error['provider']:<7} {error['sku']:<14} {error['error']}", file=sys.stderr)
                if result.processed == 0:
                    break

        stats = SyncQueue(session, config).stats()

    print(
        f"Processed {totals['processed']} jobs: {totals['successful']} ok, {totals['failed']} failed "
        f"(pending={stats.pending} running={stats.running} done={stats.done} failed={stats.failed})"
    )
    return 0


def run_enqueue(args: argparse.Namespace) -> int:
    config = load_sync_config(args.config)
    with get_db_session() as session:
        skus = list(args.skus)
        if args.inventory:
            skus.extend(InventoryRepository(session).active_skus())

        queue = SyncQueue(session, config)
        created = 0
        for sku in dict.fromkeys(skus):
            for job in queue.enqueue_sku(sku, _providers(args.provider)):
                created += 1
                print(f"{job.provider:<7} {job.sku:<14} {job.status}")
        session.commit()

    logger.info(f"Queued {created} jobs")
    return 0


def run_rollup(args: argparse.Namespace) -> int:
    config = load_sales_config(args.config)
    with get_db_session() as session:
        result = SalesRollupService(session, config).run(sku=args.sku, full=args.full)
        session.commit()

    print(
        f"Read {result.events_read} events ({result.duplicates_removed} duplicates), "
        f"wrote {result.daily_buckets} daily and {result.monthly_buckets} monthly buckets"
    )
    return 0


def run_prune(args: argparse.Namespace) -> int:
    config = load_sales_config(args.config)
    with get_db_session() as session:
        result = SalesRollupService(session, config).prune()
        session.commit()

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def run_portfolio(args: argparse.Namespace) -> int:
    pricing = PricingEngine(load_pricing_config(args.config))
    config = load_portfolio_config(args.config)

    with get_db_session() as session:
        service = PortfolioService(session, pricing, config)
        overview = service.overview(args.owner)
        suggestions = service.repricing(args.owner) if args.repricing else []

    if args.json:
        payload = overview.to_dict()
        if args.repricing:
            payload["repricing"] = [s.to_dict() for s in suggestions]
        print(json.dumps(payload, indent=2, default=str))
        return 0

    print("=" * 60)
    print(f"  Invested:        {overview.invested} {overview.currency}")
    print(f"  Estimated value: {overview.estimated_value} {overview.currency}")
    print(f"  Unrealised P/L:  {overview.unrealised_pl} {overview.currency}")
    print(f"  ROI:             {overview.roi}%")
    print(f"  Missing prices:  {overview.missing_prices_count}")
    print("=" * 60)
    for suggestion in suggestions:
        print(
            f"  {suggestion.sku:<14} {suggestion.size_uk or '-':<6} "
            f"{suggestion.current_price} -> {suggestion.suggested_price} "
            f"({suggestion.urgency.value}) {suggestion.reason}"
        )
    return 0


async def run_health(args: argparse.Namespace) -> int:
    """Probe each provider; exit 1 when any is unavailable."""
    sources = {Provider.STOCKX.value: StockXMarketSource, Provider.ALIAS.value: AliasMarketSource}
    async with SourceRegistry() as registry:
        for name in _providers(args.provider):
            registry.register(sources[name]())
        results = await registry.health_check_all()

    if args.json:
        print(json.dumps({name: health.to_dict() for name, health in results.items()}, indent=2, default=str))
    else:
        for name, health in results.items():
            latency = f"{health.latency_ms:.0f}ms" if health.latency_ms is not None else "-"
            print(f"  {name:<7} {health.status.value:<12} {latency:>7}  {health.last_error or ''}".rstrip())

    return 0 if all(health.is_usable() for health in results.values()) else 1


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    # The reloader re-imports the app in a fresh process
    if args.database_url:
        os.environ["DATABASE_URL"] = args.database_url

    logger.info(f"Starting Dashboard API on {args.host}:{args.port}")
    uvicorn.run(
        "dashboard.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )
    return 0


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace) -> int:
    """Dispatch async commands."""
    if args.command == "sync":
        return await run_sync(args)
    if args.command == "health":
        return await run_health(args)
    return await run_process_queue(args)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()
    parser = create_parser()
    args = parser.parse_args(argv)

    # Validate arguments
    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.database_url:
        configure_engine(args.database_url)
    initialize_database()

    if args.command == "serve":
        return run_serve(args)

    if args.command in ("sync", "process-queue"):
        print_banner(args)

    try:
        if args.command in ("sync", "process-queue", "health"):
            return asyncio.run(async_main(args))
        handlers = {
            "enqueue": run_enqueue,
            "rollup": run_rollup,
            "prune": run_prune,
            "portfolio": run_portfolio,
        }
        return handlers[args.command](args)
    except (SyncError, DataSourceError, RepositoryException) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


def print_banner(args: argparse.Namespace) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  SNEAKER PORTFOLIO - MARKET SYNC")
    print("=" * 60)
    print(f"  Command:    {args.command}")
    print(f"  Provider:   {args.provider}")
    print(f"  Log Level:  {args.log_level}")
    if args.command == "sync" and args.sku:
        print(f"  SKU:        {args.sku}")
        print(f"  Force:      {args.force}")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
