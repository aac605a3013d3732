"""
Command-line interface for the Congress sync engine.

Usage:
    python -m congress_sync.cli.sync_cli sync --strategy incremental
    python -m congress_sync.cli.sync_cli sync --strategy full --resources bills --async
    python -m congress_sync.cli.sync_cli stats --hours 24
    python -m congress_sync.cli.sync_cli queue --limit 20
    python -m congress_sync.cli.sync_cli errors --critical
    python -m congress_sync.cli.sync_cli rate-limit --probe
    python -m congress_sync.cli.sync_cli watch 118 hr 1 --priority 8
    python -m congress_sync.cli.sync_cli enrich --sponsor-only --limit 100
"""

import asyncio
import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

from ..config import settings
from ..db.repositories import BillRepository
from ..models.sync_models import ResourceType, SyncOptions, SyncStrategy
from ..services.container import SyncServices, build_services

logger = logging.getLogger(__name__)


def _print_json(data: Any, output_file: Optional[str] = None) -> None:
    text = json.dumps(data, indent=2, default=str, ensure_ascii=False)
    if output_file:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        print(f"\n💾 Results saved to: {output_path.absolute()}")
    else:
        print(text)


async def run_sync(services: SyncServices, args: argparse.Namespace) -> int:
    options = SyncOptions(
        strategy=SyncStrategy(args.strategy),
        resources=[ResourceType(r) for r in args.resources],
        run_async=args.run_async,
    )

    print("\n" + "=" * 60)
    print("Congress Sync")
    print("=" * 60)
    print(f"Strategy: {options.strategy.value}")
    print(f"Resources: {', '.join(r.value for r in options.resources)}")
    print(f"Mode: {'ENQUEUE' if options.run_async else 'INLINE'}")
    print("=" * 60 + "\n")

    result = await services.orchestrator.sync(options)

    if options.run_async:
        for resource, job_id in result.job_ids.items():
            print(f"  {resource}: job {job_id} (run {result.sync_run_ids[resource]})")
    else:
        for resource, resource_result in result.results.items():
            print(
                f"  {resource}: {resource_result.records_fetched} fetched, "
                f"{resource_result.records_created} created, "
                f"{resource_result.records_updated} updated, "
                f"{resource_result.records_unchanged} unchanged, "
                f"{len(resource_result.errors)} errors"
            )
            for error in resource_result.errors[:5]:
                print(f"      ⚠️  [{error['record_id'] or '-'}] {error['error']}")

    print(f"\nTotal duration: {result.total_duration:.2f}s")

    if args.output:
        _print_json(result.model_dump(mode="json"), args.output)

    return 1 if result.total_errors and not result.total_fetched else 0


async def show_stats(services: SyncServices, args: argparse.Namespace) -> int:
    stats = await services.orchestrator.get_sync_stats(hours_back=args.hours)
    changes = await services.change_detection.get_change_stats()
    _print_json({"sync": stats.model_dump(), "changes": changes})
    return 0


async def show_queue(services: SyncServices, args: argparse.Namespace) -> int:
    if args.clear:
        deleted = await services.ledger.clear_all()
        print(f"Cleared {deleted} jobs")
        return 0

    _print_json({
        "stats": await services.ledger.get_queue_stats(),
        "recent": await services.ledger.get_recent_jobs(limit=args.limit),
    })
    return 0


async def show_errors(services: SyncServices, args: argparse.Namespace) -> int:
    _print_json({
        "stats": await services.error_handler.get_error_stats(hours_back=args.hours),
        "should_alert": await services.error_handler.should_alert(),
        "recent": await services.error_handler.get_recent_errors(
            limit=args.limit,
            only_critical=args.critical,
        ),
    })
    return 0


async def show_rate_limit(services: SyncServices, args: argparse.Namespace) -> int:
    if args.probe:
        # One cheap request to pick up the upstream quota headers
        await services.client.get("/bill", params={"limit": 1})

    stats = services.monitor.get_stats()
    quota = services.monitor.get_last_quota()
    decision = services.monitor.should_throttle()
    _print_json({
        "stats": asdict(stats),
        "quota": asdict(quota) if quota else None,
        "throttle": asdict(decision),
    })
    return 0


async def set_watch_priority(services: SyncServices, args: argparse.Namespace) -> int:
    async with services.database.session() as session:
        found = await BillRepository(session).set_priority(
            args.congress, args.bill_type, args.bill_number, args.priority
        )

    if not found:
        print(f"❌ Bill {args.congress}-{args.bill_type}-{args.bill_number} is not stored yet")
        return 1
    print(f"✅ Priority of {args.congress}-{args.bill_type}-{args.bill_number} set to {args.priority}")
    return 0


async def enrich_bills(services: SyncServices, args: argparse.Namespace) -> int:
    result = await services.bill_sync.enrich_bills(
        missing_sponsor_only=args.sponsor_only,
        watchlisted_only=args.watchlisted,
        limit=args.limit,
    )
    print(
        f"Enriched {result.records_fetched} bills: {result.records_updated} updated, "
        f"{result.records_unchanged} unchanged, {len(result.errors)} errors"
    )
    for error in result.errors[:5]:
        print(f"    ⚠️  [{error['record_id'] or '-'}] {error['error']}")
    return 0


COMMANDS = {
    "sync": run_sync,
    "stats": show_stats,
    "queue": show_queue,
    "errors": show_errors,
    "rate-limit": show_rate_limit,
    "watch": set_watch_priority,
    "enrich": enrich_bills,
}


async def run(args: argparse.Namespace) -> int:
    services = await build_services()
    try:
        if args.create_tables:
            await services.database.create_tables()
        return await COMMANDS[args.command](services, args)
    except Exception as e:
        print(f"\n❌ {args.command} failed: {e}\n")
        logger.error(f"{args.command} failed", exc_info=True)
        return 1
    finally:
        await services.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Congress.gov sync engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)"
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running (development only)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run a sync strategy")
    sync_parser.add_argument(
        "--strategy",
        choices=[s.value for s in SyncStrategy],
        default=SyncStrategy.INCREMENTAL.value,
    )
    sync_parser.add_argument(
        "--resources",
        nargs="+",
        choices=[r.value for r in ResourceType],
        default=[r.value for r in ResourceType],
    )
    sync_parser.add_argument(
        "--async",
        dest="run_async",
        action="store_true",
        help="Only enqueue ledger jobs"
    )
    sync_parser.add_argument("--output", type=str, help="Save results to JSON file")

    stats_parser = subparsers.add_parser("stats", help="Sync run and change statistics")
    stats_parser.add_argument("--hours", type=int, default=24)

    queue_parser = subparsers.add_parser("queue", help="Job ledger status")
    queue_parser.add_argument("--limit", type=int, default=20)
    queue_parser.add_argument("--clear", action="store_true", help="Delete every job")

    errors_parser = subparsers.add_parser("errors", help="Durable error log")
    errors_parser.add_argument("--limit", type=int, default=20)
    errors_parser.add_argument("--hours", type=int, default=24)
    errors_parser.add_argument("--critical", action="store_true", help="Only critical/high severity")

    rate_parser = subparsers.add_parser("rate-limit", help="Rate limit monitor status")
    rate_parser.add_argument("--probe", action="store_true", help="Make one request to read quota headers")

    watch_parser = subparsers.add_parser("watch", help="Set the watch-list priority of a stored bill")
    watch_parser.add_argument("congress", type=int)
    watch_parser.add_argument("bill_type", type=str)
    watch_parser.add_argument("bill_number", type=int)
    watch_parser.add_argument("--priority", type=int, default=settings.sync.priority_threshold)

    enrich_parser = subparsers.add_parser("enrich", help="Detail-fetch bills missing sponsor or policy data")
    enrich_parser.add_argument("--limit", type=int, default=settings.sync.enrich_limit)
    enrich_parser.add_argument("--sponsor-only", action="store_true", help="Only bills without a sponsor")
    enrich_parser.add_argument("--watchlisted", action="store_true", help="Only watch-listed bills")

    return parser


def main(argv: Optional[list] = None) -> None:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.app.log_level.upper(), logging.INFO),
        format=settings.app.log_format,
    )

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
