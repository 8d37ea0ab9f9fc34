# src/main.py - v1
"""CLI entry point - discover, extract, crawl, run, status commands.

Usage:
    crawlintel discover <file> --base-url <url>
    crawlintel extract <file> --url <url> [--content-type text/html]
    crawlintel crawl <url> [<url> ...]
    crawlintel run [--duration SECONDS] [--targets FILE] [--report day|week|month]
    crawlintel status
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from crawlintel.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="crawlintel",
        description=f"crawlintel v{__version__} - crawl intelligence and orchestration engine",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- discover ---
    p_discover = subparsers.add_parser(
        "discover", help="Rank the links found in a saved HTML page",
    )
    p_discover.add_argument("file", type=Path, help="Path to HTML file")
    p_discover.add_argument("--base-url", required=True, help="URL the page was fetched from")
    p_discover.add_argument(
        "--depth", type=int, default=0, help="Crawl depth of the page (default: 0)",
    )
    p_discover.set_defaults(func=_cmd_discover)

    # --- extract ---
    p_extract = subparsers.add_parser(
        "extract", help="Extract entities from a saved document",
    )
    p_extract.add_argument("file", type=Path, help="Path to document")
    p_extract.add_argument("--url", required=True, help="Source URL of the document")
    p_extract.add_argument(
        "--content-type", default=None,
        help="MIME type (guessed from the file extension if omitted)",
    )
    p_extract.set_defaults(func=_cmd_extract)

    # --- crawl ---
    p_crawl = subparsers.add_parser(
        "crawl", help="Fetch, extract and deduplicate specific URLs",
    )
    p_crawl.add_argument("urls", nargs="+", help="URLs to crawl")
    p_crawl.set_defaults(func=_cmd_crawl)

    # --- run ---
    p_run = subparsers.add_parser(
        "run", help="Run the scheduled orchestrator",
    )
    p_run.add_argument(
        "--duration", type=float, default=None,
        help="Seconds to run before stopping (default: until interrupted)",
    )
    p_run.add_argument(
        "--report", choices=["day", "week", "month"], default="day",
        help="Report timeframe printed on shutdown (default: day)",
    )
    p_run.add_argument(
        "--targets", type=Path, default=None,
        help="JSON file of crawl targets (default: built-in targets)",
    )
    p_run.add_argument(
        "--export", type=Path, default=None,
        help="Write the monitoring ledger to this file on shutdown (.json or .csv)",
    )
    p_run.add_argument(
        "--no-seed", action="store_true",
        help="Skip the immediate URL discovery run at startup",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show the default task registry and configuration",
    )
    p_status.set_defaults(func=_cmd_status)

    return parser


async def _cmd_discover(args: argparse.Namespace) -> int:
    """Rank links in a local HTML file."""
    from crawlintel.discovery.discovery import UrlDiscovery

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    html = file_path.read_text(encoding="utf-8", errors="replace")
    result = UrlDiscovery().discover_urls(html, args.base_url, depth=args.depth)

    print(f"\nDiscovered {len(result.discovered_urls)} URLs from {args.base_url}:")
    for url in result.discovered_urls:
        print(f"  {result.scores[url]:6.2f}  [{result.categories.get(url, '-')}]  {url}")
    if result.patterns:
        print("\nPatterns:")
        for pattern in result.patterns:
            print(f"  {pattern.pattern} ({pattern.type}, {len(pattern.examples)} examples)")
    return 0


async def _cmd_extract(args: argparse.Namespace) -> int:
    """Extract entities from a local file and print them as JSON."""
    from crawlintel.extraction.extractor import ContentExtractor

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    content_type = args.content_type or _detect_content_type(file_path)
    if content_type is None:
        logger.error("Cannot infer content type for %s; pass --content-type", file_path.suffix)
        return 1

    content = file_path.read_text(encoding="utf-8", errors="replace")
    result = ContentExtractor().extract_data(content, content_type, args.url)
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


async def _cmd_crawl(args: argparse.Namespace) -> int:
    """Crawl the given URLs once through the full pipeline."""
    from crawlintel.api.facade import build_engine
    from crawlintel.monitoring.exporter import session_summary
    from crawlintel.storage.models import RecordFilter

    async with build_engine(register_default_tasks=False) as engine:
        stats = await engine.pipeline.run_urls(args.urls)
        records = len(await engine.storage.query(RecordFilter(status=None)))
        session = engine.monitor.get_session(stats.session_id)

    if session is not None:
        print(session_summary(session))
    print(f"\nCrawl complete ({stats.session_id}):")
    print(f"  Processed:   {stats.urls_processed}")
    print(f"  Failed:      {stats.urls_failed}")
    print(f"  Skipped:     {stats.urls_skipped}")
    print(f"  Entities:    {stats.entities_extracted}")
    print(f"  Records:     {records}")
    print(f"  Duplicates:  {stats.duplicates_skipped}")
    print(f"  For review:  {stats.records_for_review}")
    print(f"  Links:       {stats.links_queued} queued")
    return 0 if stats.urls_failed == 0 else 2


async def _cmd_run(args: argparse.Namespace) -> int:
    """Run the orchestrator until the duration elapses or interrupted."""
    from crawlintel.api.facade import build_engine
    from crawlintel.config.settings import Settings
    from crawlintel.monitoring.exporter import write_export
    from crawlintel.orchestrator.models import TaskType

    settings = Settings()
    if args.targets is not None:
        settings = settings.model_copy(update={"crawl_targets_file": args.targets})

    async with build_engine(settings) as engine:
        await engine.start()
        if not args.no_seed:
            for task in engine.orchestrator.tasks:
                if task.type == TaskType.URL_DISCOVERY:
                    await engine.orchestrator.execute_task(task.id)

        try:
            if args.duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(args.duration)
        finally:
            report = engine.orchestrator.generate_report(args.report)
            if args.export is not None:
                write_export(engine.monitor, args.export)
                logger.info("Monitoring data written to %s", args.export)

    _print_report(report)
    return 0


async def _cmd_status(args: argparse.Namespace) -> int:
    """Print the default task registry and the effective configuration."""
    from crawlintel.config.settings import Settings
    from crawlintel.orchestrator.tasks import default_tasks
    from crawlintel.scheduler.targets import load_targets

    settings = Settings()
    tasks = default_tasks()
    names = {t.id: t.name for t in tasks}
    targets = load_targets(settings.crawl_targets_file)

    print(f"\nScheduled tasks ({len(tasks)}):")
    for task in tasks:
        deps = ", ".join(names[d] for d in task.dependencies) or "-"
        print(f"  {task.schedule:<14} p{task.priority:<3} {task.name}  (after: {deps})")
    print(f"\nCrawl targets ({len(targets)}):")
    for target in targets:
        print(f"  {target.domain}  priority={target.priority}  frequency={target.crawl_frequency}")
    print("\nConfiguration:")
    print(f"  Max concurrent tasks:  {settings.orchestrator_max_concurrency}")
    print(f"  Crawl concurrency:     {settings.crawl_max_concurrency}")
    print(f"  Allowed domains:       {', '.join(settings.allowed_domains_list)}")
    print(f"  Dedup min confidence:  {settings.dedup_min_confidence}")
    return 0


def _detect_content_type(path: Path) -> str | None:
    """Guess a MIME type from the file extension."""
    ext_map = {
        ".html": "text/html",
        ".htm": "text/html",
        ".json": "application/json",
        ".csv": "text/csv",
        ".txt": "text/plain",
        ".pdf": "application/pdf",
    }
    return ext_map.get(path.suffix.lower())


def _print_report(report: object) -> None:
    """Print a human-readable summary of an OrchestrationReport."""
    print(f"\nOrchestration report ({report.timeframe}):")
    print(f"  Tasks:       {report.total_tasks} "
          f"({report.successful_tasks} ok, {report.failed_tasks} failing, "
          f"{report.skipped_tasks} never run)")
    print(f"  Executions:  {report.total_executions} {report.executions_by_status}")
    print(f"  p95:         {report.p95_duration_ms:.0f}ms")
    changes = report.data_changes
    print(f"  Data:        +{changes.items_added} added, {changes.items_updated} updated, "
          f"{changes.items_deduped} deduplicated")
    print(f"  Health:      {report.system_health.overall_status}")
    for rec in report.recommendations:
        print(f"  - {rec}")


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from crawlintel.config.settings import Settings
    from crawlintel.logging.logger import setup_logging

    settings = Settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
