import argparse
import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Settings, load_settings
from .env import load_env
from .errors import DrugNotFoundError, RxCheckError, UpstreamError, ValidationError
from .interactions import InteractionEngine
from .logger import get_logger
from .reasoning import ReasoningService, create_reasoning_service
from .resolver import DrugResolver
from .schema import ResolutionSource, sort_by_severity
from .sources import DrugSource, OpenFDASource
from .storage import DrugStore

logger = get_logger()


@dataclass
class Services:
    settings: Settings
    store: DrugStore
    resolver: DrugResolver
    engine: InteractionEngine


def build_services(
    settings: Settings,
    source: Optional[DrugSource] = None,
    reasoner: Optional[ReasoningService] = None,
) -> Services:
    """Wire the store, upstream clients, resolver and engine once for the process."""
    store = DrugStore(settings.db_path)
    source = source or OpenFDASource(
        base_url=settings.openfda_base_url,
        api_key=settings.openfda_api_key,
        timeout=settings.http_timeout,
        max_retries=settings.max_retries,
    )
    reasoner = reasoner or create_reasoning_service(settings)
    return Services(
        settings=settings,
        store=store,
        resolver=DrugResolver(store, source),
        engine=InteractionEngine(store, reasoner, max_workers=settings.analysis_workers),
    )


def _settings(args: argparse.Namespace) -> Settings:
    try:
        settings = load_settings()
    except ValidationError as e:
        raise SystemExit(f"Configuration error: {e}")
    if getattr(args, "db", None):
        settings = replace(settings, db_path=Path(args.db))
    if getattr(args, "workers", None) is not None:
        if args.workers < 1:
            raise SystemExit("--workers must be at least 1")
        settings = replace(settings, analysis_workers=args.workers)
    logger.set_level(settings.log_level)
    return settings


def _split(value: Optional[str]) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()] if value else []


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def cmd_init_db(args: argparse.Namespace) -> None:
    settings = _settings(args)
    DrugStore(settings.db_path)
    print(f"Database ready: {settings.db_path}")


def cmd_resolve(args: argparse.Namespace) -> None:
    services = build_services(_settings(args))
    try:
        drug = services.resolver.resolve(args.name)
    except ValidationError as e:
        raise SystemExit(f"Invalid input: {e}")
    except DrugNotFoundError as e:
        raise SystemExit(str(e))
    except UpstreamError as e:
        raise SystemExit(f"Drug lookup failed, try again later: {e}")
    _print_json({
        "hit_cache": drug.source is ResolutionSource.CACHED,
        "data": drug.to_dict(),
    })


def cmd_analyze(args: argparse.Namespace) -> None:
    services = build_services(_settings(args))
    try:
        if args.names:
            drugs = []
            for name in _split(args.names):
                try:
                    drugs.append(services.resolver.resolve(name))
                except (DrugNotFoundError, UpstreamError) as e:
                    logger.warning("Skipping unresolved drug", name=name, error=str(e))
            reports = services.engine.analyze(drugs, refresh=args.refresh)
        else:
            reports = services.engine.analyze_ids(_split(args.ids), refresh=args.refresh)
    except ValidationError as e:
        raise SystemExit(f"Invalid input: {e}")

    if args.sort_severity:
        reports = sort_by_severity(reports)
    _print_json({"pairs": [r.to_dict() for r in reports]})


def cmd_list(args: argparse.Namespace) -> None:
    settings = _settings(args)
    if not settings.db_path.exists():
        print(f"Database not found: {settings.db_path}")
        return
    drugs = DrugStore(settings.db_path).list_drugs()
    if not drugs:
        print("No drugs in store.")
        return
    print(f"Found {len(drugs)} drugs in {settings.db_path}:\n")
    for drug in drugs:
        print(f"ID: {drug.id}")
        print(f"  Name: {drug.name}")
        print(f"  Category: {drug.category or '-'}")
        print(f"  Last resolved: {drug.last_resolved_at:%Y-%m-%d %H:%M:%S}" if drug.last_resolved_at else "  Last resolved: -")
        print()


def main(argv: Optional[List[str]] = None):
    # Load .env if present (RXCHECK_AI_PROVIDER, API keys, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="rxcheck", description="Drug lookup and pairwise interaction analysis")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--metrics", action="store_true", help="Log cache and upstream metrics on exit")

    subparsers = parser.add_subparsers(dest="command")
    db_help = "Path to SQLite database (default: RXCHECK_DB_PATH or data/rxcheck.db)"

    ini = subparsers.add_parser("init-db", help="Create the database tables")
    ini.add_argument("--db", help=db_help)
    ini.set_defaults(func=cmd_init_db)

    res = subparsers.add_parser("resolve", help="Resolve a drug by name (store first, then openFDA)")
    res.add_argument("--name", required=True, help="Drug name, e.g. \"aspirin\"")
    res.add_argument("--db", help=db_help)
    res.set_defaults(func=cmd_resolve)

    ana = subparsers.add_parser("analyze", help="Analyze interactions between every pair of drugs")
    target = ana.add_mutually_exclusive_group(required=True)
    target.add_argument("--ids", help="Comma-separated ids of resolved drugs (at least two)")
    target.add_argument("--names", help="Comma-separated drug names, resolved first")
    ana.add_argument("--refresh", action="store_true", help="Re-evaluate pairs even when a verdict is stored")
    ana.add_argument("--sort-severity", action="store_true", help="Most severe pairs first")
    ana.add_argument("--workers", type=int, help="Pairs evaluated concurrently (default: RXCHECK_ANALYSIS_WORKERS or 1)")
    ana.add_argument("--db", help=db_help)
    ana.set_defaults(func=cmd_analyze)

    lst = subparsers.add_parser("list", help="List all stored drugs")
    lst.add_argument("--db", help=db_help)
    lst.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        try:
            args.func(args)
        except RxCheckError as e:
            raise SystemExit(str(e))
        finally:
            if args.metrics:
                logger.log_metrics_summary()
        return

    parser.print_help()


if __name__ == "__main__":
    main()
