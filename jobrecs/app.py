import argparse
import json
from pathlib import Path

from . import __version__
from .config import load_settings
from .database import SqlDocumentStore, get_session, init_database, upsert_listings, Listing
from .display import format_candidate
from .http_store import HttpDocumentStore
from .lifecycle import RecommendationController, Status
from .logger import get_logger
from .store import StoreUnavailable


def _read_json(path: Path):
    if not path.exists():
        raise SystemExit(f"Input file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON in {path}: {e}")


def _open_store(args: argparse.Namespace, settings):
    url = args.url or settings.store_url
    if url:
        return HttpDocumentStore(url, collection=settings.collection, timeout=settings.request_timeout)
    db_path = Path(args.db) if args.db else settings.db_path
    if not db_path.exists():
        raise SystemExit(f"Database not found: {db_path}. Run 'jobrecs load' first.")
    return SqlDocumentStore(db_path)


def cmd_load(args: argparse.Namespace) -> None:
    settings = load_settings()
    db_path = Path(args.db) if args.db else settings.db_path
    records = _read_json(Path(args.input))
    if isinstance(records, dict):
        records = records.get("listings", [])
    if not isinstance(records, list):
        raise SystemExit("Input must be a JSON array of listings (or {\"listings\": [...]})")

    init_database(db_path)
    session = get_session(db_path)
    try:
        count = upsert_listings(session, records)
    except ValueError as e:
        session.rollback()
        raise SystemExit(f"Invalid listing: {e}")
    finally:
        session.close()
    print(f"Loaded {count} listings into {db_path}")


def cmd_recommend(args: argparse.Namespace) -> None:
    settings = load_settings()
    store = _open_store(args, settings)
    k = args.k if args.k is not None else settings.top_k
    if k < 0:
        raise SystemExit("--k must be >= 0")

    if args.seed:
        record = _read_json(Path(args.seed))
        if not isinstance(record, dict):
            raise SystemExit("Seed file must contain a JSON object")
    else:
        try:
            record = store.get(args.id)
        except StoreUnavailable as e:
            raise SystemExit(str(e))
        if record is None:
            raise SystemExit(f"Listing not found: {args.id}")

    with RecommendationController(store, k=k, settings=settings) as controller:
        future = controller.update(record)
        if future is not None:
            future.result()
        state = controller.state

    if state.status == Status.ERROR:
        raise SystemExit(f"Recommendations unavailable: {state.error}")
    if state.failed_queries:
        print(f"[warn] partial results, failed queries: {', '.join(state.failed_queries)}")
    if state.status == Status.EMPTY:
        print("No similar listings found.")
    else:
        print(f"Recommended listings ({len(state.items)}):\n")
        for i, candidate in enumerate(state.items, start=1):
            print(format_candidate(candidate, rank=i))
            print()
    if args.metrics:
        get_logger().log_metrics_summary()


def cmd_list(args: argparse.Namespace) -> None:
    settings = load_settings()
    db_path = Path(args.db) if args.db else settings.db_path
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        return
    session = get_session(db_path)
    try:
        listings = session.query(Listing).order_by(Listing.updated_at.desc()).all()
    finally:
        session.close()
    if not listings:
        print("No listings in store.")
        return
    print(f"Found {len(listings)} listings in {db_path}:\n")
    for listing in listings:
        print(f"ID: {listing.id}")
        print(f"  Title: {listing.title}")
        print(f"  Job type: {listing.job_type}")
        print(f"  Industry: {listing.industry}")
        print(f"  Languages: {', '.join(listing.languages or [])}")
        print(f"  Tools: {', '.join(listing.tools or [])}")
        print(f"  Updated: {listing.updated_at}")
        print()


def main(argv=None):
    parser = argparse.ArgumentParser(prog="jobrecs", description="Similar job listing recommendations")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    ld = subparsers.add_parser("load", help="Load a JSON array of listings into the SQLite store")
    ld.add_argument("--input", required=True, help="Path to listings JSON")
    ld.add_argument("--db", help="Path to SQLite database (default: JOBRECS_DB_PATH or data/listings.db)")
    ld.set_defaults(func=cmd_load)

    rec = subparsers.add_parser("recommend", help="Recommend listings similar to a seed listing")
    seed_src = rec.add_mutually_exclusive_group(required=True)
    seed_src.add_argument("--id", help="Id of a stored listing to use as the seed")
    seed_src.add_argument("--seed", help="Path to a seed listing JSON object")
    rec.add_argument("--db", help="Path to SQLite database")
    rec.add_argument("--url", help="Base URL of an HTTP document store (or set JOBRECS_STORE_URL)")
    rec.add_argument("--k", type=int, help="Number of results (default: JOBRECS_TOP_K or 6)")
    rec.add_argument("--metrics", action="store_true", help="Log query metrics after the run")
    rec.set_defaults(func=cmd_recommend)

    lst = subparsers.add_parser("list", help="List stored listings")
    lst.add_argument("--db", help="Path to SQLite database")
    lst.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
