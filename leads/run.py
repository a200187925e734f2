"""
Maker Leads - CLI Runner

Usage:
  python -m leads.run --out ./out
  python -m leads.run --config config/example.yaml --date 2025-03-07 --out ./out --ledger

Dry run (validate only):
  python -m leads.run --config config/example.yaml --out ./out --dry-run

Exit codes:
  0 - success
  1 - config error (file missing, invalid YAML or missing credentials)
  3 - processing error (listing unavailable, export or delivery failures)
"""
from __future__ import annotations

import argparse
import platform
import sys
import time
from datetime import date
from pathlib import Path
from typing import List, Optional

import psutil

from src.config import ScraperConfig, load_config
from src.errors import ConfigurationError, DeliveryError, NavigationError
from src.ops_logger import OpsLogger
from src.schemas import OutputRecord
from src.pipeline.dates import leaderboard_url_for, run_date_for
from src.pipeline.delivery import EmailVerifier, LeadPushClient
from src.pipeline.export import RecordExporter
from src.pipeline.ingest import LeadPipeline


def ensure_out_dir(out_dir: Path) -> None:
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        test_file = out_dir / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except OSError as e:
        print(f"Output error: cannot write to {out_dir}: {e}", file=sys.stderr)
        sys.exit(3)


def apply_cli_overrides(cfg: ScraperConfig, args: argparse.Namespace) -> str:
    """Fold CLI flags into the config; returns the listing URL to scrape."""
    if args.max_products is not None:
        cfg.listing.max_products = args.max_products
    if args.max_makers is not None:
        cfg.resolver.max_makers_per_entity = args.max_makers
    if args.no_headless:
        cfg.browser.headless = False
    if args.debug_dir:
        cfg.navigation.debug_dir = args.debug_dir
    if args.url:
        return args.url
    if args.date:
        day = date.fromisoformat(args.date)
        return leaderboard_url_for(day, cfg.listing.site_base)
    return cfg.listing.target_url


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leads.run", description="Maker leads scraper")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file (optional)")
    parser.add_argument("--out", "-o", required=True, help="Output directory")
    parser.add_argument("--url", default=None, help="Listing URL (overrides config/env)")
    parser.add_argument("--date", default=None, help="Daily leaderboard date YYYY-MM-DD (ignored with --url)")
    parser.add_argument("--max-products", type=int, default=None, help="Maximum products to process")
    parser.add_argument("--max-makers", type=int, default=None, help="Maximum makers per product")
    parser.add_argument("--no-headless", action="store_true", help="Show the browser window")
    parser.add_argument("--debug-dir", default=None, help="Directory for screenshots of flagged/failed pages")
    parser.add_argument("--dry-run", action="store_true", help="Validate config and exit")
    parser.add_argument("--ledger", default=None, nargs="?", const="", help="Append run to ledger CSV (default: <out>/ledger.csv)")
    parser.add_argument("--verify", action="store_true", help="Verify emails remotely before writing the ledger")
    parser.add_argument("--push", action="store_true", help="Push leads with an email to the campaign API")
    parser.add_argument("--ops-log", default=None, help="Path to ops JSONL log file (default: <out>/ops.log)")
    parser.add_argument("--ops-stdout", action="store_true", help="Also mirror ops JSON to stdout")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    out_dir = Path(args.out)

    try:
        cfg = load_config(Path(args.config) if args.config else None)
        listing_url = apply_cli_overrides(cfg, args)
        verifier = EmailVerifier(cfg.delivery) if args.verify else None
        pusher = LeadPushClient(cfg.delivery) if args.push else None
    except (ConfigurationError, ValueError) as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1
    ensure_out_dir(out_dir)

    run_date = run_date_for(listing_url)
    if args.dry_run:
        print("✅ Dry-run validation passed")
        print(f" - Config: {args.config or '(defaults + env)'}")
        print(f" - Listing: {listing_url}")
        print(f" - Run date: {run_date}")
        print(f" - Output dir: {out_dir}")
        print(f" - Max products: {cfg.listing.max_products}, makers per product: {cfg.resolver.max_makers_per_entity}")
        return 0

    ops_log_path = Path(args.ops_log or cfg.ops.log_path or (out_dir / "ops.log"))
    ops_logger = OpsLogger(ops_log_path, also_stdout=bool(args.ops_stdout or cfg.ops.stdout))

    print(f"Listing: {listing_url} | date={run_date} | max products={cfg.listing.max_products}")
    print(f"Python: {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")

    records: List[OutputRecord] = []
    proc_start = time.perf_counter()
    pipeline = LeadPipeline(cfg, ops=ops_logger)
    try:
        for record in pipeline.run(listing_url, extracted_date=run_date):
            records.append(record)
    except NavigationError as e:
        print(f"Listing error: {e}", file=sys.stderr)
        ops_logger.event("navigation_failed", url=listing_url, error=e, mode="listing")
        return 3
    finally:
        pipeline.close()

    if not records:
        print("No products found on the listing.", file=sys.stderr)
        return 3

    try:
        csv_path = RecordExporter(out_dir).to_csv(records)
        json_path = RecordExporter(out_dir).to_json(records)
        print(f"💾 CSV: {csv_path}")
        print(f"💾 JSON: {json_path}")
    except (OSError, ValueError) as e:
        print(f"Export error: {e}", file=sys.stderr)
        return 3

    statuses = {}
    if verifier is not None:
        try:
            statuses = verifier.statuses_for(records)
            print(f"📧 Verified {len(statuses)} distinct emails")
        finally:
            verifier.close()

    if args.ledger is not None:
        try:
            ledger = RecordExporter(out_dir).append_to_ledger(
                records, run_date, statuses, ledger_path=(args.ledger or None))
            print(f"📒 Ledger: {ledger}")
        except OSError as e:
            print(f"Ledger error: {e}", file=sys.stderr)
            return 3

    if pusher is not None:
        try:
            pushed = pusher.push(records)
            print(f"📤 Pushed {pushed} leads")
        except DeliveryError as e:
            print(f"Push error: {e}", file=sys.stderr)
            return 3
        finally:
            pusher.close()

    print("🏁 Done.")
    emit_summary(ops_logger, pipeline, records, proc_start)
    print(f"   Products: {pipeline.stats.entities}")
    print(f"   Records: {len(records)} (with email: {pipeline.stats.with_email})")
    return 0


def emit_summary(ops_logger: OpsLogger, pipeline: LeadPipeline, records: List[OutputRecord],
                 proc_start: float) -> None:
    wall_s = max(0.0, time.perf_counter() - proc_start)
    cpu_pct: Optional[float] = None
    rss_mb: Optional[float] = None
    try:
        p = psutil.Process()
        with p.oneshot():
            rss_mb = round(p.memory_info().rss / (1024 * 1024), 1)
            cpu_pct = round(p.cpu_percent(interval=None), 1)
    except psutil.Error:
        pass
    ops_logger.emit({
        "leads_ops": 1,
        "summary": True,
        "products": pipeline.stats.entities,
        "records": len(records),
        "with_email": pipeline.stats.with_email,
        "durations": {"wall_s": round(wall_s, 2)},
        "resources": {"cpu_pct": cpu_pct, "rss_mb": rss_mb},
        "python": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "host": {"platform": platform.system(), "release": platform.release(), "machine": platform.machine()},
    })


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
