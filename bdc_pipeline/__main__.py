"""
CLI interface for Schedule of Investments extraction.

Usage:
    python -m bdc_pipeline extract --file data/arcc_10k.htm --filing-id 0001287750-24-000010 --issuer ARCC
    python -m bdc_pipeline extract --file data/arcc_10k.htm --filing-id 0001287750-24-000010 --relay
    python -m bdc_pipeline fetch-extract --url https://www.sec.gov/Archives/... --filing-id 0001287750-24-000010
    python -m bdc_pipeline status --filing-id 0001287750-24-000010
    python -m bdc_pipeline reset --filing-id 0001287750-24-000010
    python -m bdc_pipeline export --filing-id 0001287750-24-000010 --output holdings.csv
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import PipelineConfig, load_config, validate_config
from .parse.engine import ExtractionEngine
from .store import (
    DocumentFetchError,
    DuckDBHoldingsStore,
    FileDocumentSource,
    HoldingsStore,
    InMemoryHoldingsStore,
    SECDocumentSource,
)

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _load(args) -> PipelineConfig:
    overrides = {}
    if getattr(args, "db", None):
        overrides["store"] = {"db_path": args.db}
    if getattr(args, "memory", False):
        overrides.setdefault("store", {})["backend"] = "memory"
    if getattr(args, "no_budget", False):
        overrides["segments"] = {"budget_seconds": None}

    config = load_config(args.config, overrides=overrides)
    for warning in validate_config(config):
        logger.warning(f"Config warning: {warning}")
    return config


def _open_store(config: PipelineConfig) -> HoldingsStore:
    if config.store.backend == "memory":
        return InMemoryHoldingsStore()
    return DuckDBHoldingsStore(config.store.db_path)


def _open_duckdb(config: PipelineConfig) -> DuckDBHoldingsStore:
    if config.store.backend != "duckdb":
        print("This command needs the duckdb store backend")
        sys.exit(1)
    return DuckDBHoldingsStore(config.store.db_path)


def _print_result(result):
    print(json.dumps(result.to_dict(), indent=2))
    if result.status.value == "ERROR":
        sys.exit(2)


def cmd_extract(args):
    """Extract holdings from a local document."""
    config = _load(args)
    document = FileDocumentSource().fetch_document(args.file)
    store = _open_store(config)
    engine = ExtractionEngine(store, config)

    logger.info(f"Extracting {args.filing_id} from {args.file} (config {config.config_hash()})")
    if args.relay:
        result = engine.relay(args.filing_id, document, issuer=args.issuer)
    else:
        result = engine.run(args.filing_id, document, resume_offset=args.resume_offset, issuer=args.issuer)
    _print_result(result)


def cmd_fetch_extract(args):
    """Fetch a document from SEC EDGAR and extract holdings."""
    config = _load(args)
    source = SECDocumentSource(
        user_agent=config.source.user_agent,
        max_retries=config.source.max_retries,
        initial_retry_delay=config.source.initial_retry_delay,
        max_retry_delay=config.source.max_retry_delay,
        request_delay=config.source.request_delay,
        timeout=config.source.timeout,
    )
    store = _open_store(config)
    engine = ExtractionEngine(store, config)

    if args.relay:
        try:
            document = source.fetch_document(args.url)
        except DocumentFetchError as e:
            print(f"Fetch failed: {e}")
            sys.exit(2)
        result = engine.relay(args.filing_id, document, issuer=args.issuer)
    else:
        result = engine.extract_from_url(
            args.filing_id, args.url, source, resume_offset=args.resume_offset, issuer=args.issuer
        )
    _print_result(result)


def cmd_reset(args):
    """Delete holdings and parse state of a filing."""
    config = _load(args)
    with _open_duckdb(config) as store:
        ExtractionEngine(store, config).reset(args.filing_id)
    print(f"Reset {args.filing_id}")


def cmd_status(args):
    """Show parse state of a filing."""
    config = _load(args)
    with _open_duckdb(config) as store:
        status = store.filing_status(args.filing_id)
    print(json.dumps(status, indent=2, default=str))


def cmd_export(args):
    """Export holdings of a filing to CSV."""
    config = _load(args)
    with _open_duckdb(config) as store:
        df = store.holdings_frame(args.filing_id)

    if df.empty:
        print(f"No holdings stored for {args.filing_id}")
        sys.exit(1)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output, index=False)
    print(f"Wrote {len(df)} holdings to {output}")


def _add_common(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--filing-id",
        required=True,
        help="Filing identifier (e.g. accession number)",
    )
    parser.add_argument(
        "--config",
        help="Config override file (merged over configs/base.yaml)",
    )
    parser.add_argument(
        "--db",
        help="DuckDB path (overrides store.db_path)",
    )


def _add_extract_options(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--issuer",
        help="Ticker or filer name used to pick the issuer profile (e.g. ARCC)",
    )
    parser.add_argument(
        "--resume-offset",
        type=int,
        help="Region offset to resume at (default: stored checkpoint)",
    )
    parser.add_argument(
        "--relay",
        action="store_true",
        help="Re-invoke until the filing is complete",
    )
    parser.add_argument(
        "--no-budget",
        action="store_true",
        help="Disable the per-invocation compute budget",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use the in-memory store (dry run)",
    )


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="BDC Schedule of Investments extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Extract command
    extract_parser = subparsers.add_parser("extract", help="Extract holdings from a local document")
    extract_parser.add_argument(
        "--file",
        required=True,
        help="Path to the filing document (HTML)",
    )
    _add_common(extract_parser)
    _add_extract_options(extract_parser)

    # Fetch-extract command
    fetch_parser = subparsers.add_parser("fetch-extract", help="Fetch from SEC EDGAR and extract")
    fetch_parser.add_argument(
        "--url",
        required=True,
        help="EDGAR URL of the primary document",
    )
    _add_common(fetch_parser)
    _add_extract_options(fetch_parser)

    # Reset command
    reset_parser = subparsers.add_parser("reset", help="Delete holdings and parse state of a filing")
    _add_common(reset_parser)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show checkpoint and holding count")
    _add_common(status_parser)

    # Export command
    export_parser = subparsers.add_parser("export", help="Export holdings to CSV")
    _add_common(export_parser)
    export_parser.add_argument(
        "--output",
        required=True,
        help="CSV output path",
    )

    args = parser.parse_args()

    if args.command == "extract":
        cmd_extract(args)
    elif args.command == "fetch-extract":
        cmd_fetch_extract(args)
    elif args.command == "reset":
        cmd_reset(args)
    elif args.command == "status":
        cmd_status(args)
    elif args.command == "export":
        cmd_export(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
