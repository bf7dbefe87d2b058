"""Command-line entry point for the venue pipeline.

Usage:
    python -m scripts.places_cli convert saved.json -o places.ndjson --domain coffee
    python -m scripts.places_cli normalize scraped.json -o places.ndjson
    python -m scripts.places_cli search --query "specialty coffee Prague" --domain coffee -o places.ndjson
    python -m scripts.places_cli enrich places.ndjson -o enriched.ndjson
    python -m scripts.places_cli validate places.ndjson [--strict]
    python -m scripts.places_cli dedupe places.ndjson -o unique.ndjson
    python -m scripts.places_cli import places.ndjson --dataset production [--replace|--missing-only] [--dry-run]

Run from the backend/ directory (or with backend/ on PYTHONPATH). Settings are
read from the environment and an optional backend/.env file.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

from dotenv import load_dotenv

from domain.models import RawRecord, raw_record_from_dict
from services.deduplicator import deduplicate_against_store, deduplicate_within_batch
from services.normalizer import DataNormalizer, NormalizerOptions
from services.places_client import PlacesProviderError, make_places_client
from services.places_enrichment import PlacesEnricher
from services.rate_limiter import RateLimiter
from services.sources import PlacesSearchSource, ScrapeOptions
from services.takeout import ConvertOptions, convert_takeout_file
from services.uploader import UploadOptions, upload_places, upload_places_batch
from services.validator import validate_ndjson_content, validate_places
from settings import ConfigurationError, settings
from storage.ndjson import PlaceStreamError, read_places_from_ndjson, write_places_to_ndjson
from storage.store_client import StoreError, make_store_client

logger = logging.getLogger("places_cli")

MAX_LISTED = 10


def _print_list(items: Sequence[str], limit: int = MAX_LISTED) -> None:
    for item in items[:limit]:
        print(f"   - {item}")
    if len(items) > limit:
        print(f"   ... and {len(items) - limit} more")


def _parse_location(value: str) -> tuple:
    try:
        lat_s, lng_s = value.split(",", 1)
        return float(lat_s), float(lng_s)
    except ValueError:
        raise argparse.ArgumentTypeError(f'Invalid location "{value}" (expected "lat,lng")')


def _load_raw_records(path: Path) -> List[RawRecord]:
    """Raw records from a JSON array or one JSON object per line."""
    text = path.read_text(encoding="utf-8")
    stripped = text.lstrip()
    if stripped.startswith("["):
        items: List[Any] = json.loads(text)
    else:
        items = [json.loads(line) for line in text.splitlines() if line.strip()]
    return [raw_record_from_dict(item) for item in items]


def _require_file(path: Path) -> bool:
    if not path.exists():
        print(f"Input file not found: {path}", file=sys.stderr)
        return False
    return True


def cmd_convert(args: argparse.Namespace) -> int:
    source = Path(args.input)
    if not _require_file(source):
        return 1
    result = convert_takeout_file(
        source,
        ConvertOptions(domain=args.domain, default_category=args.category, require_coordinates=args.require_coords),
    )
    write_places_to_ndjson(result.places, args.output)
    print(f"Converted {len(result.places)} places, skipped {result.skipped}")
    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        _print_list(result.errors)
    print(f"Output: {args.output}")
    return 0


def cmd_normalize(args: argparse.Namespace) -> int:
    source = Path(args.input)
    if not _require_file(source):
        return 1
    raws = _load_raw_records(source)
    normalizer = DataNormalizer(
        NormalizerOptions(domain=args.domain, default_category=args.category, include_raw_data=args.include_raw)
    )
    places = normalizer.normalize_all(raws)
    write_places_to_ndjson(places, args.output)
    print(f"Normalized {len(places)} records")
    print(f"Output: {args.output}")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    if not args.query and not args.location:
        print("Either --query or --location is required", file=sys.stderr)
        return 1
    source = PlacesSearchSource(make_places_client(), rate_limiter=RateLimiter.from_ms(args.rate_limit))
    result = source.scrape(
        ScrapeOptions(
            query=args.query,
            location=args.location,
            radius_m=args.radius,
            place_type=args.type,
            domain=args.domain,
            max_results=args.max,
        )
    )
    write_places_to_ndjson(result.places, args.output)
    print(f"Found {result.total_found} results, converted {len(result.places)} places")
    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        _print_list(result.errors)
    print(f"Output: {args.output}")
    return 0


def cmd_enrich(args: argparse.Namespace) -> int:
    source = Path(args.input)
    if not _require_file(source):
        return 1
    places = read_places_from_ndjson(source)
    enricher = PlacesEnricher(make_places_client(), rate_limiter=RateLimiter.from_ms(args.rate_limit))

    def progress(current: int, total: int, name: str) -> None:
        print(f"   [{current}/{total}] {name}")

    result = enricher.enrich(places, on_progress=progress)
    write_places_to_ndjson(result.places, args.output)
    print(f"Enriched: {result.enriched_count}")
    print(f"Skipped: {result.skipped_count}")
    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        _print_list([f'"{e.place}": {e.error}' for e in result.errors])
    print(f"Output: {args.output}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    source = Path(args.input)
    if not _require_file(source):
        return 1
    content = source.read_text(encoding="utf-8")
    stream = validate_ndjson_content(content)
    print(f"Documents: {stream.record_count}")

    if not stream.valid:
        print(f"Errors ({len(stream.line_errors)}):")
        _print_list([f"Line {e.line}: {e.error}" for e in stream.line_errors])
        print("Validation failed")
        return 1

    places = read_places_from_ndjson(source)
    validation = validate_places(places)
    dedup = deduplicate_within_batch(places, settings.DEDUP_THRESHOLD_METERS)
    warnings = [w for r in validation.results for w in r.validation.warnings]

    print(f"Valid: {validation.valid_count}")
    print(f"Invalid: {validation.invalid_count}")
    print(f"Internal duplicates: {len(dedup.duplicates)}")
    if warnings:
        print(f"Warnings ({len(warnings)}):")
        _print_list(warnings)
    if dedup.duplicates:
        print("Duplicate entries:")
        _print_list(
            [f'"{d.place.name}" duplicates "{d.matched_name}" ({d.distance_m:.0f}m apart)' for d in dedup.duplicates],
            limit=5,
        )

    if validation.valid and not (args.strict and warnings):
        print("Validation passed")
        return 0
    print("Validation failed")
    return 1


def cmd_dedupe(args: argparse.Namespace) -> int:
    source = Path(args.input)
    if not _require_file(source):
        return 1
    places = read_places_from_ndjson(source)
    result = deduplicate_within_batch(places, args.threshold)
    write_places_to_ndjson(result.unique, args.output)
    print(f"Unique: {len(result.unique)}")
    print(f"Duplicates: {len(result.duplicates)}")
    _print_list([f'"{d.place.name}" -> {d.matched_against} ({d.distance_m:.0f}m)' for d in result.duplicates])
    print(f"Output: {args.output}")
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    source = Path(args.input)
    if not _require_file(source):
        return 1
    client = make_store_client(dataset=args.dataset, require_token=not args.dry_run)

    places = read_places_from_ndjson(source)
    mode = "replace" if args.replace else "missing-only" if args.missing_only else "create"
    print(f"Loaded {len(places)} places")
    print(f"Dataset: {args.dataset}")
    print(f"Mode: {mode}")

    if not args.skip_validation:
        validation = validate_places(places)
        if not validation.valid:
            print(f"Validation failed: {validation.invalid_count} invalid documents", file=sys.stderr)
            print("Run the validate command for details", file=sys.stderr)
            return 1
        print("Validation passed")

    to_import = places
    if not args.skip_dedup and not args.dry_run:
        dedup = deduplicate_against_store(places, client, settings.DEDUP_THRESHOLD_METERS)
        if dedup.duplicates:
            print(f"Found {len(dedup.duplicates)} potential duplicates:")
            _print_list([f'"{d.place.name}" -> existing: {d.matched_against}' for d in dedup.duplicates], limit=5)
            if not args.replace:
                print("Skipping duplicates (use --replace to update them)")
                to_import = dedup.unique
        else:
            print("No duplicates found")

    if not to_import:
        print("No places to import")
        return 0

    options = UploadOptions(
        replace=args.replace,
        missing_only=args.missing_only,
        dry_run=args.dry_run,
        batch_size=args.batch_size,
    )
    uploader = upload_places_batch if args.batch else upload_places
    stats = uploader(to_import, client, options)

    suffix = " (approximate)" if stats.approximate else ""
    print(f"Import complete{suffix}:")
    print(f"   Created: {stats.created}")
    print(f"   Updated: {stats.updated}")
    print(f"   Skipped: {stats.skipped}")
    print(f"   Failed: {stats.failed}")
    print(f"   Duration: {stats.duration_ms / 1000:.1f}s")
    if stats.errors:
        print(f"Errors ({len(stats.errors)}):")
        _print_list([f"{e.document_id}: {e.error}" for e in stats.errors])
    if args.dry_run:
        print("Dry run - no changes were made")
    return 1 if stats.failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Venue data pipeline: convert, enrich, validate and import places.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("convert", help="Convert a saved-places GeoJSON export to NDJSON")
    p.add_argument("input")
    p.add_argument("-o", "--output", default="places.ndjson")
    p.add_argument("-d", "--domain", default=None, help="Domain to assign (beer, coffee, vino, guide)")
    p.add_argument("-c", "--category", default=None, help="Default category (brewery, cafe, ...)")
    p.add_argument("--require-coords", action="store_true", help="Skip places without valid coordinates")
    p.set_defaults(func=cmd_convert)

    p = sub.add_parser("normalize", help="Normalize raw scraped/provider records to NDJSON")
    p.add_argument("input", help="JSON array or one JSON record per line")
    p.add_argument("-o", "--output", default="places.ndjson")
    p.add_argument("-d", "--domain", default=None)
    p.add_argument("-c", "--category", default=None)
    p.add_argument("--include-raw", action="store_true", help="Keep source provenance (scrapedData)")
    p.set_defaults(func=cmd_normalize)

    p = sub.add_parser("search", help="Search the places provider and write NDJSON")
    p.add_argument("-q", "--query", default=None)
    p.add_argument("-l", "--location", type=_parse_location, default=None, help='Center point as "lat,lng"')
    p.add_argument("-r", "--radius", type=float, default=5000.0)
    p.add_argument("-t", "--type", default=None, help="Provider place type (cafe, bar, ...)")
    p.add_argument("-d", "--domain", default=None)
    p.add_argument("-m", "--max", type=int, default=60)
    p.add_argument("--rate-limit", type=float, default=settings.SEARCH_RATE_LIMIT_MS, help="Delay between calls in ms")
    p.add_argument("-o", "--output", default="places.ndjson")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("enrich", help="Fill in details from the places provider")
    p.add_argument("input")
    p.add_argument("-o", "--output", default="enriched.ndjson")
    p.add_argument("--rate-limit", type=float, default=settings.ENRICH_RATE_LIMIT_MS, help="Delay between calls in ms")
    p.set_defaults(func=cmd_enrich)

    p = sub.add_parser("validate", help="Validate an NDJSON file")
    p.add_argument("input")
    p.add_argument("--strict", action="store_true", help="Fail on warnings too")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("dedupe", help="Drop duplicates within an NDJSON file")
    p.add_argument("input")
    p.add_argument("-o", "--output", default="unique.ndjson")
    p.add_argument("--threshold", type=float, default=settings.DEDUP_THRESHOLD_METERS, help="Distance in meters")
    p.set_defaults(func=cmd_dedupe)

    p = sub.add_parser("import", help="Import an NDJSON file into the document store")
    p.add_argument("input")
    p.add_argument("--dataset", default="production")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--replace", action="store_true", help="Replace existing documents")
    mode.add_argument("--missing-only", action="store_true", help="Only import documents that do not exist")
    p.add_argument("--dry-run", action="store_true", help="Show what would be imported")
    p.add_argument("--batch", action="store_true", help="Use one transaction per chunk (approximate counts)")
    p.add_argument("--batch-size", type=int, default=100)
    p.add_argument("--skip-validation", action="store_true")
    p.add_argument("--skip-dedup", action="store_true", help="Skip the duplicate check against the store")
    p.set_defaults(func=cmd_import)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(Path(__file__).resolve().parents[1] / ".env")
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ConfigurationError as exc:
        print("Configuration error:", file=sys.stderr)
        for item in exc.missing:
            print(f"   - {item}", file=sys.stderr)
        return 1
    except PlaceStreamError as exc:
        print(f"Invalid input: {exc}", file=sys.stderr)
        return 1
    except (PlacesProviderError, StoreError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
