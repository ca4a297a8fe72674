# app.py
"""
Related Keywords Pipeline
Fetches related keywords for a seed, normalizes them and exports the results
"""

import os
import sys
import json
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# Add src directory to path for imports
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir / "src"))

from labs_client import LabsError, Config, LabsClient, RelatedKeywordsRequest
from normalizer import normalize_response
from postprocess import (
    SORT_FIELDS,
    CSV_VARIANTS,
    sort_records,
    export_csv,
    export_excel,
    csv_filename,
    display_results_preview,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')


def check_setup():
    """Check if the credential pair is configured"""
    print("🔍 Checking setup...")

    try:
        config = Config.from_env()
    except LabsError as e:
        print(f"❌ {e.message}")
        print("Make sure your .env file contains DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD")
        return False

    print(f"✅ Credentials found for: {config.login[:3]}***")
    print(f"✅ API base URL: {config.api_url}")
    return True


def load_payload(args):
    """Read a saved payload with --input, otherwise call the API."""
    if args.input:
        print(f"📁 Loading payload from {args.input}")
        with open(args.input, "r", encoding="utf-8") as f:
            return json.load(f)

    request = RelatedKeywordsRequest(
        keyword=args.seed_keyword,
        location_code=args.location_code,
        language_code=args.language_code,
        depth=args.depth,
        limit=args.limit,
        include_seed_keyword=args.include_seed_keyword,
        include_serp_info=args.include_serp_info,
        ignore_synonyms=args.ignore_synonyms,
        include_clickstream_data=args.include_clickstream_data,
        replace_with_core_keyword=args.replace_with_core_keyword,
    )
    print(f"🔍 Fetching keywords related to '{request.keyword}'...")
    client = LabsClient(Config.from_env())
    return client.related_keywords(request)


def run_pipeline(args):
    """Run fetch -> normalize -> sort -> export. Returns the CSV path, or None when empty."""
    raw = load_payload(args)
    if not isinstance(raw, dict):
        raise ValueError("Payload is not a JSON object")

    normalized = normalize_response(raw)
    records = sort_records(normalized.data, args.sort, args.direction)

    if not records:
        print("⚠️ No related keywords found.")
        return None

    print(f"\n🏆 Top {min(args.top, len(records))} of {len(records)} keywords "
          f"(sorted by {args.sort}, {args.direction}):")
    print(display_results_preview(records, top_n=args.top))

    os.makedirs(args.output_dir, exist_ok=True)
    seed = args.seed_keyword or records[0].keyword
    csv_path = os.path.join(args.output_dir, csv_filename(seed))

    with open(csv_path, "w", encoding="utf-8", newline="") as f:
        f.write(export_csv(records, args.variant))
    print(f"\n💾 Saved CSV: {csv_path}")

    if args.excel:
        excel_path = csv_path[:-len(".csv")] + ".xlsx"
        with open(excel_path, "wb") as f:
            f.write(export_excel(records, seed))
        print(f"📊 Saved Excel: {excel_path}")

    return csv_path


def build_parser():
    parser = argparse.ArgumentParser(description="Related Keywords Pipeline")
    parser.add_argument("seed_keyword", nargs="?", default="",
                        help="Seed keyword to find related keywords for")
    parser.add_argument("--location-code", type=int, default=2840,
                        help="DataForSEO location code (default: 2840, United States)")
    parser.add_argument("--language-code", default="en", help="Language code (default: en)")
    parser.add_argument("--depth", type=int, default=3, choices=range(0, 5), help="Search depth 0-4")
    parser.add_argument("--limit", type=int, default=20, help="Maximum keywords returned (default: 20)")
    parser.add_argument("--include-seed-keyword", action="store_true")
    parser.add_argument("--include-serp-info", action="store_true")
    parser.add_argument("--ignore-synonyms", action="store_true")
    parser.add_argument("--include-clickstream-data", action="store_true")
    parser.add_argument("--replace-with-core-keyword", action="store_true")
    parser.add_argument("--sort", default="searchVolume", choices=list(SORT_FIELDS),
                        help="Field to sort by (default: searchVolume)")
    parser.add_argument("--direction", default="desc", choices=["asc", "desc"])
    parser.add_argument("--variant", default="detailed", choices=list(CSV_VARIANTS),
                        help="CSV column set (default: detailed)")
    parser.add_argument("--top", type=int, default=10, help="Rows shown in the preview")
    parser.add_argument("--output-dir", default="results", help="Directory for exported files")
    parser.add_argument("--excel", action="store_true", help="Also write an Excel workbook")
    parser.add_argument("--input", help="Normalize a saved raw payload instead of calling the API")
    parser.add_argument("--check-only", action="store_true",
                        help="Only check setup, don't run pipeline")
    return parser


def main(argv=None):
    """Main function with command line support"""
    args = build_parser().parse_args(argv)

    if args.check_only:
        return 0 if check_setup() else 1

    if not args.input:
        if not args.seed_keyword.strip():
            print("❌ A seed keyword is required (or pass --input)")
            return 1
        if not check_setup():
            return 1

    try:
        csv_path = run_pipeline(args)
    except LabsError as e:
        print(f"❌ {e.message}")
        return 1
    except (OSError, ValueError) as e:
        print(f"❌ {e}")
        return 1

    if csv_path is None:
        print("⚠️ Nothing exported.")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n⚠️ Pipeline interrupted by user")
        sys.exit(1)
