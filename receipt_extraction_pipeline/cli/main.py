#!/usr/bin/env python3
"""
Main CLI entrypoint for receipt extraction.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from receipt_extraction_pipeline.core.config import ServiceConfig, merge_config
from receipt_extraction_pipeline.core.errors import ConfigurationError
from receipt_extraction_pipeline.core.normalizer import validate_record
from receipt_extraction_pipeline.core.processor import ReceiptProcessor
from receipt_extraction_pipeline.core.sheets import CsvSheetSink


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract structured data from receipt photos and append spreadsheet rows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extract one receipt and print a summary
  receipt-extract photo.jpg

  # Append rows to a CSV sheet with the receipt's public link
  receipt-extract photo.jpg --sheet ./receipts.csv --link https://bucket.example/photo.jpg

  # Hint currency and store
  receipt-extract photo.png --currency KRW --language ko --store-hint "E-Mart"
        """
    )
    parser.add_argument("images", nargs="+", help="Receipt image files (PNG, JPEG, GIF, WEBP)")
    parser.add_argument("--currency", default="",
                        help="Currency to assume when the receipt shows none")
    parser.add_argument("--language", default="",
                        help="Expected receipt language (e.g. en, ko)")
    parser.add_argument("--store-hint", default="",
                        help="Likely merchant name, added to the prompt")
    parser.add_argument("--model",
                        help="Vision model to use (default: gpt-4o, or OPENAI_VISION_MODEL env var)")
    parser.add_argument("--timeout", type=float,
                        help="Per-request deadline in seconds (default: 60)")
    parser.add_argument("--sheet",
                        help="CSV file to append spreadsheet rows to")
    parser.add_argument("--link", default="",
                        help="Public link to store in each row")
    parser.add_argument("--memo", default="",
                        help="Optional memo to include on each row")
    parser.add_argument("--json", action="store_true",
                        help="Print the full extracted record as JSON")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show detailed logging for debugging")
    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
    )

    config = merge_config(ServiceConfig.from_env(), ServiceConfig(vision_model=args.model or ""))
    try:
        processor = ReceiptProcessor(config)
    except ConfigurationError as e:
        print(f"[ERROR] {e}")
        return 1

    print(f"[INFO] Model: {processor.config.vision_model}, "
          f"default currency: {processor.config.default_currency}")

    sink = CsvSheetSink(Path(args.sheet)) if args.sheet else None
    hints = {"currency": args.currency, "language": args.language, "store": args.store_hint}

    failures = 0
    for image in args.images:
        path = Path(image)
        print(f"[INFO] Processing {path.name}")
        try:
            image_bytes = path.read_bytes()
        except OSError as e:
            print(f"[ERROR] Failed {path.name}: {e}")
            failures += 1
            continue

        outcome = processor.process_image(image_bytes, link=args.link, memo=args.memo,
                                          sink=sink, hints=hints, timeout=args.timeout)
        if not outcome.success:
            print(f"[ERROR] Failed {path.name}: {outcome.error}")
            failures += 1
            continue

        record = outcome.data
        print(f"[OK] {record.summary()}")
        for problem in validate_record(record):
            print(f"  [WARN] {problem}")
        if args.json:
            print(record.to_json(indent=2))

    if sink is not None:
        print(f"[OK] Rows written to {sink.path}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
