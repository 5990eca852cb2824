#!/usr/bin/env python3
"""
Scan a single URL from the command line

Runs the same pipeline as the API (cache, queue, browser, Lighthouse) and
prints the resulting ScanResult document as JSON.

Usage:
    python -m scripts.scan_url https://example.com [--no-cache] [--indent 2]
"""

import argparse
import asyncio
import json
import logging
import sys

from webscan.features.scan.exceptions import ScanError, StorageError
from webscan.features.scan.services.scan.runtime import ScanRuntime
from webscan.platform.config import settings
from webscan.platform.utils.url_validator import validate_url


async def run_scan(url: str, use_cache: bool) -> dict:
    runtime = ScanRuntime(settings)
    try:
        if use_cache:
            await runtime.start(keepalive=False)
            result = await runtime.scan_service.scan_url(url)
        else:
            report = await runtime.queue.enqueue(lambda: runtime.executor.execute_scan(url))
            result = runtime.scan_service.build_result(url, report)
        return result.to_document()
    finally:
        await runtime.close()


def main():
    parser = argparse.ArgumentParser(
        description="Scan a URL for performance and accessibility issues"
    )
    parser.add_argument("url", type=str, help="URL to scan (https:// is assumed when missing)")
    parser.add_argument("--no-cache", action="store_true", help="Skip the result cache entirely")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation (default: 2)")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    is_valid, url, error_message = validate_url(args.url)
    if not is_valid:
        print(f"❌ Invalid URL: {error_message}", file=sys.stderr)
        sys.exit(2)

    try:
        document = asyncio.run(run_scan(url, use_cache=not args.no_cache))
    except (ScanError, StorageError) as e:
        print(f"❌ Scan failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(document, indent=args.indent))


if __name__ == "__main__":
    main()
