from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from rhino_sync.config import get_settings
from rhino_sync.runner import run, run_dedupe


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync the Rhino work schedule to Google Calendar")
    parser.add_argument("--headful", action="store_true", help="Show the browser window while scraping")
    parser.add_argument("--dedupe", action="store_true", help="Remove duplicate managed events instead of syncing")
    parser.add_argument("--dry-run", action="store_true", help="Only report what --dedupe would delete (requires --dedupe)")
    parser.add_argument("--serve", action="store_true", help="Serve the HTTP trigger instead of running once")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address for --serve")
    parser.add_argument("--port", type=int, default=8080, help="Port for --serve")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.dry_run and not args.dedupe:
        parser.error("--dry-run only applies to --dedupe")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.serve:
        import uvicorn

        uvicorn.run("rhino_sync.server:app", host=args.host, port=args.port)
        return 0

    settings = get_settings()
    if args.headful:
        settings.headful = True

    try:
        if args.dedupe:
            run_dedupe(settings, dry_run=args.dry_run)
        else:
            report = run(settings)
            if report.failures:
                logging.warning("%d events could not be synced", len(report.failures))
    except Exception:
        logging.exception("Sync failed")
        return 1

    logging.info("Done")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
