#!/usr/bin/env python
"""
Run a full Bokun cache sync once.

Meant for a scheduler (cron, Railway job) re-invoking the reconciliation:

    python run_sync.py
    python run_sync.py --health
"""

import argparse
import json
import sys

from bokun_sync.config import settings
from bokun_sync.database import SessionLocal, create_tables
from bokun_sync.errors import BokunSyncError
from bokun_sync.services.cache_sync import build_cache_sync_service
from bokun_sync.utils.logging_config import setup_logging, get_logger

logger = get_logger("run_sync")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile the Bokun bookings cache")
    parser.add_argument("--health", action="store_true", help="Only print cache health")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level, json_format=settings.log_json, include_uvicorn=False)
    create_tables()

    db = SessionLocal()
    service = build_cache_sync_service(db)
    try:
        if args.health:
            print(json.dumps(service.health(), indent=2))
            return 0

        result = service.sync_all()
        print(json.dumps(result, indent=2))

        failed = [r["product_id"] for r in result["results"] if not r["success"]]
        if failed:
            logger.warning(f"Products with errors: {', '.join(failed)}")
        return 0 if result["success"] and not failed else 1

    except BokunSyncError as e:
        logger.error(f"Sync failed: {e}")
        return 2
    finally:
        service.close()
        db.close()


if __name__ == "__main__":
    sys.exit(main())
