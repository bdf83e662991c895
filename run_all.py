"""
run_all.py

Start the ClassroomHQ web dashboard in one go.

Usage:
    python run_all.py            # init schema, start dashboard
    python run_all.py --seed     # also load demo users and courses first

This script:
- Configures logging from LOG_LEVEL
- Creates any missing tables from database/schema.sql
- Starts the Flask dashboard (Ctrl+C stops it)
"""
import argparse
import logging
import sys
from pathlib import Path

# Ensure imports work correctly
sys.path.insert(0, str(Path(__file__).parent))

from config import DASH_HOST, DASH_PORT, LOG_LEVEL

logger = logging.getLogger("classroomhq")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the ClassroomHQ dashboard.")
    parser.add_argument("--seed", action="store_true", help="load demo data before starting")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from database.db import init_db
    init_db()
    if args.seed:
        from database.seed import seed
        seed()

    logger.info("Starting dashboard on http://%s:%s", DASH_HOST, DASH_PORT)
    from dashboard.app import run
    try:
        run()
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        sys.exit(0)


if __name__ == "__main__":
    main()
