"""Seed script: creates the default service catalog and a demo org chart.

Idempotent: checks for existing records before inserting.
Run: python backend/scripts/seed.py [--no-demo]
"""
import argparse
import logging
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import app.models  # noqa: E402,F401  register tables on Base.metadata
from app.core.seed import run_seed  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the self-service portal database.")
    parser.add_argument("--no-demo", action="store_true", help="Skip the demo employees.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    run_seed(with_demo_employees=not args.no_demo)


if __name__ == "__main__":
    main()
