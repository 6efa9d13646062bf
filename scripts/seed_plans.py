#!/usr/bin/env python
"""Create or refresh the Free / Basic / Premium / Ultra subscription plans.

Usage:
    python scripts/seed_plans.py
    python scripts/seed_plans.py --env-file .env.production
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the default subscription plans")
    parser.add_argument("--env-file", help="Explicit env file path")
    args = parser.parse_args()
    if args.env_file:
        os.environ["CHATBOT_ENV_FILE"] = str(Path(args.env_file).expanduser().resolve())

    from chatwidget.db import SessionLocal  # noqa: WPS433 (import after env configured)
    from chatwidget.services.quotas import seed_plans

    with SessionLocal() as db:
        created = seed_plans(db)
    print(f"Plans seeded ({created} created, others refreshed).")


if __name__ == "__main__":
    main()
