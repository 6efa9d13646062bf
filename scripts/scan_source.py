#!/usr/bin/env python
"""Run a website-source scan synchronously from a local machine.

Usage:
    python scripts/scan_source.py --source-id 3
    python scripts/scan_source.py --source-id 3 --max-pages 10 --env-file .env.local
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _configure_environment(env: str | None, env_file: str | None) -> None:
    if env_file:
        env_path = Path(env_file).expanduser().resolve()
        if not env_path.exists():
            raise SystemExit(f"Env file {env_path} was not found")
        os.environ["CHATBOT_ENV_FILE"] = str(env_path)
    if env:
        os.environ["ENV"] = env


def main() -> None:
    parser = argparse.ArgumentParser(description="Scan one website source and rebuild its knowledge rows")
    parser.add_argument("--source-id", type=int, required=True, help="Website source ID to scan")
    parser.add_argument("--max-pages", type=int, help="Override the source's page limit")
    parser.add_argument("--env", help="Named environment (maps to .env.<env>)")
    parser.add_argument("--env-file", help="Explicit env file path")
    args = parser.parse_args()

    _configure_environment(args.env, args.env_file)
    from chatwidget.db import SessionLocal  # noqa: WPS433 (import after env configured)
    from chatwidget.models import WebsiteSource
    from chatwidget.services.scanner import process_source

    with SessionLocal() as db:
        source = db.get(WebsiteSource, args.source_id)
        if not source:
            raise SystemExit(f"Website source {args.source_id} was not found")
        if args.max_pages is not None:
            source.max_pages = args.max_pages
        print(f"Scanning source {source.id} ({source.url or source.title}) | max_pages={source.max_pages}")
        process_source(db, source)
        print(f"Scan finished with status={source.status.value} pages={source.total_pages}")
        if source.error_message:
            print(f"Error: {source.error_message}")


if __name__ == "__main__":
    main()
