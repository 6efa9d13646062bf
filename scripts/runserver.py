"""Container/server entrypoint that optionally migrates and seeds plans before starting Gunicorn."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]


def _truthy(value: str | None) -> bool:
    return value is not None and value.lower() in {"1", "true", "yes", "on"}


def main() -> None:
    run_migrations = _truthy(os.environ.get("RUN_DB_MIGRATIONS", "0"))
    seed_plans = _truthy(os.environ.get("SEED_PLANS", "0"))
    workers = os.environ.get("WORKERS", "4")
    host = os.environ.get("HOST", "0.0.0.0")
    port = os.environ.get("PORT", "8000")
    timeout = os.environ.get("GUNICORN_TIMEOUT", "120")

    env = os.environ.copy()

    if run_migrations:
        print("→ Running Alembic migrations")
        subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            check=True,
            cwd=str(ROOT_DIR),
            env=env,
        )

    if seed_plans:
        print("→ Seeding subscription plans")
        subprocess.run(
            [sys.executable, str(ROOT_DIR / "scripts" / "seed_plans.py")],
            check=True,
            cwd=str(ROOT_DIR),
            env=env,
        )

    print("→ Starting Gunicorn")
    subprocess.run(
        [
            "gunicorn",
            "chatwidget.main:app",
            "-k",
            "uvicorn.workers.UvicornWorker",
            "-w",
            workers,
            "-b",
            f"{host}:{port}",
            # Streaming chat responses outlive the default 30s worker timeout.
            "--timeout",
            timeout,
        ],
        check=True,
        cwd=str(ROOT_DIR),
        env=env,
    )


if __name__ == "__main__":
    main()
