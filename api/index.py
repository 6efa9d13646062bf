from __future__ import annotations

import sys
from pathlib import Path

from mangum import Mangum

# Ensure the project package is importable when running inside a serverless worker
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from chatwidget.db_setup import ensure_database_ready  # noqa: E402
from chatwidget.main import app as fastapi_app  # noqa: E402

# Cold starts apply pending migrations before serving traffic.
ensure_database_ready()

app = fastapi_app

# Serverless runtimes look for a callable named `handler`
handler = Mangum(fastapi_app, lifespan="off")
