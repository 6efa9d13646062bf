import logging
import os
import re
import time
import uuid
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from chatwidget.config import get_settings
from chatwidget.routers import pages
from chatwidget.routers.api import api_router

settings = get_settings()
debug_mode = settings.env.lower() in {"development", "test"}
request_logger = logging.getLogger("request")

APP_LOGGERS = (
    "chatwidget.routers.api.chat",
    "chatwidget.services.chat",
    "chatwidget.services.streaming",
    "chatwidget.services.surveys",
    "chatwidget.services.scanner",
)
DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)
_CHAT_SESSION_PATH = re.compile(r"^/api/chat/([^/]+)/")
_QUIET_PREFIXES = ("/health", "/static/")


def _configure_logging() -> None:
    """One handler for the API, the widget stream and background scans."""

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
    for name in ("uvicorn", "request", *APP_LOGGERS):
        logging.getLogger(name).setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel("WARNING")
    logging.getLogger("sql-profiler").setLevel(os.environ.get("SQL_LOG_LEVEL", log_level))
    logging.getLogger("httpx").setLevel(os.environ.get("HTTPX_LOG_LEVEL", "WARNING").upper())
    logging.getLogger("openai").setLevel(os.environ.get("OPENAI_LOG_LEVEL", "WARNING").upper())


def allowed_origins() -> list[str]:
    """Dashboard origins that may call the API with the session cookie."""

    origins = [
        origin.strip()
        for origin in (settings.cors_allow_origins or "").split(",")
        if origin.strip()
    ]
    if debug_mode:
        origins.extend(DEV_ORIGINS)
    return list(dict.fromkeys(origins or [settings.app_base_url]))


_configure_logging()

app = FastAPI(title="Chat Widget Platform", debug=debug_mode)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    path = request.url.path
    match = _CHAT_SESSION_PATH.match(path)
    level = logging.DEBUG if path.startswith(_QUIET_PREFIXES) else logging.INFO
    request_logger.log(
        level,
        "--> [%s] %s %s session=%s from %s",
        request_id,
        request.method,
        path,
        match.group(1) if match else "-",
        request.client.host if request.client else "?",
    )
    start = time.perf_counter()
    response = await call_next(request)
    # Streamed chat replies are timed to their first byte.
    duration = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request_id
    request_logger.log(level, "<-- [%s] %s %s %.2fms", request_id, path, response.status_code, duration)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.mount("/static", StaticFiles(directory=Path(__file__).parent / "static"), name="static")

app.include_router(api_router, prefix="/api")
app.include_router(pages.router)


@app.get("/health")
def health():
    return {"status": "ok", "env": settings.env}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chatwidget.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("ENABLE_RELOAD", "0").lower() in {"1", "true", "yes"},
    )
