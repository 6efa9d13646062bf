import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional, Set, Tuple
from urllib import robotparser
from urllib.parse import urljoin, urlparse, urlunparse

import httpx
from bs4 import BeautifulSoup
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db import SessionLocal
from ..enums import SourceStatus, SourceType
from ..models import WebsiteSource
from .knowledge import clear_source_content, store_page_content

logger = logging.getLogger(__name__)
_settings = get_settings()

USER_AGENT = "Mozilla/5.0 (compatible; ChatWidgetScanner/1.0)"
_WHITESPACE_RE = re.compile(r"\s+")
_SKIP_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico", ".bmp", ".tiff",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".zip", ".mp4", ".mp3", ".avi", ".mov",
)
_MEDIA_PATH_HINTS = ("/wp-content/uploads/", "/images/", "/img/", "/photos/", "/gallery/", "/media/")
_IMAGE_SITEMAP_HINTS = ("image", "img", "photo", "picture")
_STRIP_SELECTORS = "script, style, nav, header, footer, aside, noscript, .advertisement, .ads, .social-share"
_MAIN_SELECTORS = "main, article, .content, .post, #content, #main"


class ScanError(Exception):
    """Raised when a source cannot be scanned at all."""


@dataclass
class ScanConfig:
    max_pages: int = field(default_factory=lambda: _settings.scan_max_pages_default)
    max_retries: int = 3
    request_delay: float = field(default_factory=lambda: _settings.scan_request_delay_seconds)
    timeout: float = 15.0
    min_content_chars: int = 100
    max_sitemap_depth: int = 3


def normalize_url(url: str) -> str:
    parsed = urlparse(url.strip())
    normalized = urlunparse(parsed._replace(fragment=""))
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def is_image_sitemap(url: str) -> bool:
    lowered = url.lower()
    return any(hint in lowered for hint in _IMAGE_SITEMAP_HINTS)


def is_valid_page_url(url: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return False
    path = parsed.path.lower()
    if path.endswith(_SKIP_EXTENSIONS):
        return False
    return not any(hint in path for hint in _MEDIA_PATH_HINTS)


def has_noindex(directive: str) -> bool:
    lowered = directive.lower()
    return "noindex" in lowered or "none" in lowered


def retry_after_seconds(value: Optional[str], fallback: float) -> float:
    """Seconds from a Retry-After header, given as delta-seconds or an HTTP date."""

    if not value:
        return fallback
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return fallback
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)


def extract_page(html: str, min_chars: int = 100) -> Optional[Tuple[str, str]]:
    """Return ``(title, text)`` for indexable pages, ``None`` for noindex or thin pages."""

    soup = BeautifulSoup(html, "html.parser")
    for meta in soup.find_all("meta", attrs={"name": "robots"}):
        if meta.has_attr("content") and has_noindex(meta["content"]):
            return None
    for tag in soup.select(_STRIP_SELECTORS):
        tag.decompose()

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()
    elif soup.h1:
        title = soup.h1.get_text(strip=True)

    container = soup.select_one(_MAIN_SELECTORS) or soup.body or soup
    text = _WHITESPACE_RE.sub(" ", container.get_text(separator=" ")).strip()
    if len(text) < min_chars:
        return None
    return title, text


class WebsiteScanner:
    """Discovers the pages of one site and extracts their readable text."""

    def __init__(self, client: httpx.Client, config: ScanConfig):
        self._client = client
        self._config = config
        self.sitemap_url: Optional[str] = None

    def _get(self, url: str) -> Optional[httpx.Response]:
        try:
            response = self._client.get(url, headers={"User-Agent": USER_AGENT})
        except httpx.HTTPError as exc:
            logger.debug("Fetch failed for %s: %s", url, exc)
            return None
        if response.status_code != 200:
            return None
        return response

    def discover_urls(self, source: WebsiteSource) -> List[str]:
        start_url = normalize_url(source.url or "")
        urls = self.find_sitemap_urls(origin_of(start_url))
        if urls:
            logger.info("Sitemap discovery found %s URLs for %s", len(urls), start_url)
        else:
            urls = self.crawl_page_links(start_url)
            logger.info("Link discovery found %s URLs for %s", len(urls), start_url)

        ordered: List[str] = []
        seen: Set[str] = set()
        for url in [start_url, *urls]:
            normalized = normalize_url(url)
            if normalized in seen or not is_valid_page_url(normalized):
                continue
            seen.add(normalized)
            ordered.append(normalized)
        return ordered

    def find_sitemap_urls(self, base_url: str) -> List[str]:
        for candidate in (f"{base_url}/sitemap.xml", f"{base_url}/sitemap_index.xml"):
            urls = self.parse_sitemap(candidate)
            if urls:
                self.sitemap_url = candidate
                return urls

        response = self._get(f"{base_url}/robots.txt")
        if response is None:
            return []
        robots = robotparser.RobotFileParser()
        robots.parse(response.text.splitlines())
        urls: List[str] = []
        for sitemap_url in robots.site_maps() or []:
            if is_image_sitemap(sitemap_url):
                logger.debug("Skipping image sitemap %s", sitemap_url)
                continue
            found = self.parse_sitemap(sitemap_url)
            if found and not self.sitemap_url:
                self.sitemap_url = sitemap_url
            urls.extend(found)
        return urls

    def parse_sitemap(self, sitemap_url: str, depth: int = 0) -> List[str]:
        if depth > self._config.max_sitemap_depth or is_image_sitemap(sitemap_url):
            return []
        response = self._get(sitemap_url)
        if response is None:
            return []
        body = response.text
        if "<image:" in body or "xmlns:image=" in body:
            return []

        soup = BeautifulSoup(body, "html.parser")
        urls: List[str] = []
        if soup.find("sitemapindex"):
            for loc in soup.select("sitemap > loc"):
                urls.extend(self.parse_sitemap(loc.get_text(strip=True), depth + 1))
            return urls
        for loc in soup.select("url > loc"):
            page_url = loc.get_text(strip=True)
            if is_valid_page_url(page_url):
                urls.append(page_url)
        return urls

    def crawl_page_links(self, start_url: str) -> List[str]:
        response = self._get(start_url)
        if response is None:
            return []
        origin = origin_of(start_url)
        soup = BeautifulSoup(response.text, "html.parser")
        links: List[str] = []
        for anchor in soup.find_all("a", href=True):
            target = normalize_url(urljoin(start_url + "/", anchor["href"]))
            if origin_of(target) == origin and is_valid_page_url(target):
                links.append(target)
        return links

    def fetch_page(self, url: str) -> Optional[Tuple[str, str]]:
        """Fetch one page with retries. Returns ``None`` when it should be skipped."""

        for attempt in range(1, self._config.max_retries + 1):
            try:
                response = self._client.get(url, headers={"User-Agent": USER_AGENT})
                if response.status_code in {429, 503}:
                    retry_after = retry_after_seconds(
                        response.headers.get("Retry-After"), self._config.request_delay * attempt
                    )
                    logger.warning("Server requested backoff %.1fs for %s", retry_after, url)
                    time.sleep(min(retry_after, 30.0))
                    continue
                if response.status_code != 200:
                    logger.info("HTTP %s for %s", response.status_code, url)
                    return None
                if has_noindex(response.headers.get("x-robots-tag", "")):
                    logger.info("Skipping %s due to X-Robots-Tag", url)
                    return None
                if "html" not in response.headers.get("content-type", "text/html"):
                    return None
                return extract_page(response.text, self._config.min_content_chars)
            except httpx.HTTPError as exc:
                logger.warning("Error scanning %s (attempt %s/%s): %s", url, attempt, self._config.max_retries, exc)
                if attempt < self._config.max_retries:
                    time.sleep(self._config.request_delay * attempt)
        logger.error("Failed to process %s after %s attempts, skipping", url, self._config.max_retries)
        return None


def scan_website_source(
    db: Session,
    source: WebsiteSource,
    config: Optional[ScanConfig] = None,
    client: Optional[httpx.Client] = None,
) -> int:
    """Re-index every discoverable page of a website source. Returns pages stored."""

    config = config or ScanConfig(max_pages=source.max_pages or _settings.scan_max_pages_default)
    owns_client = client is None
    client = client or httpx.Client(timeout=config.timeout, follow_redirects=True)
    start_ts = time.monotonic()
    scanner = WebsiteScanner(client, config)
    try:
        urls = scanner.discover_urls(source)
        if not urls:
            raise ScanError(f"No pages discovered for {source.url}")
        source.sitemap_url = scanner.sitemap_url
        clear_source_content(db, source.id)
        stored_pages = 0
        for url in urls[: config.max_pages]:
            page = scanner.fetch_page(url)
            if page is None:
                continue
            title, text = page
            if store_page_content(db, source, url=url, title=title or url, text=text):
                stored_pages += 1
                source.total_pages = stored_pages
                db.commit()
            if config.request_delay:
                time.sleep(config.request_delay)
    finally:
        if owns_client:
            client.close()
    logger.info(
        "Scan finished | source=%s pages=%s duration=%.1fs",
        source.id,
        stored_pages,
        time.monotonic() - start_ts,
    )
    return stored_pages


def index_text_source(db: Session, source: WebsiteSource) -> int:
    clear_source_content(db, source.id)
    stored = store_page_content(
        db,
        source,
        url=None,
        title=source.title or "Text content",
        text=source.text_content or "",
        content_type="text",
    )
    return 1 if stored else 0


def process_source(db: Session, source: WebsiteSource, client: Optional[httpx.Client] = None) -> None:
    """Scan or index a source, recording progress and failures on the row."""

    source.status = SourceStatus.SCANNING
    source.error_message = None
    db.commit()
    try:
        if source.source_type == SourceType.TEXT:
            pages = index_text_source(db, source)
        else:
            pages = scan_website_source(db, source, client=client)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        logger.exception("Scan failed for source %s: %s", source.id, exc)
        source.status = SourceStatus.ERROR
        source.error_message = str(exc) or exc.__class__.__name__
        db.commit()
        return
    source.status = SourceStatus.COMPLETED
    source.total_pages = pages
    source.last_scanned = datetime.now(timezone.utc)
    db.commit()


def run_source_scan(source_id: int) -> None:
    """Background-task entrypoint: runs with its own database session."""

    with SessionLocal() as task_db:
        source = task_db.get(WebsiteSource, source_id)
        if not source:
            logger.warning("Website source %s vanished before scanning", source_id)
            return
        process_source(task_db, source)
