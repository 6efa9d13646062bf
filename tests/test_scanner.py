import httpx
import pytest

from conftest import create_chatbot, fake_embedding

from chatwidget.enums import SourceStatus, SourceType
from chatwidget.models import WebsiteContent, WebsiteSource
from chatwidget.routers.api import websites
from chatwidget.services import knowledge, scanner as scanner_module
from chatwidget.services.chunking import split_into_chunks, word_count
from chatwidget.services.knowledge import build_website_context, search_similar_content
from chatwidget.services.scanner import (
    ScanConfig,
    WebsiteScanner,
    extract_page,
    is_valid_page_url,
    normalize_url,
    process_source,
    retry_after_seconds,
)

BASE = "https://shop.example.com"
FILLER = "Our team answers questions every weekday and keeps this page up to date for customers. "


def _page(title, body):
    return (
        f"<html><head><title>{title}</title></head><body>"
        "<nav>Home | Shop | Contact</nav>"
        f"<main><h1>{title}</h1><p>{body} {FILLER}</p></main>"
        "<footer>Copyright</footer><script>trackVisitor()</script>"
        "</body></html>"
    )


PAGES = {
    "/": _page("Welcome", "Welcome to the shop."),
    "/pricing": _page("Pricing", "Every price is listed in euros."),
    "/shipping": _page("Shipping", "Shipping takes two to four days."),
}

SITEMAP = f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>{BASE}/pricing</loc></url>
  <url><loc>{BASE}/shipping/</loc></url>
  <url><loc>{BASE}/brochure.pdf</loc></url>
</urlset>"""


def _transport(routes):
    def handler(request):
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="missing")
        content_type = "application/xml" if request.url.path.endswith(".xml") else "text/html; charset=utf-8"
        return httpx.Response(200, text=body, headers={"content-type": content_type})

    return httpx.Client(transport=httpx.MockTransport(handler))


def _source(db, chatbot, **fields):
    values = {"source_type": SourceType.WEBSITE, "url": BASE, "max_pages": 10, **fields}
    source = WebsiteSource(chatbot_config_id=chatbot.id, **values)
    db.add(source)
    db.commit()
    return source


def test_normalize_and_filter_urls():
    assert normalize_url(" https://shop.example.com/about/#team ") == "https://shop.example.com/about"
    assert normalize_url("https://shop.example.com/") == "https://shop.example.com"
    assert is_valid_page_url("https://shop.example.com/about")
    assert not is_valid_page_url("https://shop.example.com/files/manual.PDF")
    assert not is_valid_page_url("https://shop.example.com/wp-content/uploads/a")
    assert not is_valid_page_url("mailto:someone@example.com")


def test_extract_page_strips_chrome_and_skips_noindex():
    title, text = extract_page(PAGES["/pricing"])
    assert title == "Pricing"
    assert "Every price is listed in euros." in text
    assert "Copyright" not in text
    assert "trackVisitor" not in text

    noindex = '<html><head><meta name="robots" content="noindex, follow"></head><body>' + FILLER * 3 + "</body></html>"
    assert extract_page(noindex) is None
    assert extract_page("<html><body><p>Too short</p></body></html>") is None



def test_retry_after_accepts_seconds_and_http_dates():
    assert retry_after_seconds("120", 1.0) == 120.0
    assert retry_after_seconds(None, 2.0) == 2.0
    assert retry_after_seconds("soon", 3.0) == 3.0
    assert retry_after_seconds("Wed, 21 Oct 2015 07:28:00 GMT", 4.0) == 0.0
    assert 0 < retry_after_seconds("Fri, 01 Jan 2100 00:00:00 GMT", 4.0)


def test_fetch_page_backs_off_on_http_date_retry_after(monkeypatch):
    sleeps = []
    monkeypatch.setattr(scanner_module.time, "sleep", sleeps.append)
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if len(calls) == 1:
            return httpx.Response(503, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})
        return httpx.Response(200, text=PAGES["/pricing"], headers={"content-type": "text/html"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    scanner = WebsiteScanner(client, ScanConfig(request_delay=0))

    title, _ = scanner.fetch_page(f"{BASE}/pricing")

    assert title == "Pricing"
    assert calls == ["/pricing", "/pricing"]
    assert sleeps == [0.0]

def test_scan_uses_sitemap_and_stores_pages(db, chatbot):
    routes = {**PAGES, "/sitemap.xml": SITEMAP}
    source = _source(db, chatbot)

    process_source(db, source, client=_transport(routes))

    assert source.status == SourceStatus.COMPLETED
    assert source.total_pages == 3
    assert source.sitemap_url == f"{BASE}/sitemap.xml"
    assert source.last_scanned is not None
    rows = db.query(WebsiteContent).order_by(WebsiteContent.id).all()
    assert [row.url for row in rows] == [BASE, f"{BASE}/pricing", f"{BASE}/shipping"]
    assert rows[1].title == "Pricing"
    assert rows[1].embedding == fake_embedding(rows[1].content)
    assert rows[1].word_count == word_count(rows[1].content)


def test_rescan_replaces_previous_content(db, chatbot):
    routes = {**PAGES, "/sitemap.xml": SITEMAP}
    source = _source(db, chatbot)
    process_source(db, source, client=_transport(routes))
    process_source(db, source, client=_transport(routes))

    assert db.query(WebsiteContent).count() == 3


def test_robots_sitemap_index_is_followed(db, chatbot):
    robots = f"User-agent: *\nSitemap: {BASE}/photo-sitemap.xml\nSitemap: {BASE}/pages-index.xml\n"
    index = f"<sitemapindex><sitemap><loc>{BASE}/pages.xml</loc></sitemap></sitemapindex>"
    pages = f"<urlset><url><loc>{BASE}/pricing</loc></url></urlset>"
    client = _transport({"/robots.txt": robots, "/pages-index.xml": index, "/pages.xml": pages})
    scanner = WebsiteScanner(client, ScanConfig(request_delay=0))

    assert scanner.find_sitemap_urls(BASE) == [f"{BASE}/pricing"]
    assert scanner.sitemap_url == f"{BASE}/pages-index.xml"


def test_link_crawl_when_no_sitemap(db, chatbot):
    home = (
        "<html><body>"
        '<a href="/about">About</a> <a href="https://elsewhere.com/x">Out</a>'
        '<a href="/logo.png">Logo</a> <a href="#top">Top</a> <a href="/about/">Again</a>'
        "</body></html>"
    )
    scanner = WebsiteScanner(_transport({"/": home}), ScanConfig(request_delay=0))

    urls = scanner.discover_urls(_source(db, chatbot))

    assert urls == [BASE, f"{BASE}/about"]


def test_text_source_is_indexed(db, chatbot):
    source = _source(
        db, chatbot, source_type=SourceType.TEXT, url=None, title="Refund policy", text_content="Refunds within 30 days."
    )

    process_source(db, source)

    assert source.status == SourceStatus.COMPLETED
    assert source.total_pages == 1
    row = db.query(WebsiteContent).one()
    assert (row.title, row.content_type, row.url) == ("Refund policy", "text", None)


def test_embedding_failure_marks_source_as_errored(db, chatbot, monkeypatch):
    def _fail(texts):
        raise RuntimeError("embedding service down")

    monkeypatch.setattr(knowledge, "embed_texts", _fail)
    source = _source(db, chatbot, source_type=SourceType.TEXT, url=None, text_content="Some text.")

    process_source(db, source)

    assert source.status == SourceStatus.ERROR
    assert source.error_message == "embedding service down"
    assert db.query(WebsiteContent).count() == 0


def _content(db, source, title, text):
    db.add(
        WebsiteContent(
            website_source_id=source.id,
            url=f"{BASE}/{title.lower()}",
            title=title,
            content=text,
            embedding=fake_embedding(text),
        )
    )
    db.commit()


def test_search_ranks_by_similarity_and_dedupes(db, chatbot):
    done = _source(db, chatbot, status=SourceStatus.COMPLETED)
    pending = _source(db, chatbot, status=SourceStatus.PENDING)
    _content(db, done, "Shipping", "Shipping is free. Shipping takes two days.")
    _content(db, done, "Pricing", "Our price list: every price includes tax.")
    _content(db, done, "Pricing copy", "Our price list: every price includes tax.")
    _content(db, done, "Support", "Contact support by email.")
    _content(db, pending, "Refunds", "Refund refund refund price price price price")

    results = search_similar_content(db, chatbot.id, "What is the price?", limit=3)

    titles = [row.title for row in results]
    assert titles[0] in {"Pricing", "Pricing copy"}
    assert len({"Pricing", "Pricing copy"} & set(titles)) == 1
    assert "Refunds" not in titles
    assert len(titles) == 3
    assert search_similar_content(db, chatbot.id, "   ") == []


def test_website_context_format(db, chatbot):
    done = _source(db, chatbot, status=SourceStatus.COMPLETED)
    _content(db, done, "Support", "Contact support by email. " * 40)

    context = build_website_context(db, chatbot.id, "How do I reach support?")

    assert context.startswith("[1] Support\nContact support by email.")
    assert context.endswith("...")
    assert len(context.split("\n", 1)[1]) == 503


def test_website_context_survives_embedding_errors(db, chatbot, monkeypatch):
    done = _source(db, chatbot, status=SourceStatus.COMPLETED)
    _content(db, done, "Support", "Contact support by email.")

    def _fail(text):
        raise RuntimeError("down")

    monkeypatch.setattr(knowledge, "embed_query", _fail)

    assert build_website_context(db, chatbot.id, "support") == ""


def test_chunks_pack_sentences_and_split_long_words():
    text = "First sentence here. Second one!  Third?\n" + "x" * 25
    chunks = split_into_chunks(text, max_chars=24)

    assert chunks == ["First sentence here.", "Second one! Third?", "x" * 24, "x"]
    assert all(len(chunk) <= 24 for chunk in chunks)
    assert split_into_chunks("   ") == []


@pytest.fixture
def queued_scans(monkeypatch):
    calls = []
    monkeypatch.setattr(websites, "run_source_scan", calls.append)
    return calls


def test_website_source_api(auth_client, queued_scans):
    bot = create_chatbot(auth_client)
    base = f"/api/chatbots/{bot['guid']}/website-sources"

    created = auth_client.post(base, json={"url": "shop.example.com", "max_pages": 5})
    assert created.status_code == 201
    source = created.json()
    assert source["url"] == "https://shop.example.com"
    assert source["status"] == "pending"
    assert queued_scans == [source["id"]]

    assert auth_client.post(base, json={"source_type": "text"}).status_code == 422
    assert auth_client.post(base, json={"source_type": "website"}).status_code == 422

    rescanned = auth_client.post(f"{base}/{source['id']}/rescan")
    assert rescanned.json()["status"] == "pending"
    assert queued_scans == [source["id"], source["id"]]

    assert [s["id"] for s in auth_client.get(base).json()] == [source["id"]]
    assert auth_client.delete(f"{base}/{source['id']}").json() == {"success": True}
    assert auth_client.post(f"{base}/{source['id']}/rescan").status_code == 404


def test_rescan_refused_while_scanning(auth_client, db, queued_scans):
    bot = create_chatbot(auth_client)
    base = f"/api/chatbots/{bot['guid']}/website-sources"
    source_id = auth_client.post(base, json={"url": BASE}).json()["id"]
    db.query(WebsiteSource).filter(WebsiteSource.id == source_id).update({WebsiteSource.status: SourceStatus.SCANNING})
    db.commit()

    response = auth_client.post(f"{base}/{source_id}/rescan")

    assert response.status_code == 400
    assert queued_scans == [source_id]
