import logging
from math import sqrt
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..enums import SourceStatus
from ..models import WebsiteContent, WebsiteSource
from .chunking import split_into_chunks, word_count
from .embeddings import embed_query, embed_texts

logger = logging.getLogger(__name__)

_DEDUPE_PREFIX_CHARS = 300
_CONTEXT_SNIPPET_CHARS = 500
_CANDIDATE_LIMIT = 500


def _cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    if not left or not right:
        return 0.0

    dot = sum(l * r for l, r in zip(left, right))
    norm_left = sqrt(sum(l * l for l in left))
    norm_right = sqrt(sum(r * r for r in right))
    denom = norm_left * norm_right
    if denom == 0:
        return 0.0
    return dot / denom


def store_page_content(
    db: Session,
    source: WebsiteSource,
    *,
    url: Optional[str],
    title: str,
    text: str,
    content_type: str = "page",
) -> int:
    """Chunk and embed one page (or text block) of a source. Returns rows written."""

    chunks = split_into_chunks(text)
    if not chunks:
        return 0
    embeddings = embed_texts(chunks)
    for position, (chunk_text, embedding) in enumerate(zip(chunks, embeddings)):
        db.add(
            WebsiteContent(
                website_source_id=source.id,
                url=url,
                title=title if position == 0 else f"{title} (Part {position + 1})",
                content=chunk_text,
                content_type=content_type,
                word_count=word_count(chunk_text),
                embedding=embedding,
            )
        )
    db.flush()
    return len(chunks)


def clear_source_content(db: Session, source_id: int) -> None:
    db.query(WebsiteContent).filter(WebsiteContent.website_source_id == source_id).delete(
        synchronize_session=False
    )


def search_similar_content(
    db: Session, chatbot_config_id: int, query: str, limit: int = 3
) -> List[WebsiteContent]:
    """Rank indexed content of completed sources by cosine similarity to ``query``."""

    stmt = (
        select(WebsiteContent)
        .join(WebsiteSource, WebsiteContent.website_source_id == WebsiteSource.id)
        .where(
            WebsiteSource.chatbot_config_id == chatbot_config_id,
            WebsiteSource.status == SourceStatus.COMPLETED,
            WebsiteContent.embedding.is_not(None),
        )
        .order_by(WebsiteContent.updated_at.desc())
        .limit(_CANDIDATE_LIMIT)
    )
    candidates = list(db.scalars(stmt))
    if not candidates or not query.strip():
        return []

    query_embedding = embed_query(query)
    scored = sorted(
        ((_cosine_similarity(row.embedding or [], query_embedding), row) for row in candidates),
        key=lambda item: item[0],
        reverse=True,
    )

    results: List[WebsiteContent] = []
    seen: set[str] = set()
    for _, row in scored:
        fingerprint = row.content[:_DEDUPE_PREFIX_CHARS].lower()
        if fingerprint in seen:
            continue
        seen.add(fingerprint)
        results.append(row)
        if len(results) >= limit:
            break
    return results


def build_website_context(db: Session, chatbot_config_id: int, query: str) -> str:
    try:
        rows = search_similar_content(db, chatbot_config_id, query, limit=3)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Website context lookup failed: %s", exc)
        return ""
    blocks = []
    for idx, row in enumerate(rows, start=1):
        blocks.append(f"[{idx}] {row.title or row.url or 'Untitled'}\n{row.content[:_CONTEXT_SNIPPET_CHARS]}...")
    return "\n\n".join(blocks)
