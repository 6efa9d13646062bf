import re
from typing import Iterator, List

_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE_RE = re.compile(r"\s+")


def _words_window(sentence: str, max_chars: int) -> Iterator[str]:
    """Yield <= max_chars slices of an overlong sentence, breaking on spaces when possible."""

    buffer = ""
    for word in sentence.split(" "):
        while len(word) > max_chars:
            if buffer:
                yield buffer
                buffer = ""
            yield word[:max_chars]
            word = word[max_chars:]
        candidate = f"{buffer} {word}" if buffer else word
        if len(candidate) > max_chars:
            yield buffer
            buffer = word
        else:
            buffer = candidate
    if buffer:
        yield buffer


def split_into_chunks(text: str, max_chars: int = 1000) -> List[str]:
    """Pack whole sentences into chunks of at most ``max_chars`` characters."""

    cleaned = _WHITESPACE_RE.sub(" ", text or "").strip()
    if not cleaned:
        return []

    chunks: List[str] = []
    current = ""
    for sentence in _SENTENCE_END_RE.split(cleaned):
        pieces = [sentence] if len(sentence) <= max_chars else list(_words_window(sentence, max_chars))
        for piece in pieces:
            if current and len(current) + 1 + len(piece) > max_chars:
                chunks.append(current)
                current = piece
            else:
                current = f"{current} {piece}" if current else piece
    if current:
        chunks.append(current)
    return chunks


def word_count(text: str) -> int:
    return len(text.split())
