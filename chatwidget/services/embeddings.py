import logging
from typing import Iterable, List

from openai import OpenAI

from ..config import get_settings

logger = logging.getLogger(__name__)
_settings = get_settings()
_client = OpenAI(api_key=_settings.openai_api_key.get_secret_value())

# Keeps each embeddings request comfortably under the API's input limits.
_BATCH_SIZE = 64


def embed_texts(texts: Iterable[str]) -> List[List[float]]:
    """Call the OpenAI embeddings API and return one dense vector per input."""

    items = [text for text in texts]
    vectors: List[List[float]] = []
    for start in range(0, len(items), _BATCH_SIZE):
        batch = items[start : start + _BATCH_SIZE]
        response = _client.embeddings.create(input=batch, model=_settings.embedding_model)
        vectors.extend(item.embedding for item in response.data)
    logger.debug("Embedded %s text(s) with %s", len(items), _settings.embedding_model)
    return vectors


def embed_query(text: str) -> List[float]:
    return embed_texts([text])[0]
