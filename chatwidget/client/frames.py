"""Server-sent-event style framing for the chat stream.

Every event travels as one ``data: {json}`` line followed by a blank line.
The decoder accepts arbitrary chunk boundaries from the HTTP body: a line is
only parsed once its terminating newline has arrived.
"""

import codecs
import json
import logging
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


def encode_event(event_type: str, **fields: Any) -> str:
    payload = {"type": event_type, **fields}
    return f"{DATA_PREFIX}{json.dumps(payload, default=str)}\n\n"


def _parse_line(line: str) -> Optional[Dict[str, Any]]:
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    raw = line[len(DATA_PREFIX):].strip()
    if not raw:
        return None
    try:
        event = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Skipping unparseable frame: %.80s", raw)
        return None
    return event if isinstance(event, dict) else None


class FrameDecoder:
    """Incremental parser turning body chunks into event dicts."""

    def __init__(self):
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[str, bytes]) -> List[Dict[str, Any]]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        events = []
        for line in lines:
            event = _parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[Dict[str, Any]]:
        """Parse whatever is left once the body has ended."""

        remaining = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        event = _parse_line(remaining)
        return [event] if event is not None else []

    @property
    def pending(self) -> str:
        return self._buffer
