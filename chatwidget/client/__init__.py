from .cache import MessageCache, SessionState
from .frames import FrameDecoder, encode_event
from .http import ChatClient

__all__ = ["ChatClient", "FrameDecoder", "MessageCache", "SessionState", "encode_event"]
