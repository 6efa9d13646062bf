import logging
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from .cache import MessageCache
from .frames import FrameDecoder

logger = logging.getLogger(__name__)

EventCallback = Callable[[Dict[str, Any]], None]


class ChatClient:
    """Python counterpart of the widget's chat transport.

    Pass a base URL, or any client with the ``httpx.Client`` API (a FastAPI
    ``TestClient`` works too) to share its connection pool and base URL.
    """

    def __init__(
        self,
        base_url: Union[str, httpx.Client],
        cache: Optional[MessageCache] = None,
        timeout: float = 60.0,
    ):
        if hasattr(base_url, "stream"):
            self._http = base_url
            self._owns_http = False
        else:
            self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
            self._owns_http = True
        self.cache = cache or MessageCache()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ChatClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def ensure_session(self, session_id: str, chatbot_config_id: Optional[int] = None) -> Dict[str, Any]:
        response = self._http.post(
            "/api/chat/session",
            json={"sessionId": session_id, "chatbotConfigId": chatbot_config_id},
        )
        response.raise_for_status()
        return response.json()

    def get_messages(self, session_id: str) -> List[Dict[str, Any]]:
        response = self._http.get(f"/api/chat/{session_id}/messages")
        response.raise_for_status()
        messages = response.json().get("messages", [])
        self.cache.set_messages(session_id, messages)
        return self.cache.messages(session_id)

    def send_streaming_message(
        self,
        session_id: str,
        content: str,
        *,
        chatbot_config_id: Optional[int] = None,
        internal_message: bool = False,
        skip_optimistic: bool = False,
        on_bubble: Optional[EventCallback] = None,
        on_complete: Optional[EventCallback] = None,
        on_error: Optional[EventCallback] = None,
    ) -> List[Dict[str, Any]]:
        """Post a message and consume the event stream. Returns every decoded event."""

        if not skip_optimistic and not internal_message:
            self.cache.add_optimistic_user_message(session_id, content)

        body = {"content": content, "internalMessage": internal_message}
        if chatbot_config_id is not None:
            body["chatbotConfigId"] = chatbot_config_id

        decoder = FrameDecoder()
        events: List[Dict[str, Any]] = []
        try:
            with self._http.stream("POST", f"/api/chat/{session_id}/messages/stream", json=body) as response:
                if response.status_code >= 400:
                    response.read()
                    event = {"type": "error", "message": f"HTTP {response.status_code}", "status": response.status_code}
                    self._dispatch(session_id, event, events, on_bubble, on_complete, on_error)
                    return events
                for chunk in response.iter_bytes():
                    for event in decoder.feed(chunk):
                        self._dispatch(session_id, event, events, on_bubble, on_complete, on_error)
            for event in decoder.flush():
                self._dispatch(session_id, event, events, on_bubble, on_complete, on_error)
        except httpx.HTTPError as exc:
            logger.warning("Chat stream interrupted | session=%s: %s", session_id, exc)
            self._dispatch(session_id, {"type": "error", "message": str(exc)}, events, on_bubble, on_complete, on_error)
        return events

    def _dispatch(
        self,
        session_id: str,
        event: Dict[str, Any],
        events: List[Dict[str, Any]],
        on_bubble: Optional[EventCallback],
        on_complete: Optional[EventCallback],
        on_error: Optional[EventCallback],
    ) -> None:
        events.append(event)
        self.cache.apply_event(session_id, event)
        event_type = event.get("type")
        if event_type == "bubble" and on_bubble:
            on_bubble(event)
        elif event_type in {"complete", "end"} and on_complete:
            on_complete(event)
        elif event_type == "error" and on_error:
            on_error(event)

    def select_option(
        self,
        session_id: str,
        option_id: str,
        payload: Any = None,
        option_text: Optional[str] = None,
    ) -> Dict[str, Any]:
        response = self._http.post(
            f"/api/chat/{session_id}/select-option",
            json={"optionId": option_id, "payload": payload, "optionText": option_text},
        )
        response.raise_for_status()
        return response.json()

    def submit_form(
        self,
        session_id: str,
        form_data: List[Dict[str, Any]],
        form_title: Optional[str] = None,
    ) -> Dict[str, Any]:
        response = self._http.post(
            f"/api/chat/{session_id}/submit-form",
            json={"formData": form_data, "formTitle": form_title},
        )
        response.raise_for_status()
        return response.json()
