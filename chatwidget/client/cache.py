import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class SessionState:
    messages: List[Dict[str, Any]] = field(default_factory=list)
    is_typing: bool = False
    read_only: bool = False
    limit_info: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    chatbot_inactive: bool = False


class MessageCache:
    """Client-side view of each session's conversation, fed by stream events."""

    def __init__(self):
        self._sessions: Dict[str, SessionState] = {}
        self._temp_ids = itertools.count(1)

    def state(self, session_id: str) -> SessionState:
        return self._sessions.setdefault(session_id, SessionState())

    def messages(self, session_id: str) -> List[Dict[str, Any]]:
        return [m for m in self.state(session_id).messages if m.get("messageType") != "system"]

    def set_messages(self, session_id: str, messages: List[Dict[str, Any]]) -> None:
        self.state(session_id).messages = list(messages)

    def add_optimistic_user_message(self, session_id: str, content: str) -> Dict[str, Any]:
        message = {
            "id": -next(self._temp_ids),
            "sessionId": session_id,
            "content": content,
            "sender": "user",
            "messageType": "text",
            "metadata": {"isOptimistic": True},
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        state = self.state(session_id)
        state.messages.append(message)
        state.is_typing = True
        state.error = None
        return message

    def _drop_optimistic(self, state: SessionState) -> None:
        state.messages = [
            m
            for m in state.messages
            if not (m.get("sender") == "user" and (m.get("metadata") or {}).get("isOptimistic"))
        ]

    def _append_unique(self, state: SessionState, message: Dict[str, Any]) -> bool:
        message_id = message.get("id")
        if message_id is not None and any(m.get("id") == message_id for m in state.messages):
            return False
        state.messages.append(message)
        return True

    def apply_event(self, session_id: str, event: Dict[str, Any]) -> None:
        state = self.state(session_id)
        event_type = event.get("type")

        if event_type == "user_message":
            message = event.get("message")
            if isinstance(message, dict):
                self._drop_optimistic(state)
                self._append_unique(state, message)
        elif event_type == "bubble":
            message = event.get("message")
            if isinstance(message, dict):
                if message.get("sender") == "user":
                    self._drop_optimistic(state)
                self._append_unique(state, message)
        elif event_type == "limit_exceeded":
            state.read_only = bool(event.get("readOnlyMode", True))
            state.limit_info = {
                "message": event.get("message"),
                "showContactForm": bool(event.get("showContactForm")),
                "chatbotConfig": event.get("chatbotConfig"),
            }
            state.is_typing = False
        elif event_type in {"complete", "end"}:
            state.is_typing = False
        elif event_type == "error":
            state.error = event.get("message") or "Unknown error"
            state.is_typing = False
        elif event_type == "chatbot_inactive":
            state.chatbot_inactive = True
            state.is_typing = False
