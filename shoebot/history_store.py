from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from .document_store import Document, JsonDocumentStore, parse_document
from .models import Awaiting, ChatHistory, ChatMessage, utcnow


class HistoryStore:
    """Chat transcript and conversation state, one document per user."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._docs = JsonDocumentStore(path)

    def get(self, user_id: str) -> ChatHistory:
        """Stored history, or an empty unsaved one for a new user."""
        document = self._docs.get(user_id)
        if not document:
            return ChatHistory(user_id=user_id)
        return parse_document(ChatHistory, document, "chat_history")

    def append(self, user_id: str, messages: List[ChatMessage], awaiting: Optional[Awaiting] = None) -> ChatHistory:
        """Purpose: Append a turn's messages and the new state in one write.
        Inputs/Outputs: Inputs are user_id, messages, and the awaiting state to store;
            returns the updated ChatHistory.
        Side Effects / State: Creates the history document on first use.
        Dependencies: JsonDocumentStore.find_and_modify.
        Failure Modes: StoreError leaves the previous history untouched.
        If Removed: Turns are not remembered and every message looks like the first.
        Testing Notes: Append two messages and verify order and awaiting state.
        """

        def update(current: Optional[Document]) -> Document:
            if current:
                history = parse_document(ChatHistory, current, "chat_history")
            else:
                history = ChatHistory(user_id=user_id)
            history.messages.extend(messages)
            history.awaiting = awaiting or Awaiting()
            history.updated_at = utcnow()
            return history.model_dump(mode="json")

        return parse_document(ChatHistory, self._docs.find_and_modify(user_id, update), "chat_history")
