"""Persistence client contract shared by the local and Supabase backends."""
import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Protocol

from lingoflip.models import AuthSession, Flashcard, Topic

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthCallback = Callable[[str, Optional[AuthSession]], None]


class Store(Protocol):
    def get_session(self) -> Optional[AuthSession]: ...
    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]: ...
    def sign_up(self, email: str, password: str) -> Optional[AuthSession]: ...
    def sign_in(self, email: str, password: str) -> AuthSession: ...
    def sign_out(self) -> None: ...

    def list_topics(self, user_id: str) -> list[Topic]: ...
    def get_topic(self, topic_id: str) -> Optional[Topic]: ...
    def add_topic(self, user_id: str, name: str) -> Topic: ...
    def delete_topic(self, topic_id: str) -> None: ...

    def list_flashcards(self, topic_id: str) -> list[Flashcard]: ...
    def add_flashcards(self, rows: list[dict]) -> list[Flashcard]: ...
    def update_flashcard(self, flashcard_id: str, updates: dict) -> Flashcard: ...
    def delete_flashcard(self, flashcard_id: str) -> None: ...
    def list_definitions(self, topic_id: str) -> list[str]: ...

    def close(self) -> None: ...


class AuthEvents:
    """Fan-out of sign-in / sign-out notifications to subscribers."""

    def __init__(self) -> None:
        self._listeners: list[AuthCallback] = []

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, session: Optional[AuthSession]) -> None:
        logger.debug("Auth event %s", event)
        for listener in list(self._listeners):
            listener(event, session)


class SessionFile:
    """The current session persisted as JSON so a restart stays signed in."""

    def __init__(self, path: Optional[Path]) -> None:
        self.path = Path(path) if path else None

    def load(self) -> Optional[AuthSession]:
        if not self.path or not self.path.exists():
            return None
        try:
            return AuthSession.from_dict(json.loads(self.path.read_text()))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None

    def save(self, session: AuthSession) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(session.to_dict()))
        os.chmod(self.path, 0o600)

    def clear(self) -> None:
        if self.path and self.path.exists():
            self.path.unlink()


def flashcard_row(topic_id: str, user_id: str, word: str, definition: str, example_sentence: str) -> dict:
    """Row shape accepted by ``Store.add_flashcards``."""
    return {
        "topic_id": topic_id,
        "user_id": user_id,
        "word": word,
        "definition": definition,
        "example_sentence": example_sentence,
    }
