"""Supabase store: GoTrue auth and PostgREST tables over HTTP."""
import logging
import time
from pathlib import Path
from typing import Any, Optional

import httpx

from lingoflip.errors import AuthError, DuplicateTopicError, NotFoundError, PersistenceError
from lingoflip.models import AuthSession, Flashcard, Topic, User, EDITABLE_FLASHCARD_FIELDS
from lingoflip.store import SIGNED_IN, SIGNED_OUT, AuthEvents, SessionFile

logger = logging.getLogger(__name__)

FLASHCARD_COLUMNS = "id,user_id,topic_id,word,definition,example_sentence,created_at,updated_at"
TOPIC_COLUMNS = "*,flashcards(count)"
UNIQUE_VIOLATION = "23505"
NO_ROWS = "PGRST116"


def _topic(data: dict) -> Topic:
    counts = data.get("flashcards") or []
    return Topic(
        id=str(data["id"]),
        user_id=str(data["user_id"]),
        name=data["name"],
        created_at=data.get("created_at") or "",
        flashcard_count=counts[0].get("count", 0) if counts else 0,
    )


def _flashcard(data: dict) -> Flashcard:
    return Flashcard(
        id=str(data["id"]),
        topic_id=str(data["topic_id"]),
        user_id=str(data["user_id"]),
        word=data["word"],
        definition=data["definition"],
        example_sentence=data["example_sentence"],
        created_at=data.get("created_at") or "",
        updated_at=data.get("updated_at") or "",
    )


def _error_message(response: httpx.Response) -> tuple[str, str]:
    """Pull (code, message) out of a GoTrue or PostgREST error body."""
    try:
        body = response.json()
    except ValueError:
        return "", response.text or f"HTTP {response.status_code}"
    if not isinstance(body, dict):
        return "", str(body)
    code = str(body.get("code") or body.get("error_code") or body.get("error") or "")
    message = (
        body.get("msg") or body.get("message") or body.get("error_description")
        or body.get("error") or f"HTTP {response.status_code}"
    )
    return code, str(message)


class SupabaseStore(AuthEvents):
    def __init__(
        self,
        url: str,
        anon_key: str,
        session_path: Optional[Path] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__()
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.sessions = SessionFile(session_path)
        self._session: Optional[AuthSession] = None
        self._client = http_client or httpx.Client(base_url=self.url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    # --- HTTP plumbing ---

    def _headers(self, token: Optional[str] = None, **extra: str) -> dict:
        headers = {"apikey": self.anon_key, "Authorization": f"Bearer {token or self.anon_key}"}
        headers.update(extra)
        return headers

    def _send(self, method: str, path: str, token: Optional[str] = None, headers: Optional[dict] = None,
              **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(
                method, path, headers=self._headers(token, **(headers or {})), **kwargs,
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise PersistenceError(f"Network error talking to Supabase: {e}") from e

    def _auth_request(self, method: str, path: str, token: Optional[str] = None, **kwargs: Any) -> dict:
        response = self._send(method, f"/auth/v1{path}", token=token, **kwargs)
        if response.status_code in (400, 401, 403, 422):
            _, message = _error_message(response)
            raise AuthError(message)
        if response.is_error:
            _, message = _error_message(response)
            raise PersistenceError(message)
        return response.json() if response.content else {}

    def _rest(self, method: str, table: str, params: Optional[dict] = None,
              headers: Optional[dict] = None, **kwargs: Any) -> Any:
        """Authenticated PostgREST call, refreshing an expired token once."""
        session = self._require_session()
        path = f"/rest/v1/{table}"
        response = self._send(method, path, token=session.access_token, headers=headers, params=params, **kwargs)
        if response.status_code == 401 and session.refresh_token:
            session = self._refresh(session)
            response = self._send(method, path, token=session.access_token, headers=headers, params=params, **kwargs)
        if response.is_error:
            code, message = _error_message(response)
            if code == NO_ROWS:
                raise NotFoundError(message)
            if code == UNIQUE_VIOLATION:
                payload = kwargs.get("json")
                row = payload[0] if isinstance(payload, list) and payload else payload or {}
                raise DuplicateTopicError(row.get("name", ""))
            logger.warning("Supabase %s %s -> %s %s", method, table, response.status_code, message)
            raise PersistenceError(message)
        return response.json() if response.content else None

    def _require_session(self) -> AuthSession:
        session = self._session or self.sessions.load()
        if session is None:
            raise AuthError("You must be logged in.")
        self._session = session
        return session

    def _session_from(self, data: dict) -> AuthSession:
        user = data.get("user") or {}
        expires_in = data.get("expires_in")
        return AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_at=data.get("expires_at") or (int(time.time()) + int(expires_in) if expires_in else None),
            user=User(id=str(user.get("id", "")), email=user.get("email") or ""),
        )

    def _store_session(self, session: AuthSession) -> None:
        self._session = session
        self.sessions.save(session)

    def _refresh(self, session: AuthSession) -> AuthSession:
        logger.info("Refreshing Supabase access token")
        data = self._auth_request(
            "POST", "/token", params={"grant_type": "refresh_token"},
            json={"refresh_token": session.refresh_token},
        )
        refreshed = self._session_from(data)
        self._store_session(refreshed)
        return refreshed

    # --- Auth ---

    def get_user(self, session: AuthSession) -> User:
        data = self._auth_request("GET", "/user", token=session.access_token)
        return User(id=str(data.get("id", session.user.id)), email=data.get("email") or session.user.email)

    def get_session(self) -> Optional[AuthSession]:
        restored = self._session is None
        session = self._session or self.sessions.load()
        if session is None:
            return None
        if restored and not (session.expires_at and session.expires_at <= time.time()):
            # a session file from an earlier run may have been revoked server-side
            try:
                session.user = self.get_user(session)
            except AuthError:
                if not session.refresh_token:
                    self.sessions.clear()
                    return None
                session.expires_at = 0
        if session.expires_at is not None and session.expires_at <= time.time():
            if not session.refresh_token:
                self.sessions.clear()
                return None
            try:
                session = self._refresh(session)
            except AuthError:
                logger.info("Stored session could not be refreshed")
                self._session = None
                self.sessions.clear()
                return None
        self._session = session
        return session

    def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        data = self._auth_request("POST", "/signup", json={"email": email, "password": password})
        if data.get("access_token"):
            session = self._session_from(data)
            self._store_session(session)
            self._emit(SIGNED_IN, session)
            return session
        # Email confirmation pending: no session yet.
        return None

    def sign_in(self, email: str, password: str) -> AuthSession:
        data = self._auth_request(
            "POST", "/token", params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = self._session_from(data)
        self._store_session(session)
        self._emit(SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        session = self._session or self.sessions.load()
        if session:
            try:
                self._auth_request("POST", "/logout", token=session.access_token)
            except AuthError:
                logger.info("Session already expired on the server")
        self._session = None
        self.sessions.clear()
        self._emit(SIGNED_OUT, None)

    # --- Topics ---

    def list_topics(self, user_id: str) -> list[Topic]:
        rows = self._rest("GET", "topics", params={
            "select": TOPIC_COLUMNS, "user_id": f"eq.{user_id}", "order": "created_at.desc",
        })
        return [_topic(r) for r in rows or []]

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        rows = self._rest("GET", "topics", params={"select": TOPIC_COLUMNS, "id": f"eq.{topic_id}"})
        return _topic(rows[0]) if rows else None

    def add_topic(self, user_id: str, name: str) -> Topic:
        rows = self._rest(
            "POST", "topics", params={"select": TOPIC_COLUMNS},
            headers={"Prefer": "return=representation"},
            json=[{"user_id": user_id, "name": name}],
        )
        if not rows:
            raise PersistenceError("Topic insert returned no data.")
        return _topic(rows[0])

    def delete_topic(self, topic_id: str) -> None:
        self._rest("DELETE", "topics", params={"id": f"eq.{topic_id}"})

    # --- Flashcards ---

    def list_flashcards(self, topic_id: str) -> list[Flashcard]:
        rows = self._rest("GET", "flashcards", params={
            "select": FLASHCARD_COLUMNS, "topic_id": f"eq.{topic_id}", "order": "created_at.asc",
        })
        return [_flashcard(r) for r in rows or []]

    def add_flashcards(self, rows: list[dict]) -> list[Flashcard]:
        if not rows:
            return []
        saved = self._rest(
            "POST", "flashcards", params={"select": FLASHCARD_COLUMNS},
            headers={"Prefer": "return=representation"}, json=rows,
        )
        return [_flashcard(r) for r in saved or []]

    def update_flashcard(self, flashcard_id: str, updates: dict) -> Flashcard:
        fields = {k: v for k, v in updates.items() if k in EDITABLE_FLASHCARD_FIELDS}
        rows = self._rest(
            "PATCH", "flashcards", params={"select": FLASHCARD_COLUMNS, "id": f"eq.{flashcard_id}"},
            headers={"Prefer": "return=representation"}, json=fields,
        )
        if not rows:
            raise NotFoundError("Flashcard not found or update failed to return data.")
        return _flashcard(rows[0])

    def delete_flashcard(self, flashcard_id: str) -> None:
        self._rest("DELETE", "flashcards", params={"id": f"eq.{flashcard_id}"})

    def list_definitions(self, topic_id: str) -> list[str]:
        rows = self._rest("GET", "flashcards", params={"select": "definition", "topic_id": f"eq.{topic_id}"})
        return [r["definition"] for r in rows or []]
