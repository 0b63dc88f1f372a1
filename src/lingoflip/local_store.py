"""SQLite-backed store: auth, topics and flashcards on the local machine."""
import logging
import secrets
import sqlite3
import uuid
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from pwdlib import PasswordHash

from lingoflip.db import get_connection, init_db
from lingoflip.errors import AuthError, DuplicateTopicError, NotFoundError, PersistenceError
from lingoflip.models import AuthSession, Flashcard, Topic, User, EDITABLE_FLASHCARD_FIELDS
from lingoflip.store import SIGNED_IN, SIGNED_OUT, AuthEvents, SessionFile

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

password_hash = PasswordHash.recommended()

TOPIC_SELECT = """SELECT t.*, (SELECT COUNT(*) FROM flashcards f WHERE f.topic_id = t.id) AS flashcard_count
FROM topics t"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _topic(row) -> Topic:
    return Topic(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        created_at=row["created_at"],
        flashcard_count=row["flashcard_count"],
    )


def _flashcard(row) -> Flashcard:
    return Flashcard(
        id=row["id"],
        topic_id=row["topic_id"],
        user_id=row["user_id"],
        word=row["word"],
        definition=row["definition"],
        example_sentence=row["example_sentence"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class LocalStore(AuthEvents):
    def __init__(self, db_path: Path | str, session_path: Optional[Path] = None, timeout: float = 5.0) -> None:
        super().__init__()
        self.db_path = str(db_path)
        self.timeout = timeout
        self.sessions = SessionFile(session_path)
        self._session: Optional[AuthSession] = None
        try:
            init_db(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open database {self.db_path}: {e}") from e

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection for one operation; any SQLite failure becomes a PersistenceError."""
        try:
            with closing(get_connection(self.db_path, timeout=self.timeout)) as conn:
                yield conn
        except sqlite3.Error as e:
            logger.warning("Database error on %s: %s", self.db_path, e)
            raise PersistenceError(f"Database error: {e}") from e

    def close(self) -> None:
        """Connections are opened per operation, so there is nothing held open."""

    # --- Auth ---

    def get_session(self) -> Optional[AuthSession]:
        if self._session is None:
            self._session = self.sessions.load()
        if self._session is None:
            return None
        with self._connect() as conn:
            row = conn.execute(
                """SELECT u.id, u.email FROM auth_sessions s JOIN users u ON s.user_id = u.id
                WHERE s.access_token = ?""",
                (self._session.access_token,),
            ).fetchone()
        if not row:
            logger.info("Stored session is no longer valid")
            self._session = None
            self.sessions.clear()
            return None
        return self._session

    def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        email = email.strip()
        if "@" not in email:
            raise AuthError("Please enter a valid email address.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
        with self._connect() as conn:
            try:
                conn.execute(
                    "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (str(uuid.uuid4()), email, password_hash.hash(password), _now()),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise AuthError("User already registered") from e
        logger.info("Registered local user %s", email)
        return self.sign_in(email, password)

    def sign_in(self, email: str, password: str) -> AuthSession:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email.strip(),)).fetchone()
            if not row or not password_hash.verify(password, row["password_hash"]):
                raise AuthError("Invalid login credentials")
            token = secrets.token_urlsafe(32)
            conn.execute(
                "INSERT INTO auth_sessions (access_token, user_id, created_at) VALUES (?, ?, ?)",
                (token, row["id"], _now()),
            )
            conn.commit()
        session = AuthSession(access_token=token, user=User(id=row["id"], email=row["email"]))
        self._session = session
        self.sessions.save(session)
        self._emit(SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        session = self._session or self.sessions.load()
        if session:
            with self._connect() as conn:
                conn.execute("DELETE FROM auth_sessions WHERE access_token = ?", (session.access_token,))
                conn.commit()
        self._session = None
        self.sessions.clear()
        self._emit(SIGNED_OUT, None)

    # --- Topics ---

    def list_topics(self, user_id: str) -> list[Topic]:
        with self._connect() as conn:
            rows = conn.execute(
                TOPIC_SELECT + " WHERE t.user_id = ? ORDER BY t.created_at DESC, t.rowid DESC",
                (user_id,),
            ).fetchall()
        return [_topic(r) for r in rows]

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        with self._connect() as conn:
            row = conn.execute(TOPIC_SELECT + " WHERE t.id = ?", (topic_id,)).fetchone()
        return _topic(row) if row else None

    def add_topic(self, user_id: str, name: str) -> Topic:
        topic_id = str(uuid.uuid4())
        with self._connect() as conn:
            try:
                conn.execute(
                    "INSERT INTO topics (id, user_id, name, created_at) VALUES (?, ?, ?, ?)",
                    (topic_id, user_id, name, _now()),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise DuplicateTopicError(name) from e
                raise PersistenceError(str(e)) from e
        return self.get_topic(topic_id)

    def delete_topic(self, topic_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM topics WHERE id = ?", (topic_id,))
            conn.commit()

    # --- Flashcards ---

    def list_flashcards(self, topic_id: str) -> list[Flashcard]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM flashcards WHERE topic_id = ? ORDER BY created_at ASC, rowid ASC",
                (topic_id,),
            ).fetchall()
        return [_flashcard(r) for r in rows]

    def add_flashcards(self, rows: list[dict]) -> list[Flashcard]:
        if not rows:
            return []
        now = _now()
        ids = [str(uuid.uuid4()) for _ in rows]
        with self._connect() as conn:
            try:
                conn.executemany(
                    """INSERT INTO flashcards
                    (id, topic_id, user_id, word, definition, example_sentence, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (card_id, r["topic_id"], r["user_id"], r["word"], r["definition"],
                         r["example_sentence"], now, now)
                        for card_id, r in zip(ids, rows)
                    ],
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise PersistenceError(f"Could not save flashcards: {e}") from e
            placeholders = ",".join("?" for _ in ids)
            saved = conn.execute(
                f"SELECT * FROM flashcards WHERE id IN ({placeholders}) ORDER BY rowid", ids,
            ).fetchall()
        return [_flashcard(r) for r in saved]

    def update_flashcard(self, flashcard_id: str, updates: dict) -> Flashcard:
        fields = {k: v for k, v in updates.items() if k in EDITABLE_FLASHCARD_FIELDS}
        with self._connect() as conn:
            if fields:
                assignments = ", ".join(f"{k} = ?" for k in fields)
                conn.execute(
                    f"UPDATE flashcards SET {assignments}, updated_at = ? WHERE id = ?",
                    (*fields.values(), _now(), flashcard_id),
                )
                conn.commit()
            row = conn.execute("SELECT * FROM flashcards WHERE id = ?", (flashcard_id,)).fetchone()
        if not row:
            raise NotFoundError("Flashcard not found or update failed to return data.")
        return _flashcard(row)

    def delete_flashcard(self, flashcard_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM flashcards WHERE id = ?", (flashcard_id,))
            conn.commit()

    def list_definitions(self, topic_id: str) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT definition FROM flashcards WHERE topic_id = ?", (topic_id,),
            ).fetchall()
        return [r["definition"] for r in rows]
