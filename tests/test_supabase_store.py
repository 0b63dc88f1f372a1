"""Tests for the Supabase store against a mocked HTTP transport."""
import json
import time

import httpx
import pytest

from lingoflip.errors import AuthError, DuplicateTopicError, NotFoundError, PersistenceError
from lingoflip.models import AuthSession, User
from lingoflip.store import SIGNED_IN, SessionFile
from lingoflip.supabase_store import SupabaseStore

BASE_URL = "https://project.supabase.co"


def _token_body(access="access-1", refresh="refresh-1"):
    return {
        "access_token": access,
        "refresh_token": refresh,
        "expires_in": 3600,
        "user": {"id": "user-1", "email": "ana@example.com"},
    }


def _store(handler, tmp_path):
    client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return SupabaseStore(BASE_URL, "anon-key", session_path=tmp_path / "session.json", http_client=client)


def _signed_in(store):
    session = AuthSession(access_token="access-1", refresh_token="refresh-1",
                          expires_at=int(time.time()) + 3600, user=User("user-1", "ana@example.com"))
    store._store_session(session)
    return session


def test_sign_in_stores_session_and_emits(tmp_path):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=_token_body())

    store = _store(handler, tmp_path)
    events = []
    store.on_auth_state_change(lambda event, session: events.append(event))
    session = store.sign_in("ana@example.com", "secret123")

    assert session.user.id == "user-1"
    assert session.expires_at > time.time()
    assert events == [SIGNED_IN]
    assert requests[0].url.path == "/auth/v1/token"
    assert requests[0].url.params["grant_type"] == "password"
    assert requests[0].headers["apikey"] == "anon-key"
    assert SessionFile(tmp_path / "session.json").load() == session


def test_sign_in_bad_credentials(tmp_path):
    store = _store(lambda r: httpx.Response(400, json={"error": "invalid_grant",
                                                       "error_description": "Invalid login credentials"}), tmp_path)
    with pytest.raises(AuthError, match="Invalid login credentials"):
        store.sign_in("ana@example.com", "nope")


def test_sign_up_pending_confirmation_returns_none(tmp_path):
    store = _store(lambda r: httpx.Response(200, json={"id": "user-1", "email": "ana@example.com"}), tmp_path)
    assert store.sign_up("ana@example.com", "secret123") is None
    assert store.get_session() is None


def test_list_topics_reads_counts(tmp_path):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[
            {"id": "t2", "user_id": "user-1", "name": "Cooking", "created_at": "2024-02-01",
             "flashcards": [{"count": 4}]},
            {"id": "t1", "user_id": "user-1", "name": "Travel", "created_at": "2024-01-01",
             "flashcards": []},
        ])

    store = _store(handler, tmp_path)
    _signed_in(store)
    topics = store.list_topics("user-1")

    assert [t.flashcard_count for t in topics] == [4, 0]
    assert seen["auth"] == "Bearer access-1"
    assert seen["params"]["user_id"] == "eq.user-1"
    assert seen["params"]["order"] == "created_at.desc"


def test_add_topic_duplicate(tmp_path):
    store = _store(lambda r: httpx.Response(409, json={
        "code": "23505", "message": "duplicate key value violates unique constraint"}), tmp_path)
    _signed_in(store)
    with pytest.raises(DuplicateTopicError, match='"Travel" already exists'):
        store.add_topic("user-1", "Travel")


def test_add_topic_sends_representation_header(tmp_path):
    seen = {}

    def handler(request):
        seen["prefer"] = request.headers["Prefer"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "t1", "user_id": "user-1", "name": "Travel"}])

    store = _store(handler, tmp_path)
    _signed_in(store)
    topic = store.add_topic("user-1", "Travel")
    assert topic.name == "Travel"
    assert seen["prefer"] == "return=representation"
    assert seen["body"] == [{"user_id": "user-1", "name": "Travel"}]


def test_update_flashcard_no_rows(tmp_path):
    store = _store(lambda r: httpx.Response(406, json={"code": "PGRST116", "message": "no rows"}), tmp_path)
    _signed_in(store)
    with pytest.raises(NotFoundError):
        store.update_flashcard("f1", {"word": "x"})


def test_expired_token_refreshed_once(tmp_path):
    calls = []

    def handler(request):
        calls.append((request.url.path, request.headers["Authorization"]))
        if request.url.path == "/auth/v1/token":
            return httpx.Response(200, json=_token_body(access="access-2"))
        if request.headers["Authorization"] == "Bearer access-1":
            return httpx.Response(401, json={"message": "JWT expired"})
        return httpx.Response(200, json=[])

    store = _store(handler, tmp_path)
    _signed_in(store)
    assert store.list_flashcards("t1") == []
    assert calls == [
        ("/rest/v1/flashcards", "Bearer access-1"),
        ("/auth/v1/token", "Bearer anon-key"),
        ("/rest/v1/flashcards", "Bearer access-2"),
    ]
    assert store.get_session().access_token == "access-2"


def test_network_error_becomes_persistence_error(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler, tmp_path)
    _signed_in(store)
    with pytest.raises(PersistenceError, match="Network error"):
        store.list_topics("user-1")


def test_rest_requires_session(tmp_path):
    store = _store(lambda r: httpx.Response(200, json=[]), tmp_path)
    with pytest.raises(AuthError):
        store.list_topics("user-1")


def test_add_flashcards_empty_batch_skips_request(tmp_path):
    def handler(request):
        raise AssertionError("no request expected")

    store = _store(handler, tmp_path)
    assert store.add_flashcards([]) == []


def _write_session(tmp_path, expires_at, refresh="refresh-1"):
    SessionFile(tmp_path / "session.json").save(AuthSession(
        access_token="access-1", refresh_token=refresh, expires_at=expires_at,
        user=User("user-1", "old@example.com"),
    ))


def test_restored_session_checked_against_user_endpoint(tmp_path):
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={"id": "user-1", "email": "ana@example.com"})

    _write_session(tmp_path, int(time.time()) + 3600)
    store = _store(handler, tmp_path)
    session = store.get_session()
    assert paths == ["/auth/v1/user"]
    assert session.user.email == "ana@example.com"
    # validated once per run
    store.get_session()
    assert paths == ["/auth/v1/user"]


def test_revoked_session_without_refresh_token_is_dropped(tmp_path):
    _write_session(tmp_path, int(time.time()) + 3600, refresh="")
    store = _store(lambda r: httpx.Response(401, json={"msg": "invalid JWT"}), tmp_path)
    assert store.get_session() is None
    assert not (tmp_path / "session.json").exists()


def test_expired_restored_session_is_refreshed(tmp_path):
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json=_token_body(access="access-2"))

    _write_session(tmp_path, int(time.time()) - 10)
    store = _store(handler, tmp_path)
    assert store.get_session().access_token == "access-2"
    assert paths == ["/auth/v1/token"]
