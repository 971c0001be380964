"""Tests for the session lifecycle."""

from __future__ import annotations

from pathlib import Path

import pytest

from biocaching.errors import LoginError
from biocaching.session import IDENTITY_KEYS, SessionStore, display_name_from
from biocaching.store import JsonFileStore, MemoryStore

FULL_SESSION = {
    "email": "ola@example.com",
    "token": "tok-123",
    "userId": "7",
    "displayName": "Ola Nordmann",
    "picture": "https://img.biocaching.com/u/7/thumb.jpg",
}

SIGN_IN_RESPONSE: dict = {
    "id": 7,
    "email": "ola@example.com",
    "authentication_token": "tok-123",
    "displayname": "",
    "firstname": "Ola",
    "lastname": "Nordmann",
    "picture": {"thumb": "https://img.biocaching.com/u/7/thumb.jpg"},
}


class TestRestore:
    """restore() accepts complete sessions and wipes partial ones."""

    def test_empty_store_unauthorized(self) -> None:
        sessions = SessionStore(MemoryStore())
        assert sessions.restore() is False
        assert sessions.authorized is False

    def test_complete_session_authorized(self) -> None:
        sessions = SessionStore(MemoryStore(FULL_SESSION))
        assert sessions.restore() is True
        assert sessions.email == "ola@example.com"
        assert sessions.user_id == "7"
        assert sessions.token == "tok-123"
        assert sessions.display_name == "Ola Nordmann"

    @pytest.mark.parametrize("missing", ["email", "token", "userId"])
    def test_missing_required_field_clears_identity(self, missing: str) -> None:
        data = {k: v for k, v in FULL_SESSION.items() if k != missing}
        store = MemoryStore({**data, "language": "nob", "unrelated": "x"})
        sessions = SessionStore(store)

        assert sessions.restore() is False
        for key in IDENTITY_KEYS:
            assert store.get(key) is None
        assert sessions.email is None
        assert sessions.display_name is None

    def test_empty_string_counts_as_missing(self) -> None:
        store = MemoryStore({**FULL_SESSION, "token": ""})
        assert SessionStore(store).restore() is False
        assert store.get("email") is None

    def test_clearing_keeps_language_and_other_keys(self) -> None:
        store = MemoryStore({"email": "ola@example.com", "language": "nob", "unrelated": "x"})
        SessionStore(store).restore()
        assert store.get("language") == "nob"
        assert store.get("unrelated") == "x"

    def test_optional_fields_may_be_missing(self) -> None:
        data = {k: FULL_SESSION[k] for k in ("email", "token", "userId")}
        sessions = SessionStore(MemoryStore(data))
        assert sessions.restore() is True
        assert sessions.picture is None

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[1, 2]", '{"data": [1]}', '"session"'],
    )
    def test_corrupt_file_restores_unauthorized(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "session.json"
        path.write_text(content)

        sessions = SessionStore(JsonFileStore(path))
        assert sessions.restore() is False
        assert sessions.ensure_language("nob") == "nob"

        sessions.apply_login_result(SIGN_IN_RESPONSE)
        assert SessionStore(JsonFileStore(path)).restore() is True


class TestEnsureLanguage:
    """The language preference is seeded once."""

    def test_defaults_to_eng(self) -> None:
        sessions = SessionStore(MemoryStore())
        assert sessions.language == "eng"
        assert sessions.ensure_language() == "eng"

    def test_first_run_persists_default(self) -> None:
        store = MemoryStore()
        assert SessionStore(store).ensure_language("fra") == "fra"
        assert store.get("language") == "fra"

    def test_persisted_value_wins(self) -> None:
        store = MemoryStore({"language": "nob"})
        sessions = SessionStore(store)
        assert sessions.ensure_language("fra") == "nob"
        assert sessions.ensure_language("deu") == "nob"
        assert store.get("language") == "nob"

    def test_persists_across_instances(self) -> None:
        store = MemoryStore()
        SessionStore(store).ensure_language("deu")
        assert SessionStore(store).ensure_language("eng") == "deu"

    def test_survives_session_clear(self) -> None:
        store = MemoryStore({"language": "swe"})
        sessions = SessionStore(store)
        sessions.clear()
        assert sessions.ensure_language("eng") == "swe"


class TestApplyLoginResult:
    """Committing a sign-in response."""

    def test_persists_and_updates_memory(self) -> None:
        store = MemoryStore()
        sessions = SessionStore(store)
        session = sessions.apply_login_result(SIGN_IN_RESPONSE)

        assert session.authorized is True
        assert session.user_id == "7"
        assert store.get("email") == "ola@example.com"
        assert store.get("token") == "tok-123"
        assert store.get("userId") == "7"
        assert store.get("displayName") == "Ola Nordmann"
        assert store.get("picture") == "https://img.biocaching.com/u/7/thumb.jpg"
        assert sessions.authorized is True

    def test_displayname_preferred(self) -> None:
        response = {**SIGN_IN_RESPONSE, "displayname": "olan"}
        session = SessionStore(MemoryStore()).apply_login_result(response)
        assert session.display_name == "olan"

    def test_restorable_afterwards(self) -> None:
        store = MemoryStore()
        SessionStore(store).apply_login_result(SIGN_IN_RESPONSE)
        assert SessionStore(store).restore() is True

    def test_missing_picture_tolerated(self) -> None:
        response = {k: v for k, v in SIGN_IN_RESPONSE.items() if k != "picture"}
        store = MemoryStore({"picture": "old.jpg"})
        session = SessionStore(store).apply_login_result(response)
        assert session.picture is None
        assert store.get("picture") is None

    def test_nameless_response_leaves_display_name_unset(self) -> None:
        response = {**SIGN_IN_RESPONSE, "displayname": "  ", "firstname": None, "lastname": ""}
        store = MemoryStore({"displayName": "Someone Else"})
        session = SessionStore(store).apply_login_result(response)
        assert session.display_name is None
        assert store.get("displayName") is None
        assert session.authorized is True

    def test_incomplete_response_commits_nothing(self) -> None:
        store = MemoryStore()
        response = {k: v for k, v in SIGN_IN_RESPONSE.items() if k != "authentication_token"}
        with pytest.raises(LoginError):
            SessionStore(store).apply_login_result(response)
        assert len(store) == 0

    def test_token_hidden_from_repr(self) -> None:
        session = SessionStore(MemoryStore()).apply_login_result(SIGN_IN_RESPONSE)
        assert "tok-123" not in repr(session)


class TestHelpers:
    """Headers, display names, normalizer binding."""

    def test_display_name_from_names(self) -> None:
        assert display_name_from({"firstname": "Kari", "lastname": "Hansen"}) == "Kari Hansen"

    @pytest.mark.parametrize(
        ("response", "expected"),
        [
            ({}, None),
            ({"displayname": "", "firstname": None, "lastname": None}, None),
            ({"displayname": " ", "firstname": " ", "lastname": ""}, None),
            ({"firstname": "Kari"}, "Kari"),
            ({"lastname": "Hansen"}, "Hansen"),
            ({"displayname": "  kari  "}, "kari"),
        ],
    )
    def test_display_name_from_blanks(self, response: dict, expected: str | None) -> None:
        assert display_name_from(response) == expected

    def test_auth_headers(self) -> None:
        sessions = SessionStore(MemoryStore(FULL_SESSION))
        sessions.restore()
        assert sessions.auth_headers() == {
            "X-User-Email": "ola@example.com",
            "X-User-Token": "tok-123",
        }

    def test_no_auth_headers_when_unauthorized(self) -> None:
        assert SessionStore(MemoryStore()).auth_headers() == {}

    def test_normalizer_bound_to_session(self) -> None:
        sessions = SessionStore(MemoryStore({**FULL_SESSION, "language": "nob"}))
        sessions.restore()
        normalizer = sessions.normalizer()
        assert normalizer.current_user_id == "7"
        assert normalizer.language == "nob"

    def test_file_backed_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        SessionStore(JsonFileStore(path)).apply_login_result(SIGN_IN_RESPONSE)
        sessions = SessionStore(JsonFileStore(path))
        assert sessions.restore() is True
        assert sessions.user_id == "7"
