import json

from bambite_client_sdk.models import Role, Session
from bambite_client_sdk.session_store import SessionStore


def _session(role: Role, access: str, refresh: str | None = "refresh") -> Session:
    return Session(role=role, access_token=access, refresh_token=refresh)


def test_set_overwrites_previous_session_for_role(tmp_path):
    store = SessionStore(path=tmp_path / "sessions.json")
    store.set(Role.ADMIN, _session(Role.ADMIN, "first"))
    store.set(Role.ADMIN, _session(Role.ADMIN, "second"))

    assert store.get(Role.ADMIN).access_token == "second"
    assert store.active_roles() == [Role.ADMIN]


def test_roles_are_stored_independently(tmp_path):
    store = SessionStore(path=tmp_path / "sessions.json")
    store.set(Role.ADMIN, _session(Role.ADMIN, "admin-token"))
    store.set(Role.STAFF, _session(Role.STAFF, "staff-token"))

    store.clear(Role.ADMIN)

    assert store.get(Role.ADMIN) is None
    assert store.get(Role.STAFF).access_token == "staff-token"
    assert store.has_active() is True


def test_clear_all_removes_file(tmp_path):
    path = tmp_path / "sessions.json"
    store = SessionStore(path=path)
    store.set(Role.CUSTOMER, _session(Role.CUSTOMER, "c"))

    store.clear()

    assert not path.exists()
    assert store.has_active() is False


def test_update_tokens_keeps_refresh_token_when_not_rotated(tmp_path):
    store = SessionStore(path=tmp_path / "sessions.json")
    store.set(Role.ADMIN, _session(Role.ADMIN, "old", "refresh-1"))

    updated = store.update_tokens(Role.ADMIN, "new", None)

    assert updated.access_token == "new"
    assert updated.refresh_token == "refresh-1"
    assert store.get(Role.ADMIN) == updated


def test_session_survives_a_new_store_instance(tmp_path):
    path = tmp_path / "nested" / "sessions.json"
    SessionStore(path=path).set(Role.STAFF, _session(Role.STAFF, "persisted"))

    assert SessionStore(path=path).get(Role.STAFF).access_token == "persisted"


def test_corrupt_file_is_discarded(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("{not json", encoding="utf-8")
    store = SessionStore(path=path)

    assert store.get(Role.ADMIN) is None
    assert not path.exists()


def test_invalid_entry_is_cleared(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps({"admin": {"role": "superuser"}, "staff": {"role": "staff"}}), encoding="utf-8")
    store = SessionStore(path=path)

    assert store.get(Role.ADMIN) is None
    assert "admin" not in json.loads(path.read_text(encoding="utf-8"))
    assert store.get(Role.STAFF) is not None
