from pathlib import Path
from collections.abc import Callable

import pytest

from bambite_client_sdk.models import Role, Session
from bambite_client_sdk.pipeline import RequestPipeline
from bambite_client_sdk.session_store import SessionStore
from tests.helpers import make_http


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    session_store = SessionStore(path=tmp_path / "sessions.json")
    session_store.set(
        Role.ADMIN,
        Session(role=Role.ADMIN, access_token="old-access", refresh_token="refresh-1", user_summary={"id": "a-1"}),
    )
    return session_store


@pytest.fixture
def pipeline_factory(store: SessionStore):
    def _build(handler: Callable, **kwargs) -> RequestPipeline:
        return RequestPipeline(make_http(handler), store, Role.ADMIN, **kwargs)

    return _build
