# src/tests/test_storage.py

import os
import stat

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gmail_connector.db      import init_db
from gmail_connector.models  import Token
from gmail_connector.storage import JsonFileTokenStore, SqlTokenStore, token_store_for
from gmail_connector.config  import GmailConfig


def test_json_store_roundtrip(tmp_path):
    store = JsonFileTokenStore(tmp_path, "a@x.com")
    assert store.get() is None

    store.save(Token("A", expires_at=123.0, refresh_token="R", email="a@x.com"))

    assert store.path == tmp_path / "a@x.com.json"
    assert store.get().access_token == "A"
    assert store.get("refresh_token") == "R"
    assert store.get("missing") is None


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_json_store_file_is_private(tmp_path):
    store = JsonFileTokenStore(tmp_path)
    store.save(Token("A"))
    assert stat.S_IMODE(store.path.stat().st_mode) == 0o600


def test_json_store_delete(tmp_path):
    store = JsonFileTokenStore(tmp_path)
    store.save(Token("A"))
    store.delete()
    assert not store.path.exists()
    store.delete()  # nothing left to delete


@pytest.mark.parametrize("content", [
    "{not json",
    '["A"]',
    '{"access_token": "A", "expires_in": [1]}',
    '{"access_token": "A", "expires_at": {"t": 1}}',
])
def test_json_store_ignores_corrupt_file(tmp_path, content):
    store = JsonFileTokenStore(tmp_path)
    store.path.write_text(content, encoding="utf-8")
    assert store.get() is None


def test_json_store_bind_moves_key(tmp_path):
    store = JsonFileTokenStore(tmp_path)
    assert store.path.name == "token.json"
    store.bind("b@x.com")
    assert store.path.name == "b@x.com.json"


def test_token_store_for_uses_token_dir(tmp_path):
    config = GmailConfig("id", "secret", "http://localhost/cb", token_dir=str(tmp_path))
    store = token_store_for(config, "a@x.com")
    assert store.path == tmp_path / "a@x.com.json"


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'tokens.db'}", future=True)
    init_db(engine)
    return sessionmaker(bind=engine, future=True)


def test_sql_store_upserts_per_account(session_factory):
    a = SqlTokenStore("a@x.com", session_factory=session_factory)
    b = SqlTokenStore("b@x.com", session_factory=session_factory)

    a.save(Token("A1", refresh_token="R"))
    a.save(Token("A2", refresh_token="R"))
    b.save(Token("B1"))

    assert a.get().access_token == "A2"
    assert a.get("email") == "a@x.com"
    assert b.get().access_token == "B1"

    a.delete()
    assert a.get() is None
    assert b.get() is not None


def test_sql_store_adopts_first_saved_account(session_factory):
    store = SqlTokenStore(session_factory=session_factory)
    store.save(Token("A", email="new@x.com"))

    assert store.account == "new@x.com"
    assert SqlTokenStore("new@x.com", session_factory=session_factory).get().access_token == "A"
