from __future__ import annotations

import itertools
import os

# Cheap hashes keep the suite fast; set before pairchat reads its config
os.environ.setdefault("PAIRCHAT_BCRYPT_ROUNDS", "4")

import pytest

from pairchat.app import ChatApp
from pairchat.auth import LocalAuthProvider
from pairchat.storage import DocumentStore


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"u{next(counter)}"


@pytest.fixture
def store(tmp_path):
    s = DocumentStore(tmp_path / "store.db")
    yield s
    s.close()


@pytest.fixture
def auth(tmp_path):
    provider = LocalAuthProvider(tmp_path / "auth.db", id_factory=sequential_ids())
    yield provider
    provider.close()


@pytest.fixture
async def app(tmp_path):
    chat = await ChatApp.open(
        tmp_path / "store.db",
        tmp_path / "auth.db",
        tmp_path / "session.json",
        id_factory=sequential_ids(),
    )
    yield chat
    chat.close()


@pytest.fixture
async def alice_and_bob(app):
    """Sign up Alice (u1) and Bob (u2), leaving Alice signed in."""
    assert (await app.session.sign_up("a@x.com", "secret1", "Alice")).ok
    assert (await app.session.sign_up("b@x.com", "secret2", "Bob")).ok
    assert (await app.session.login("a@x.com", "secret1")).ok
    return app
