import asyncio

from pairchat.errors import NotAuthenticated, StoreUnavailable
from pairchat.storage import Query


async def _conversation_docs(app):
    return await app.store.query(Query(collection="conversations"))


async def test_get_or_create_is_idempotent(alice_and_bob):
    app = alice_and_bob
    first = await app.conversations.get_or_create("u1", "u2")
    second = await app.conversations.get_or_create("u2", "u1")
    assert first.value == second.value == "u1_u2"

    docs = await _conversation_docs(app)
    assert len(docs) == 1
    assert set(docs[0].data["participants"]) == {"u1", "u2"}


async def test_concurrent_get_or_create(alice_and_bob):
    app = alice_and_bob
    results = await asyncio.gather(
        app.conversations.get_or_create("u1", "u2"),
        app.conversations.get_or_create("u2", "u1"),
        app.conversations.get_or_create("u1", "u2"),
    )
    assert {r.value for r in results} == {"u1_u2"}
    assert len(await _conversation_docs(app)) == 1


async def test_new_conversation_has_no_preview(alice_and_bob):
    app = alice_and_bob
    conv_id = (await app.conversations.get_or_create("u1", "u2")).unwrap()
    conv = await app.conversations.get(conv_id)
    assert conv.participants == ["u1", "u2"]
    assert conv.last_message_text is None
    assert conv.last_message_at is None


async def test_existing_conversation_is_not_overwritten(alice_and_bob):
    app = alice_and_bob
    conv_id = (await app.conversations.get_or_create("u1", "u2")).unwrap()
    await app.messages.append(conv_id, "u1", "u2", "hello")
    await app.conversations.get_or_create("u2", "u1")
    conv = await app.conversations.get(conv_id)
    assert conv.last_message_text == "hello"


async def test_defaults_to_signed_in_identity(alice_and_bob):
    result = await alice_and_bob.conversations.get_or_create(None, "u2")
    assert result.value == "u1_u2"


async def test_requires_identity(app):
    result = await app.conversations.get_or_create(None, "u2")
    assert isinstance(result.error, NotAuthenticated)
    assert await _conversation_docs(app) == []


async def test_store_failure_is_reported(alice_and_bob, monkeypatch):
    app = alice_and_bob

    async def broken_get(path):
        raise StoreUnavailable("offline")

    monkeypatch.setattr(app.store, "get", broken_get)
    result = await app.conversations.get_or_create("u1", "u2")
    assert not result.ok
    assert isinstance(result.error, StoreUnavailable)
