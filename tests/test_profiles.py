import pytest

from pairchat.errors import NotAuthenticated, StoreUnavailable
from pairchat.models import Profile, ProfilePatch


async def test_roster_excludes_self(alice_and_bob):
    app = alice_and_bob
    async with await app.profiles.live_roster(excluding="u1") as roster:
        profiles = await roster.next(timeout=1)
    assert [p.display_name for p in profiles] == ["Bob"]
    assert profiles[0] == Profile(id="u2", display_name="Bob", email="b@x.com")


async def test_roster_updates_on_new_profile(alice_and_bob):
    app = alice_and_bob
    async with await app.profiles.live_roster(excluding="u1") as roster:
        await roster.next(timeout=1)
        await app.profiles.create(Profile(id="u9", display_name="Carol", email="c@x.com"))
        profiles = await roster.next(timeout=1)
    assert [p.id for p in profiles] == ["u2", "u9"]
    assert app.profiles.last_roster == profiles


async def test_roster_when_signed_out(app):
    roster = await app.profiles.live_roster(excluding=None)
    assert await roster.next(timeout=1) == []
    roster.close()


async def test_get_by_id(alice_and_bob):
    app = alice_and_bob
    bob = await app.profiles.get_by_id("u2")
    assert bob.display_name == "Bob"
    assert await app.profiles.get_by_id("nobody") is None


async def test_get_current(alice_and_bob):
    current = await alice_and_bob.profiles.get_current()
    assert current.id == "u1"


async def test_get_current_signed_out(app):
    assert await app.profiles.get_current() is None


async def test_update_is_partial(alice_and_bob):
    app = alice_and_bob
    await app.profiles.update_profile("u1", ProfilePatch(avatar_data="YWJj"))
    before = await app.profiles.get_by_id("u1")

    result = await app.profiles.update_profile("u1", ProfilePatch(bio="x"))
    assert result.ok

    after = await app.profiles.get_by_id("u1")
    assert after.bio == "x"
    assert after.display_name == before.display_name
    assert after.avatar_data == before.avatar_data == "YWJj"
    assert after.email == before.email
    assert after.updated_at > before.updated_at


async def test_update_requires_sign_in(alice_and_bob):
    app = alice_and_bob
    await app.auth.sign_out()
    result = await app.profiles.update_profile("u1", ProfilePatch(bio="x"))
    assert isinstance(result.error, NotAuthenticated)
    assert (await app.profiles.get_by_id("u1")).bio == ""


async def test_cannot_update_someone_else(alice_and_bob):
    app = alice_and_bob
    result = await app.profiles.update_profile("u2", ProfilePatch(bio="hacked"))
    assert not result.ok
    assert (await app.profiles.get_by_id("u2")).bio == ""


async def test_update_store_failure_is_reported(alice_and_bob, monkeypatch):
    app = alice_and_bob

    async def broken_update(path, fields):
        raise StoreUnavailable("offline")

    monkeypatch.setattr(app.store, "update", broken_update)
    result = await app.profiles.update_profile("u1", ProfilePatch(bio="x"))
    assert isinstance(result.error, StoreUnavailable)
    with pytest.raises(StoreUnavailable):
        result.unwrap()
