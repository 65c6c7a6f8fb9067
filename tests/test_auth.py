import pytest

from pairchat.auth import LocalAuthProvider, ProviderError, verify_password
from pairchat.config import LOGIN_MAX_FAILURES


async def test_create_account_signs_in(auth):
    uid = await auth.create_account("a@x.com", "secret1")
    assert uid == "u1"
    assert auth.current_user_id() == "u1"


async def test_authenticate(auth):
    await auth.create_account("a@x.com", "secret1")
    await auth.sign_out()
    assert auth.current_user_id() is None
    assert await auth.authenticate("A@X.com", "secret1") == "u1"
    assert auth.current_user_id() == "u1"


@pytest.mark.parametrize(
    "email,password,code",
    [
        ("not-an-email", "secret1", "invalid-email"),
        ("a@x.com", "123", "weak-password"),
    ],
)
async def test_create_account_rejections(auth, email, password, code):
    with pytest.raises(ProviderError) as info:
        await auth.create_account(email, password)
    assert info.value.code == code


async def test_duplicate_email(auth):
    await auth.create_account("a@x.com", "secret1")
    with pytest.raises(ProviderError) as info:
        await auth.create_account("a@x.com", "other-secret")
    assert info.value.code == "email-already-in-use"


async def test_unknown_user(auth):
    with pytest.raises(ProviderError) as info:
        await auth.authenticate("nobody@x.com", "secret1")
    assert info.value.code == "user-not-found"


async def test_wrong_password_then_lockout(auth):
    await auth.create_account("a@x.com", "secret1")
    for _ in range(LOGIN_MAX_FAILURES):
        with pytest.raises(ProviderError) as info:
            await auth.authenticate("a@x.com", "wrong!!")
        assert info.value.code == "wrong-password"

    with pytest.raises(ProviderError) as info:
        await auth.authenticate("a@x.com", "secret1")
    assert info.value.code == "too-many-requests"


async def test_lockout_expires(tmp_path):
    now = [1000.0]
    provider = LocalAuthProvider(tmp_path / "auth.db", clock=lambda: now[0])
    try:
        uid = await provider.create_account("a@x.com", "secret1")
        for _ in range(LOGIN_MAX_FAILURES):
            with pytest.raises(ProviderError):
                await provider.authenticate("a@x.com", "wrong!!")
        now[0] += 10_000
        assert await provider.authenticate("a@x.com", "secret1") == uid
    finally:
        provider.close()


async def test_disabled_account(auth):
    await auth.create_account("a@x.com", "secret1")
    assert auth.disable_account("a@x.com")
    with pytest.raises(ProviderError) as info:
        await auth.authenticate("a@x.com", "secret1")
    assert info.value.code == "user-disabled"


async def test_listeners_see_every_change(auth):
    seen = []

    async def listener(uid):
        seen.append(uid)

    remove = auth.add_identity_listener(listener)
    await auth.create_account("a@x.com", "secret1")
    await auth.sign_out()
    await auth.authenticate("a@x.com", "secret1")
    remove()
    await auth.sign_out()
    assert seen == ["u1", None, "u1"]


async def test_identity_survives_restart(tmp_path):
    first = LocalAuthProvider(tmp_path / "auth.db")
    uid = await first.create_account("a@x.com", "secret1")
    first.close()

    second = LocalAuthProvider(tmp_path / "auth.db")
    try:
        assert second.current_user_id() == uid
    finally:
        second.close()


async def test_passwords_stored_as_bcrypt(auth):
    await auth.create_account("a@x.com", "secret1")
    stored = auth.conn.execute("SELECT password_hash FROM accounts").fetchone()["password_hash"]
    assert stored.startswith("$2")
    assert "secret1" not in stored
    assert verify_password("secret1", stored)
    assert not verify_password("secret2", stored)
