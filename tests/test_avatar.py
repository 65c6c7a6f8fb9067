import base64

import pytest

from pairchat.avatar import (
    base64_size_kb,
    decode_avatar,
    encode_avatar,
    encode_avatar_file,
    is_valid_base64,
)
from pairchat.errors import PayloadTooLarge


def test_encode_and_decode():
    encoded = encode_avatar(b"\x89PNG fake image")
    assert encoded == base64.b64encode(b"\x89PNG fake image").decode()
    assert decode_avatar(encoded) == b"\x89PNG fake image"


def test_encode_rejects_oversized():
    with pytest.raises(PayloadTooLarge):
        encode_avatar(b"x" * 11, max_bytes=10)


def test_encode_file(tmp_path):
    path = tmp_path / "me.png"
    path.write_bytes(b"abc")
    assert encode_avatar_file(path) == "YWJj"


def test_encode_file_too_large(tmp_path):
    path = tmp_path / "big.png"
    path.write_bytes(b"x" * 2048)
    with pytest.raises(PayloadTooLarge):
        encode_avatar_file(path, max_bytes=1024)


@pytest.mark.parametrize(
    "value,expected",
    [("YWJj", True), ("", False), (None, False), ("not base64!", False)],
)
def test_is_valid_base64(value, expected):
    assert is_valid_base64(value) is expected


def test_size_estimate():
    encoded = base64.b64encode(b"x" * 3072).decode()
    assert base64_size_kb(encoded) == pytest.approx(3.0)
