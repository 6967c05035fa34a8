import pytest

from recipeshare.security import hash_password, is_safe_redirect, verify_password


def test_hash_round_trip():
    stored = hash_password("hunter2", iterations=1000)
    assert stored.startswith("pbkdf2_sha256$1000$")
    assert verify_password("hunter2", stored)
    assert not verify_password("hunter3", stored)


def test_salts_differ():
    assert hash_password("same", iterations=1000) != hash_password("same", iterations=1000)


@pytest.mark.parametrize("stored", ["", "plain", "md5$1$aa$bb"])
def test_unknown_hash_formats_never_verify(stored):
    assert not verify_password("anything", stored)


@pytest.mark.parametrize(
    "url, safe",
    [
        ("/recipes/1?_method=DELETE", True),
        ("/recipes", True),
        ("", False),
        ("recipes", False),
        ("//evil.example.com", False),
        ("/\\evil.example.com", False),
        ("https://evil.example.com/", False),
    ],
)
def test_is_safe_redirect(url, safe):
    assert is_safe_redirect(url) is safe
