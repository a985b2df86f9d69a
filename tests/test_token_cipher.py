try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from formrelay.services.token_cipher import TokenCipherService


def test_token_cipher_hides_plaintext() -> None:
    cipher = TokenCipherService(secret="super-secret-key")

    encrypted = cipher.encrypt("patOwnerToken.123")

    assert "patOwnerToken" not in encrypted
    assert cipher.decrypt(encrypted) == "patOwnerToken.123"


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_token_cipher_rejects_ciphertext_from_other_secret() -> None:
    encrypted = TokenCipherService(secret="first").encrypt("token")

    with pytest.raises(ValueError):
        TokenCipherService(secret="second").decrypt(encrypted)


def test_optional_helpers_pass_through_missing_values() -> None:
    cipher = TokenCipherService(secret="secret")

    assert cipher.encrypt_optional(None) is None
    assert cipher.decrypt_optional(None) is None
    assert cipher.decrypt_optional(cipher.encrypt_optional("refresh")) == "refresh"


def test_token_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secret="")
