from __future__ import annotations

import keyring
import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from gram_deploy.keychain import KeychainError, forget_api_key, load_api_key, store_api_key


class FakeKeyring:
    def __init__(self) -> None:
        self.passwords: dict[tuple[str, str], str] = {}

    def set_password(self, service: str, username: str, password: str) -> None:
        self.passwords[(service, username)] = password

    def get_password(self, service: str, username: str) -> str | None:
        return self.passwords.get((service, username))

    def delete_password(self, service: str, username: str) -> None:
        if self.passwords.pop((service, username), None) is None:
            raise PasswordDeleteError("not found")


@pytest.fixture
def fake_keyring(monkeypatch: pytest.MonkeyPatch) -> FakeKeyring:
    fake = FakeKeyring()
    monkeypatch.setattr(keyring, "set_password", fake.set_password)
    monkeypatch.setattr(keyring, "get_password", fake.get_password)
    monkeypatch.setattr(keyring, "delete_password", fake.delete_password)
    return fake


def test_store_and_load(fake_keyring: FakeKeyring) -> None:
    store_api_key("gram", "gram_abc")

    assert load_api_key("gram") == "gram_abc"
    assert load_api_key("other") is None


def test_forget(fake_keyring: FakeKeyring) -> None:
    store_api_key("gram", "gram_abc")

    assert forget_api_key("gram") is True
    assert forget_api_key("gram") is False
    assert load_api_key("gram") is None


def test_keyring_failure_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(service: str, username: str) -> str | None:
        raise KeyringError("backend locked")

    monkeypatch.setattr(keyring, "get_password", broken)

    with pytest.raises(KeychainError) as exc_info:
        load_api_key("gram")

    assert "backend locked" in str(exc_info.value)
