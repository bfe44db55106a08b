from __future__ import annotations

import threading

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from exemeta.config import AppConfig
from exemeta.dispatch import UiDispatcher


class FakeKeyring:
    """Trousseau en mémoire exposant l'API des backends keyring."""

    def __init__(self, *, broken: bool = False, error: Exception | None = None) -> None:
        self.passwords: dict[tuple[str, str], str] = {}
        self.broken = broken
        self.error = error

    def _check(self) -> None:
        if self.error is not None:
            raise self.error
        if self.broken:
            raise KeyringError("coffre verrouillé")

    def get_password(self, service: str, username: str) -> str | None:
        self._check()
        return self.passwords.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._check()
        self.passwords[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        self._check()
        try:
            del self.passwords[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found") from None


class FakeTokenStore:
    def __init__(self, token: str | None = None) -> None:
        self.token = token
        self.error: Exception | None = None
        self.saved: list[str | None] = []

    def save(self, token: str | None) -> None:
        if self.error is not None:
            raise self.error
        self.saved.append(token)
        self.token = token or None

    def get(self) -> str | None:
        if self.error is not None:
            raise self.error
        return self.token


class FakeDisplayNameApi:
    def __init__(self, names: dict[str, str] | None = None) -> None:
        self.names = names or {}
        self.error: Exception | None = None
        self.calls: list[str] = []

    def get_user_display_name(self, token: str) -> str | None:
        self.calls.append(token)
        if self.error is not None:
            raise self.error
        return self.names.get(token)


class FakeListener:
    """Écouteur de rappel qui retourne un jeton prédéfini."""

    def __init__(self, port: int, token: str = "", *, block: bool = False) -> None:
        self.port = port
        self.token = token
        self.block = block
        self.started = threading.Event()
        self.closed = threading.Event()

    def start(self) -> None:
        self.started.set()

    def wait(self, timeout: float) -> str:
        try:
            if self.block:
                if self.closed.wait(timeout):
                    return ""
            return self.token
        finally:
            self.close()

    def close(self) -> None:
        self.closed.set()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(base_url="https://example.test", login_timeout=2.0)


@pytest.fixture
def dispatcher() -> UiDispatcher:
    return UiDispatcher()


@pytest.fixture
def fake_keyring() -> FakeKeyring:
    return FakeKeyring()
