"""Structures de données partagées entre la couche UI et les services."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping


class AuthStatus(Enum):
    LOGGED_OUT = "logged_out"
    LOGGING_IN = "logging_in"
    AUTHENTICATED = "authenticated"


class BatchLockedError(RuntimeError):
    """Erreur levée lorsqu'on modifie le lot pendant un envoi."""


@dataclass(slots=True)
class AuthSession:
    """Session d'authentification courante.

    ``is_authenticated`` n'est jamais stocké : il découle de la présence
    simultanée du jeton et d'un nom d'affichage non vide.
    """

    token: str | None = None
    display_name: str | None = None
    logging_in: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and bool(self.display_name and self.display_name.strip())

    @property
    def status(self) -> AuthStatus:
        if self.is_authenticated:
            return AuthStatus.AUTHENTICATED
        if self.logging_in:
            return AuthStatus.LOGGING_IN
        return AuthStatus.LOGGED_OUT

    def begin_login(self) -> None:
        self.logging_in = True

    def end_login(self) -> None:
        """Termine une tentative de connexion sans toucher à une session valide."""
        self.logging_in = False

    def authenticate(self, token: str, display_name: str) -> None:
        """Passe la session à l'état authentifié."""
        if not token or not display_name or not display_name.strip():
            raise ValueError("Un jeton et un nom d'affichage non vides sont requis.")
        self.token = token
        self.display_name = display_name.strip()
        self.logging_in = False

    def reset(self) -> None:
        """Réinitialise la session (déconnexion ou échec)."""
        self.token = None
        self.display_name = None
        self.logging_in = False


class UploadState:
    """Verrou d'exclusion mutuelle de l'envoi par lot."""

    __slots__ = ("_in_flight", "_lock")

    def __init__(self) -> None:
        self._in_flight = False
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def try_begin(self) -> bool:
        """Lève le drapeau s'il est libre ; retourne False si un envoi est déjà en cours."""
        with self._lock:
            if self._in_flight:
                return False
            self._in_flight = True
            return True

    def finish(self) -> None:
        with self._lock:
            self._in_flight = False


def path_key(file_path: str) -> str:
    """Clé d'identité d'un fichier : chemin normalisé, insensible à la casse."""
    return os.path.normcase(os.path.normpath(file_path)).casefold()


@dataclass(slots=True)
class PendingItem:
    """Exécutable sélectionné, en attente d'envoi."""

    file_path: str
    metadata: Mapping[str, Any]
    custom_data: Mapping[str, Any] = field(default_factory=dict)
    icon_preview: bytes | None = None

    @property
    def file_name(self) -> str:
        return os.path.basename(self.file_path)

    @property
    def key(self) -> str:
        return path_key(self.file_path)


class PendingBatch:
    """Lot ordonné d'éléments en attente d'envoi.

    L'ordre d'insertion est conservé et les doublons sont acceptés. Toute
    modification est refusée tant qu'un envoi est en cours.
    """

    def __init__(self, upload_state: UploadState | None = None) -> None:
        self._items: list[PendingItem] = []
        self._upload_state = upload_state or UploadState()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PendingItem]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)

    def count(self) -> int:
        return len(self._items)

    def first(self) -> PendingItem | None:
        return self._items[0] if self._items else None

    def snapshot(self) -> tuple[PendingItem, ...]:
        return tuple(self._items)

    def _ensure_mutable(self) -> None:
        if self._upload_state.in_flight:
            raise BatchLockedError("Un envoi est en cours : le lot ne peut pas être modifié.")

    def add(self, item: PendingItem) -> None:
        self._ensure_mutable()
        self._items.append(item)

    def remove(self, file_path: str) -> int:
        """Retire les éléments correspondant au chemin et retourne leur nombre."""
        self._ensure_mutable()
        key = path_key(file_path)
        kept = [item for item in self._items if item.key != key]
        removed = len(self._items) - len(kept)
        self._items = kept
        return removed

    def clear(self) -> None:
        self._ensure_mutable()
        self._items.clear()


@dataclass(slots=True)
class AppState:
    """État interne de l'application."""

    session: AuthSession = field(default_factory=AuthSession)
    upload: UploadState = field(default_factory=UploadState)
    batch: PendingBatch = field(init=False)

    def __post_init__(self) -> None:
        self.batch = PendingBatch(self.upload)

    @property
    def is_authenticated(self) -> bool:
        """Retourne True si l'utilisateur est authentifié."""
        return self.session.is_authenticated
