"""Stockage du jeton d'accès dans le coffre d'identifiants du système."""

from __future__ import annotations

import logging
from typing import Any

import keyring
from keyring.errors import PasswordDeleteError

from exemeta.config import CREDENTIAL_ACCOUNT, CREDENTIAL_RESOURCE

logger = logging.getLogger(__name__)


class TokenStoreError(RuntimeError):
    """Le coffre d'identifiants est inaccessible."""


class TokenStorage:
    """Un unique jeton, identifié par ``(resource, account)``.

    ``backend`` permet d'injecter un trousseau keyring précis ; par défaut le
    trousseau du système est utilisé (Gestionnaire d'identifiants Windows,
    Trousseau macOS, Secret Service...).

    Les backends ne lèvent pas toujours ``KeyringError`` : le coffre Windows
    relaie par exemple ``pywintypes.error``. Toute erreur du backend est donc
    convertie en :class:`TokenStoreError`.
    """

    def __init__(
        self,
        resource: str = CREDENTIAL_RESOURCE,
        account: str = CREDENTIAL_ACCOUNT,
        *,
        backend: Any | None = None,
    ) -> None:
        self._resource = resource
        self._account = account
        self._backend = backend

    def _keyring(self) -> Any:
        return self._backend if self._backend is not None else keyring.get_keyring()

    def save(self, token: str | None) -> None:
        """Enregistre le jeton ; ``None`` ou une chaîne vide le supprime."""
        if not token:
            try:
                self._keyring().delete_password(self._resource, self._account)
            except PasswordDeleteError:
                return
            except Exception as exc:
                logger.warning("Suppression du jeton impossible : %s", exc)
                raise TokenStoreError("Impossible de supprimer le jeton enregistré.") from exc
            logger.debug("Jeton supprimé du coffre")
            return

        try:
            self._keyring().set_password(self._resource, self._account, token)
        except Exception as exc:
            logger.warning("Enregistrement du jeton impossible : %s", exc)
            raise TokenStoreError("Impossible d'enregistrer le jeton.") from exc

    def get(self) -> str | None:
        try:
            token = self._keyring().get_password(self._resource, self._account)
        except Exception as exc:
            logger.warning("Lecture du jeton impossible : %s", exc)
            raise TokenStoreError("Impossible de lire le jeton enregistré.") from exc
        return token or None

    def clear(self) -> None:
        self.save(None)
