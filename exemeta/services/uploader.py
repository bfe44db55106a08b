"""Envoi du lot en attente vers le service ExeLookup."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from exemeta.dispatch import UiDispatcher
from exemeta.serialization import ItemSerializer, serialize_batch, serialize_item
from exemeta.services.api_client import ApiClientError, ApiResponse
from exemeta.state import AppState

logger = logging.getLogger(__name__)


class SessionGate(Protocol):
    def ensure_authenticated(self) -> bool: ...

    def current_token(self) -> str | None: ...


class BatchUploadApi(Protocol):
    def upload_metadata_batch(self, token: str, body: str) -> ApiResponse: ...


class UploadErrorKind(Enum):
    ALREADY_IN_FLIGHT = "already_in_flight"
    EMPTY_BATCH = "empty_batch"
    AUTHENTICATION_FAILED = "authentication_failed"
    TOKEN_MISSING = "token_missing"
    REMOTE_REJECTED = "remote_rejected"
    NETWORK_ERROR = "network_error"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True, slots=True)
class UploadError:
    kind: UploadErrorKind
    status: int | None = None
    body: str = ""
    message: str = ""

    def describe(self) -> str:
        if self.kind is UploadErrorKind.REMOTE_REJECTED:
            return f"Le service a refusé l'envoi (HTTP {self.status}).\n{self.body}".rstrip()
        if self.kind is UploadErrorKind.NETWORK_ERROR:
            return f"Erreur réseau : {self.message}"
        if self.kind is UploadErrorKind.UNEXPECTED:
            return f"Erreur inattendue pendant l'envoi : {self.message}"
        return _MESSAGES[self.kind]


_MESSAGES = {
    UploadErrorKind.ALREADY_IN_FLIGHT: "Un envoi est déjà en cours.",
    UploadErrorKind.EMPTY_BATCH: "Aucun fichier à envoyer. Sélectionnez d'abord un exécutable.",
    UploadErrorKind.AUTHENTICATION_FAILED: "Échec de l'authentification : envoi impossible.",
    UploadErrorKind.TOKEN_MISSING: "Aucun jeton valide après la tentative de connexion.",
}


@dataclass(frozen=True, slots=True)
class UploadResult:
    error: UploadError | None = None
    uploaded: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, kind: UploadErrorKind, **details: object) -> UploadResult:
        return cls(error=UploadError(kind, **details))


class BatchUploader:
    """Sérialise le lot, vérifie la session puis le poste en une requête.

    Un seul envoi à la fois : un second appel pendant qu'un envoi est en
    cours est refusé sans effet. Le lot n'est vidé qu'après une réponse 2xx.
    """

    def __init__(
        self,
        state: AppState,
        auth: SessionGate,
        api_client: BatchUploadApi,
        dispatcher: UiDispatcher,
        *,
        serializer: ItemSerializer = serialize_item,
    ) -> None:
        self._state = state
        self._auth = auth
        self._api = api_client
        self._dispatcher = dispatcher
        self._serializer = serializer

    @property
    def in_flight(self) -> bool:
        return self._state.upload.in_flight

    def send_all(self) -> UploadResult:
        """Envoie tout le lot ; bloquant, à appeler hors du thread UI en production."""
        if self._state.upload.in_flight:
            return UploadResult.failure(UploadErrorKind.ALREADY_IN_FLIGHT)
        if not self._state.batch:
            return UploadResult.failure(UploadErrorKind.EMPTY_BATCH)
        if not self._state.upload.try_begin():
            return UploadResult.failure(UploadErrorKind.ALREADY_IN_FLIGHT)

        result = UploadResult.failure(UploadErrorKind.NETWORK_ERROR, message="Envoi interrompu.")
        try:
            result = self._send()
        finally:
            self._dispatcher.run_on_ui(lambda: self._complete(result))
        return result

    def _send(self) -> UploadResult:
        if not self._auth.ensure_authenticated():
            return UploadResult.failure(UploadErrorKind.AUTHENTICATION_FAILED)

        token = self._auth.current_token()
        if not token:
            return UploadResult.failure(UploadErrorKind.TOKEN_MISSING)

        items = self._state.batch.snapshot()
        if not items:
            return UploadResult.failure(UploadErrorKind.EMPTY_BATCH)
        body = serialize_batch(items, self._serializer)

        logger.info("Envoi de %d élément(s)", len(items))
        try:
            response = self._api.upload_metadata_batch(token, body)
        except ApiClientError as exc:
            logger.warning("Envoi échoué : %s", exc)
            return UploadResult.failure(UploadErrorKind.NETWORK_ERROR, message=str(exc))

        if not response.ok:
            logger.warning("Envoi refusé (HTTP %d)", response.status_code)
            return UploadResult.failure(
                UploadErrorKind.REMOTE_REJECTED,
                status=response.status_code,
                body=response.body,
            )
        return UploadResult(uploaded=len(items))

    def _complete(self, result: UploadResult) -> None:
        self._state.upload.finish()
        if result.ok:
            self._state.batch.clear()

    def start_send(self, on_done: Callable[[UploadResult], None]) -> bool:
        """Point d'entrée UI : lance l'envoi sur un thread.

        Retourne False si l'envoi est refusé d'emblée (``on_done`` est alors
        appelé immédiatement).
        """
        if self._state.upload.in_flight or not self._state.batch:
            on_done(self.send_all())
            return False

        def worker() -> None:
            try:
                result = self.send_all()
            except Exception as exc:
                logger.exception("Envoi interrompu par une erreur inattendue")
                result = UploadResult.failure(UploadErrorKind.UNEXPECTED, message=str(exc))
            self._dispatcher.run_on_ui(lambda: on_done(result))

        threading.Thread(target=worker, name="batch-upload", daemon=True).start()
        return True
