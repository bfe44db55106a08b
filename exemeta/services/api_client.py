"""Encapsulation des appels HTTP au service ExeLookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from exemeta.config import AppConfig

logger = logging.getLogger(__name__)


class ApiClientError(RuntimeError):
    """Erreur de transport lors d'un appel au service distant."""


@dataclass(frozen=True, slots=True)
class ApiResponse:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ApiClient:
    """Client HTTP authentifié par jeton porteur."""

    def __init__(self, config: AppConfig, *, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    @staticmethod
    def _bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def get_user_display_name(self, token: str) -> str | None:
        """Retourne le nom d'affichage associé au jeton, ou None s'il est refusé."""
        try:
            response = self._session.get(
                self._config.display_name_url(),
                headers=self._bearer(token),
                timeout=self._config.http_timeout,
            )
        except requests.RequestException as exc:
            raise ApiClientError("Le service est injoignable.") from exc

        if not response.ok:
            logger.info("Jeton refusé par le service (HTTP %d)", response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Réponse inattendue pour le nom d'affichage")
            return None

        if not isinstance(payload, dict):
            return None
        display_name = payload.get("displayName") or payload.get("DisplayName")
        if not isinstance(display_name, str) or not display_name.strip():
            return None
        return display_name.strip()

    def _post_json(self, url: str, token: str, body: str) -> ApiResponse:
        headers = self._bearer(token)
        headers["Content-Type"] = "application/json; charset=utf-8"
        try:
            response = self._session.post(
                url,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=self._config.http_timeout,
            )
        except requests.RequestException as exc:
            raise ApiClientError(f"Échec de l'envoi : {exc}") from exc
        return ApiResponse(status_code=response.status_code, body=response.text)

    def upload_metadata_batch(self, token: str, body: str) -> ApiResponse:
        """Envoie un tableau JSON de métadonnées."""
        return self._post_json(self._config.upload_batch_url(), token, body)

    def close(self) -> None:
        self._session.close()
