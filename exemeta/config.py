"""Gestion centralisée de la configuration du client ExeMeta."""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import quote, urlparse

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://defkey.com"
DEFAULT_CALLBACK_PORT = 8080
CREDENTIAL_RESOURCE = "ExeMetaDataExtractor"
CREDENTIAL_ACCOUNT = "JWT"


class ConfigError(RuntimeError):
    """Erreur levée lorsque la configuration est invalide."""


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Paramètres nécessaires pour dialoguer avec le service distant."""

    base_url: str = DEFAULT_BASE_URL
    callback_start_port: int = DEFAULT_CALLBACK_PORT
    login_timeout: float = 60.0
    login_poll_interval: float = 0.5
    login_wait_total: float = 60.0
    http_timeout: float = 30.0
    log_level: str = "INFO"
    credential_resource: str = CREDENTIAL_RESOURCE
    credential_account: str = CREDENTIAL_ACCOUNT

    def login_url(self, return_url: str) -> str:
        """URL de la page de connexion ouverte dans le navigateur."""
        return f"{self.base_url}/Account/Login?returnUrl={quote(return_url, safe='')}"

    def display_name_url(self) -> str:
        return f"{self.base_url}/api/auth/get-user-display-name"

    def upload_batch_url(self) -> str:
        return f"{self.base_url}/api/exe-lookup/upload-metadata-batch"


def _read_number(name: str, default: float, cast: type) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} doit être un nombre (valeur reçue : {raw!r}).") from exc
    if value <= 0:
        raise ConfigError(f"{name} doit être strictement positif.")
    return value


def load_config() -> AppConfig:
    """Charge la configuration depuis l'environnement (et un éventuel fichier .env)."""
    load_dotenv()

    base_url = os.getenv("EXEMETA_BASE_URL", DEFAULT_BASE_URL).strip().rstrip("/")
    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"EXEMETA_BASE_URL n'est pas une URL valide : {base_url!r}.")

    callback_port = int(_read_number("EXEMETA_CALLBACK_PORT", DEFAULT_CALLBACK_PORT, int))
    if callback_port > 65534:
        raise ConfigError("EXEMETA_CALLBACK_PORT doit être inférieur à 65535.")

    login_timeout = _read_number("EXEMETA_LOGIN_TIMEOUT", 60.0, float)

    return AppConfig(
        base_url=base_url,
        callback_start_port=callback_port,
        login_timeout=login_timeout,
        login_poll_interval=_read_number("EXEMETA_LOGIN_POLL_INTERVAL", 0.5, float),
        login_wait_total=login_timeout,
        http_timeout=_read_number("EXEMETA_HTTP_TIMEOUT", 30.0, float),
        log_level=os.getenv("EXEMETA_LOG_LEVEL", "INFO").upper(),
    )
