"""Cycle de vie de la session : connexion navigateur, déconnexion, revalidation."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from exemeta.config import AppConfig
from exemeta.dispatch import UiDispatcher
from exemeta.services.api_client import ApiClientError
from exemeta.services.browser import open_url_with_system_browser
from exemeta.services.callback_server import CallbackListener
from exemeta.services.ports import NoAvailablePortError, allocate_port, is_port_free
from exemeta.services.token_storage import TokenStoreError
from exemeta.state import AuthSession

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    def save(self, token: str | None) -> None: ...

    def get(self) -> str | None: ...


class DisplayNameSource(Protocol):
    def get_user_display_name(self, token: str) -> str | None: ...


class LoginOutcome(Enum):
    SUCCESS = "success"
    NO_TOKEN = "no_token"
    TOKEN_REJECTED = "token_rejected"
    SUPERSEDED = "superseded"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LoginResult:
    outcome: LoginOutcome
    display_name: str | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is LoginOutcome.SUCCESS


class AuthSessionManager:
    """Orchestre la connexion par navigateur et l'état de la session.

    Les méthodes bloquantes (:meth:`login`, :meth:`restore_session`,
    :meth:`ensure_authenticated`) sont prévues pour un thread de travail.
    Toute modification de la session passe par le dispatcher et s'exécute
    donc sur le thread UI.
    """

    def __init__(
        self,
        config: AppConfig,
        token_store: TokenStore,
        api_client: DisplayNameSource,
        dispatcher: UiDispatcher,
        *,
        session: AuthSession | None = None,
        open_browser: Callable[[str], bool] = open_url_with_system_browser,
        port_allocator: Callable[[int], int] = allocate_port,
        port_probe: Callable[[int], bool] = is_port_free,
        listener_factory: Callable[[int], CallbackListener] = CallbackListener,
        on_session_changed: Callable[[AuthSession], None] | None = None,
        on_browser_unavailable: Callable[[str], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._tokens = token_store
        self._api = api_client
        self._dispatcher = dispatcher
        self.session = session if session is not None else AuthSession()
        self._open_browser = open_browser
        self._allocate_port = port_allocator
        self._port_is_free = port_probe
        self._listener_factory = listener_factory
        self.on_session_changed = on_session_changed
        self.on_browser_unavailable = on_browser_unavailable
        self._sleep = sleep

        self._lock = threading.Lock()
        self._listener: CallbackListener | None = None
        self._attempt = 0
        self._callback_port: int | None = None

    # ---------------------------------------------------------------- State -
    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def _apply(self, mutate: Callable[[AuthSession], None]) -> None:
        def action() -> None:
            mutate(self.session)
            if self.on_session_changed is not None:
                self.on_session_changed(self.session)

        self._dispatcher.run_on_ui(action)

    def _set_authenticated(self, token: str, display_name: str) -> None:
        self._apply(lambda session: session.authenticate(token, display_name))

    def _set_logged_out(self) -> None:
        self._apply(AuthSession.reset)

    def _is_current(self, attempt: int) -> bool:
        with self._lock:
            return attempt == self._attempt

    def _discard_token(self) -> None:
        try:
            self._tokens.save(None)
        except TokenStoreError:
            logger.exception("Impossible de supprimer le jeton enregistré")

    def _validate(self, token: str) -> str | None:
        """Nom d'affichage du jeton, ou None si le service le refuse ou est injoignable."""
        try:
            return self._api.get_user_display_name(token)
        except ApiClientError as exc:
            logger.warning("Validation du jeton impossible : %s", exc)
            return None

    # ----------------------------------------------------------------- Port -
    def _callback_port_for_login(self) -> int:
        if self._callback_port is not None and self._port_is_free(self._callback_port):
            return self._callback_port
        self._callback_port = self._allocate_port(self._config.callback_start_port)
        return self._callback_port

    # ---------------------------------------------------------------- Login -
    def login(self) -> LoginResult:
        """Ouvre la page de connexion et attend le jeton sur le port local."""
        with self._lock:
            self._attempt += 1
            attempt = self._attempt
            previous, self._listener = self._listener, None
        if previous is not None:
            logger.info("Connexion relancée : fermeture de l'écouteur précédent")
            previous.close()

        self._apply(AuthSession.begin_login)

        try:
            port = self._callback_port_for_login()
            listener = self._listener_factory(port)
            with self._lock:
                if attempt != self._attempt:
                    return LoginResult(LoginOutcome.SUPERSEDED)
                self._listener = listener
            listener.start()

            callback_url = f"http://localhost:{port}"
            self._show_login_page(self._config.login_url(callback_url))
            token = listener.wait(self._config.login_timeout)
        except NoAvailablePortError as exc:
            logger.error("Connexion impossible : %s", exc)
            return self._fail(attempt, LoginOutcome.ERROR, str(exc))
        except OSError as exc:
            logger.error("Écouteur de rappel indisponible : %s", exc)
            self._callback_port = None
            return self._fail(attempt, LoginOutcome.ERROR, str(exc))
        finally:
            with self._lock:
                if self._attempt == attempt:
                    self._listener = None

        if not self._is_current(attempt):
            return LoginResult(LoginOutcome.SUPERSEDED)

        if not token:
            return self._fail(attempt, LoginOutcome.NO_TOKEN, "Aucun jeton reçu.")

        try:
            self._tokens.save(token)
        except TokenStoreError as exc:
            logger.error("Jeton reçu mais non enregistré : %s", exc)
            return self._fail(attempt, LoginOutcome.ERROR, str(exc))

        display_name = self._validate(token)
        if not self._is_current(attempt):
            return LoginResult(LoginOutcome.SUPERSEDED)
        if not display_name:
            self._discard_token()
            return self._fail(attempt, LoginOutcome.TOKEN_REJECTED, "Le jeton reçu a été refusé.")

        logger.info("Connecté en tant que %s", display_name)
        self._set_authenticated(token, display_name)
        return LoginResult(LoginOutcome.SUCCESS, display_name=display_name)

    def _show_login_page(self, url: str) -> None:
        if self._open_browser(url):
            return
        logger.warning("Navigateur indisponible ; ouvrez manuellement : %s", url)
        callback = self.on_browser_unavailable
        if callback is not None:
            self._dispatcher.run_on_ui(lambda: callback(url))

    def _fail(self, attempt: int, outcome: LoginOutcome, message: str) -> LoginResult:
        if not self._is_current(attempt):
            return LoginResult(LoginOutcome.SUPERSEDED)
        self._apply(AuthSession.end_login)
        return LoginResult(outcome, message=message)

    def login_in_background(
        self, on_done: Callable[[LoginResult], None] | None = None
    ) -> threading.Thread:
        """Lance :meth:`login` sur un thread ; ``on_done`` est appelé sur le thread UI."""

        def worker() -> None:
            result = self.login()
            if on_done is not None:
                self._dispatcher.run_on_ui(lambda: on_done(result))

        thread = threading.Thread(target=worker, name="login", daemon=True)
        thread.start()
        return thread

    # --------------------------------------------------------------- Logout -
    def logout(self) -> None:
        """Supprime le jeton et vide la session, sans appel réseau."""
        self._discard_token()
        self._set_logged_out()

    def shutdown(self) -> None:
        with self._lock:
            self._attempt += 1
            listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()

    # ----------------------------------------------------------- Validation -
    def restore_session(self) -> bool:
        """Revalide au démarrage un jeton déjà enregistré."""
        try:
            token = self._tokens.get()
            if not token:
                self._set_logged_out()
                return False

            display_name = self._api.get_user_display_name(token)
            if display_name:
                logger.info("Session restaurée pour %s", display_name)
                self._set_authenticated(token, display_name)
                return True

            logger.info("Jeton enregistré périmé : suppression")
        except (TokenStoreError, ApiClientError) as exc:
            logger.warning("Revalidation de la session impossible : %s", exc)

        self._discard_token()
        self._set_logged_out()
        return False

    def current_token(self) -> str | None:
        try:
            return self._tokens.get()
        except TokenStoreError as exc:
            logger.warning("Lecture du jeton impossible : %s", exc)
            return None

    def ensure_authenticated(self) -> bool:
        """Garantit une session valide, en lançant la connexion si besoin.

        Interroge le coffre toutes les ``login_poll_interval`` secondes pendant
        au plus ``login_wait_total`` secondes ; chaque jeton aperçu est validé
        auprès du service.
        """
        if self.is_authenticated:
            return True

        self.login_in_background()

        interval = self._config.login_poll_interval
        waited = 0.0
        while waited < self._config.login_wait_total:
            self._sleep(interval)
            waited += interval

            token = self.current_token()
            if not token:
                continue
            display_name = self._validate(token)
            if display_name:
                self._set_authenticated(token, display_name)
                return True

        logger.info("Aucune session valide après %.0f s d'attente", waited)
        return False
