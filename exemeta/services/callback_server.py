"""Mini serveur HTTP local qui reçoit le jeton après la connexion navigateur."""

from __future__ import annotations

import logging
import socket
import threading
from concurrent.futures import Future, InvalidStateError, TimeoutError as FutureTimeoutError
from urllib.parse import parse_qs

from exemeta.services.ports import LOOPBACK_HOST, bind_socket

logger = logging.getLogger(__name__)

READ_LIMIT = 1024
ACCEPT_POLL_SECONDS = 0.2
CLIENT_TIMEOUT_SECONDS = 5.0

CONFIRMATION_HTML = (
    "<!doctype html><html><head><meta charset='utf-8'>"
    "<title>Connexion réussie</title></head><body>"
    "<script>try{history.replaceState(null,'','/');}catch(e){}</script>"
    "<h2>Connexion réussie</h2><p>Vous pouvez fermer cette fenêtre.</p></body></html>"
)


def _build_response() -> bytes:
    body = CONFIRMATION_HTML.encode("utf-8")
    head = (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("ascii") + body


CONFIRMATION_RESPONSE = _build_response()


def extract_token(request: str) -> str:
    """Extrait le paramètre ``token`` de la ligne de requête.

    Seule la première ligne est examinée. Tout ce qui n'est pas un ``GET``
    avec une chaîne de requête contenant ``token`` donne une chaîne vide.
    """
    request_line = request.split("\r\n", 1)[0].split("\n", 1)[0]
    if not request_line.startswith("GET"):
        return ""

    query_start = request_line.find("?")
    if query_start == -1:
        return ""
    query_end = request_line.find(" ", query_start)
    if query_end == -1:
        return ""

    params = parse_qs(request_line[query_start + 1:query_end], keep_blank_values=True)
    values = params.get("token")
    return values[0] if values else ""


def _read_request_line(conn: socket.socket) -> bytes:
    """Lit jusqu'à la fin de la ligne de requête, au plus ``READ_LIMIT`` octets."""
    data = b""
    while b"\n" not in data and len(data) < READ_LIMIT:
        try:
            chunk = conn.recv(READ_LIMIT - len(data))
        except socket.timeout:
            break
        if not chunk:
            break
        data += chunk
    return data


class CallbackListener:
    """Écouteur à usage unique sur ``127.0.0.1:port``.

    La première requête reçue résout le futur ; les suivantes reçoivent la
    même page puis sont ignorées. Une connexion fermée ou restée muette avant
    le moindre octet (connexion anticipée du navigateur) est abandonnée sans
    résoudre le futur. :meth:`close` est idempotent et peut être appelé
    depuis n'importe quel thread.
    """

    def __init__(
        self,
        port: int,
        host: str = LOOPBACK_HOST,
        *,
        client_timeout: float = CLIENT_TIMEOUT_SECONDS,
    ) -> None:
        self.port = port
        self.host = host
        self._client_timeout = client_timeout
        self._result: Future[str] = Future()
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._socket: socket.socket | None = None
        self._thread: threading.Thread | None = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self) -> None:
        with self._lock:
            if self._closed.is_set():
                raise RuntimeError("L'écouteur a déjà été fermé.")
            sock = bind_socket(self.port, self.host)
            sock.listen(5)
            sock.settimeout(ACCEPT_POLL_SECONDS)
            self._socket = sock

        self._thread = threading.Thread(
            target=self._serve,
            name=f"callback-listener-{self.port}",
            daemon=True,
        )
        self._thread.start()
        logger.info("Écoute du rappel de connexion sur http://localhost:%d", self.port)

    def wait(self, timeout: float) -> str:
        """Attend le jeton au plus ``timeout`` secondes puis ferme l'écouteur."""
        try:
            return self._result.result(timeout=timeout)
        except FutureTimeoutError:
            logger.info("Aucun rappel reçu après %.0f s", timeout)
            return ""
        finally:
            self.close()

    def close(self) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            sock, self._socket = self._socket, None

        self._resolve("")
        if sock is not None:
            sock.close()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2 * ACCEPT_POLL_SECONDS)

    def _resolve(self, token: str) -> bool:
        try:
            self._result.set_result(token)
        except InvalidStateError:
            return False
        return True

    def _serve(self) -> None:
        while not self._closed.is_set():
            sock = self._socket
            if sock is None:
                break
            try:
                conn, _ = sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break

            try:
                token = self._handle(conn)
            except OSError as exc:
                logger.warning("Requête de rappel illisible : %s", exc)
                token = ""
            finally:
                conn.close()

            if token is None:
                logger.debug("Connexion sans requête ignorée")
                continue
            if self._resolve(token):
                if not token:
                    logger.warning("Rappel reçu sans jeton")
                break

    def _handle(self, conn: socket.socket) -> str | None:
        """Jeton de la requête, ou None si la connexion n'a rien envoyé."""
        conn.settimeout(self._client_timeout)
        data = _read_request_line(conn)
        if not data:
            return None
        try:
            token = extract_token(data.decode("utf-8", errors="replace"))
        finally:
            conn.sendall(CONFIRMATION_RESPONSE)
        return token


def await_callback(port: int, timeout: float) -> str:
    """Lie un écouteur sur ``port`` et retourne le jeton reçu (ou une chaîne vide)."""
    listener = CallbackListener(port)
    listener.start()
    return listener.wait(timeout)
