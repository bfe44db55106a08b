"""Recherche d'un port TCP libre sur l'interface de bouclage."""

from __future__ import annotations

import logging
import os
import socket

LOOPBACK_HOST = "127.0.0.1"
MAX_PORT = 65534

logger = logging.getLogger(__name__)


class NoAvailablePortError(RuntimeError):
    """Aucun port n'a pu être réservé dans la plage demandée."""


def bind_socket(port: int, host: str = LOOPBACK_HOST) -> socket.socket:
    """Crée un socket TCP lié à ``host:port``.

    Les options sont celles de l'écouteur de rappel, afin qu'une sonde réussie
    garantisse (au mieux) que l'écouteur pourra se lier ensuite.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        if os.name == "nt":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)
        else:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


def is_port_free(port: int, host: str = LOOPBACK_HOST) -> bool:
    try:
        probe = bind_socket(port, host)
    except OSError:
        return False
    probe.close()
    return True


def allocate_port(start: int, host: str = LOOPBACK_HOST) -> int:
    """Retourne le premier port libre à partir de ``start``.

    Le socket de sonde est refermé avant le retour : il ne s'agit pas d'une
    réservation.
    """
    if start < 1:
        raise ValueError("Le port de départ doit être positif.")

    for port in range(start, MAX_PORT + 1):
        if is_port_free(port, host):
            logger.debug("Port de rappel disponible : %d", port)
            return port

    raise NoAvailablePortError(f"Aucun port disponible entre {start} et {MAX_PORT}.")
