"""Ouverture de la page de connexion dans le navigateur du système."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import webbrowser

logger = logging.getLogger(__name__)


def _launchers() -> list[list[str]]:
    launchers = []
    if "WSL_DISTRO_NAME" in os.environ:
        launchers.append(["wslview"])
    if sys.platform.startswith("linux"):
        launchers.append(["xdg-open"])
    return launchers


def open_url_with_system_browser(url: str) -> bool:
    """Ouvre ``url`` et indique si un navigateur a pu être lancé.

    Sous WSL puis Linux, les lanceurs du bureau sont essayés en premier ; un
    lanceur absent ou en échec passe la main au module ``webbrowser``.
    """
    for launcher in _launchers():
        try:
            completed = subprocess.run([*launcher, url], check=False)
        except FileNotFoundError:
            continue
        if completed.returncode == 0:
            return True
        logger.debug("%s a échoué (code %d)", launcher[0], completed.returncode)

    try:
        return webbrowser.open(url)
    except webbrowser.Error as exc:
        logger.debug("webbrowser indisponible : %s", exc)
        return False
