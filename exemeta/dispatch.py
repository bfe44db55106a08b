"""File de messages vers le thread propriétaire de l'état (thread UI)."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

Action = Callable[[], Any]


class UiDispatcher:
    """Canal à consommateur unique.

    Les threads de travail déposent des actions avec :meth:`run_on_ui` ; seul
    le thread propriétaire (celui qui a créé le dispatcher) les exécute, via
    :meth:`drain`. Appelé depuis le thread propriétaire, :meth:`run_on_ui`
    exécute l'action immédiatement.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[Action] = queue.SimpleQueue()
        self._owner = threading.get_ident()

    @property
    def has_thread_access(self) -> bool:
        return threading.get_ident() == self._owner

    def post(self, action: Action) -> None:
        self._queue.put(action)

    def run_on_ui(self, action: Action) -> None:
        if self.has_thread_access:
            action()
        else:
            self.post(action)

    def drain(self, max_items: int | None = None) -> int:
        """Exécute les actions en attente et retourne leur nombre."""
        if not self.has_thread_access:
            raise RuntimeError("drain() doit être appelé depuis le thread propriétaire.")

        processed = 0
        while max_items is None or processed < max_items:
            try:
                action = self._queue.get_nowait()
            except queue.Empty:
                break
            processed += 1
            try:
                action()
            except Exception:  # noqa: BLE001
                logger.exception("Action UI en échec")
        return processed
