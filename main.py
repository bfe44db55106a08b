"""Point d'entrée de l'application ExeMeta."""

from __future__ import annotations

import logging

from exemeta.config import load_config
from exemeta.dispatch import UiDispatcher
from exemeta.services import ApiClient, AuthSessionManager, BatchUploader, TokenStorage
from exemeta.state import AppState
from exemeta.ui.app import MainWindow


def main() -> None:
    """Initialise les dépendances puis lance l'interface Tkinter."""
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )

    state = AppState()
    dispatcher = UiDispatcher()
    api_client = ApiClient(config)
    auth = AuthSessionManager(
        config,
        TokenStorage(config.credential_resource, config.credential_account),
        api_client,
        dispatcher,
        session=state.session,
    )
    uploader = BatchUploader(state, auth, api_client, dispatcher)

    app = MainWindow(auth=auth, uploader=uploader, dispatcher=dispatcher, state=state)
    auth.on_session_changed = app.on_session_changed
    auth.on_browser_unavailable = app.show_login_url
    try:
        app.run()
    finally:
        auth.shutdown()
        api_client.close()


if __name__ == "__main__":
    main()
