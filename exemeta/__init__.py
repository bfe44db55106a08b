"""Client de bureau ExeMeta : extraction et envoi de métadonnées d'exécutables."""

__version__ = "1.0.0"
