"""Lecture des informations de version d'un exécutable (via pefile)."""

from __future__ import annotations

import logging
import os
from typing import Any

import pefile

logger = logging.getLogger(__name__)

VERSION_FIELDS = (
    "FileVersion",
    "ProductName",
    "FileDescription",
    "CompanyName",
    "OriginalFilename",
    "InternalName",
    "ProductVersion",
    "LegalCopyright",
)

DISPLAY_LABELS = {
    "FileVersion": "Version du fichier",
    "ProductName": "Nom du produit",
    "FileDescription": "Description",
    "CompanyName": "Éditeur",
    "OriginalFilename": "Nom d'origine",
    "InternalName": "Nom interne",
    "ProductVersion": "Version du produit",
    "LegalCopyright": "Copyright",
}

_INSTALLER_METADATA_KEYWORDS = ("installer", "setup", "installshield", "update", "patch")
_INSTALLER_NAME_KEYWORDS = ("setup", "install", "update", "patch")


class MetadataError(RuntimeError):
    """Le fichier n'a pas pu être analysé."""


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "ignore").strip("\x00 ").strip()
    return str(value).strip()


def read_version_strings(file_path: str) -> dict[str, str]:
    """Retourne toutes les chaînes de la ressource VS_VERSIONINFO."""
    try:
        pe = pefile.PE(file_path, fast_load=True)
    except (OSError, pefile.PEFormatError) as exc:
        raise MetadataError(f"Fichier PE illisible : {exc}") from exc

    try:
        pe.parse_data_directories(
            directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_RESOURCE"]]
        )
        strings: dict[str, str] = {}
        for block in getattr(pe, "FileInfo", None) or []:
            entries = block if isinstance(block, list) else [block]
            for entry in entries:
                for table in getattr(entry, "StringTable", []):
                    for key, value in table.entries.items():
                        strings[_decode(key)] = _decode(value)
        return strings
    finally:
        pe.close()


def extract_metadata(file_path: str) -> dict[str, str | None]:
    """Métadonnées de version attendues par le service (None si absentes)."""
    if not os.path.isfile(file_path):
        raise MetadataError(f"Fichier introuvable : {file_path}")

    strings = read_version_strings(file_path)
    return {name: strings.get(name) or None for name in VERSION_FIELDS}


def is_installer(file_path: str, metadata: dict[str, str | None] | None = None) -> bool:
    """Heuristique : le fichier ressemble-t-il à un programme d'installation ?"""
    if not file_path.lower().endswith(".exe") or not os.path.isfile(file_path):
        return False

    if metadata is None:
        try:
            metadata = extract_metadata(file_path)
        except MetadataError as exc:
            logger.debug("Détection d'installeur impossible : %s", exc)
            metadata = {}

    described = " ".join(
        (metadata.get(name) or "") for name in ("FileDescription", "ProductName")
    ).lower()
    if any(keyword in described for keyword in _INSTALLER_METADATA_KEYWORDS):
        return True

    stem = os.path.splitext(os.path.basename(file_path))[0].lower()
    return any(keyword in stem for keyword in _INSTALLER_NAME_KEYWORDS)


def build_custom_data(file_path: str, metadata: dict[str, str | None]) -> dict[str, Any]:
    """Données complémentaires jointes aux métadonnées de version."""
    return {
        "FileName": os.path.basename(file_path),
        "IsInstaller": is_installer(file_path, metadata),
    }


def describe(metadata: dict[str, Any]) -> str:
    """Texte affiché dans le panneau de métadonnées."""
    return "\n".join(
        f"{DISPLAY_LABELS[name]} : {metadata.get(name) or ''}" for name in VERSION_FIELDS
    )
