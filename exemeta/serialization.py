"""Représentation JSON envoyée au service."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable, Mapping

from exemeta.state import PendingItem

ItemSerializer = Callable[[Mapping[str, Any], Mapping[str, Any]], str]


def serialize_item(metadata: Mapping[str, Any], custom_data: Mapping[str, Any]) -> str:
    """Sérialise un exécutable sous la forme ``{"Metadata": ..., "CustomData": ...}``."""
    payload = {
        "Metadata": {key: value for key, value in metadata.items() if value is not None},
        "CustomData": {key: value for key, value in custom_data.items() if value is not None},
    }
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def serialize_batch(
    items: Iterable[PendingItem], serializer: ItemSerializer = serialize_item
) -> str:
    """Concatène les sérialisations individuelles en un tableau JSON."""
    return "[" + ",".join(serializer(item.metadata, item.custom_data) for item in items) + "]"
