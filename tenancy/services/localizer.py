"""Message catalogue for notification texts and bill descriptions.

Keys are dot paths into static/translations.json, e.g.
t("notifications.booking_approved", property_title="Loft 4B").
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CATALOGUE_PATH = Path(__file__).parent.parent / "static" / "translations.json"


class _KeepMissing(dict):
    """format_map mapping that leaves unknown placeholders as written."""

    def __missing__(self, key: str) -> str:
        logger.warning("No value for placeholder {%s}", key)
        return "{" + key + "}"


@lru_cache(maxsize=1)
def catalogue() -> dict[str, Any]:
    with open(CATALOGUE_PATH, encoding="utf-8") as f:
        return json.load(f)


def t(key: str, **kwargs: Any) -> str:
    """Look up a message and fill its placeholders.

    An unknown key comes back unchanged so a missing text never breaks the
    operation that sends it.
    """
    node: Any = catalogue()
    for part in key.split("."):
        node = node.get(part) if isinstance(node, dict) else None
        if node is None:
            logger.warning("Translation key not found: %s", key)
            return key
    if not isinstance(node, str):
        logger.warning("Translation key %s is a section, not a message", key)
        return key
    return node.format_map(_KeepMissing(kwargs))


__all__ = ["catalogue", "t"]
