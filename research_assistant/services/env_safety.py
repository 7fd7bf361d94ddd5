from __future__ import annotations

import os
from pathlib import Path
from typing import MutableMapping

from research_assistant.services.logger import logger

KEYLOG_VAR = "SSLKEYLOGFILE"


def is_usable_keylog_path(raw: str) -> bool:
    path = Path(raw)
    if not path.parent.exists():
        return False
    try:
        # Append mode so an existing key log is not truncated.
        with open(path, "a", encoding="utf-8"):
            pass
    except OSError:
        return False
    return True


def sanitize_ssl_keylogfile(environ: MutableMapping[str, str] | None = None) -> str | None:
    """Drop SSLKEYLOGFILE when it names a path that cannot be written.

    httpx and the openai client open the key log while building their SSL
    context and fail hard on a bad path. Returns the removed value, if any.
    """
    env = os.environ if environ is None else environ
    raw = env.get(KEYLOG_VAR, "").strip()
    if not raw or is_usable_keylog_path(raw):
        return None
    env.pop(KEYLOG_VAR, None)
    logger.warning(f"Ignoring unusable {KEYLOG_VAR}={raw}")
    return raw
