"""Key serialization."""

from __future__ import annotations

import logging
from typing import Any

from swrcache.hash import stable_hash
from swrcache.types import Key

logger = logging.getLogger(__name__)


def serialize(key: Key) -> tuple[str, Any]:
    """Normalize ``key`` into ``(serialized_key, fetcher_arg)``.

    Callable keys are invoked first; if that raises, the dependencies are
    not ready and the key resolves to ``""`` (fetching disabled).

    Examples:
        serialize("/api/user")          # ("/api/user", "/api/user")
        serialize(("user", 123))        # ('@"user",123,', ("user", 123))
        serialize(lambda: None)         # ("", None)
    """
    if callable(key):
        try:
            key = key()
        except Exception as exc:
            logger.debug("Key function raised %r, treating key as empty", exc)
            key = ""

    # The original value goes to the fetcher, not the hash.
    args = key

    if isinstance(key, str):
        serialized = key
    elif key:
        serialized = stable_hash(key)
    else:
        serialized = ""

    return serialized, args
