"""Stable hashing of structured keys.

A stable hash implementation that:
- produces the same result for structurally equal values
- ignores mapping key order
- handles self-referencing containers and unserializable values
- generates short results

This is not a serialization function, and the result is not guaranteed to
be parsable.
"""

from __future__ import annotations

import dataclasses
import enum
import itertools
import json
import re
import weakref
from collections.abc import Mapping
from datetime import date, datetime, time
from operator import itemgetter
from typing import Any

from swrcache.types import UNDEFINED

# Identity tokens for opaque objects (functions, class instances). Weak so
# the entry goes away with the object.
_table: weakref.WeakKeyDictionary[Any, str] = weakref.WeakKeyDictionary()
_counter = itertools.count(1)

_PRIMITIVES = (bool, int, float, complex, bytes, enum.Enum)


def stable_hash(arg: Any) -> str:
    """Hash ``arg`` into a short, deterministic string."""
    return _hash(arg, {})


def _hash(arg: Any, seen: dict[int, str]) -> str:
    if isinstance(arg, str):
        return json.dumps(arg)
    if arg is None or arg is UNDEFINED or isinstance(arg, _PRIMITIVES):
        return str(arg)
    if isinstance(arg, (datetime, date, time)):
        return arg.isoformat()
    if isinstance(arg, re.Pattern):
        return f"/{arg.pattern}/"

    is_dataclass = dataclasses.is_dataclass(arg) and not isinstance(arg, type)
    if not isinstance(arg, (list, tuple, Mapping, set, frozenset)) and not is_dataclass:
        return _identity(arg)

    ident = id(arg)
    if ident in seen:
        return seen[ident]
    # Provisional token first, so a container that contains itself resolves
    # to it instead of recursing forever. Tagged "^" so it never equals an
    # identity token.
    seen[ident] = f"{len(seen) + 1}^"

    if isinstance(arg, (list, tuple)):
        result = "@" + "".join(_hash(item, seen) + "," for item in arg)
    elif isinstance(arg, Mapping):
        entries = [(_hash(k, seen), v) for k, v in arg.items() if v is not UNDEFINED]
        result = "#" + _hash_fields(entries, seen)
    elif isinstance(arg, (set, frozenset)):
        result = "%" + "".join(h + "," for h in sorted(_hash(i, seen) for i in arg))
    else:
        entries = [(f.name, getattr(arg, f.name)) for f in dataclasses.fields(arg)]
        result = type(arg).__name__ + "#" + _hash_fields(entries, seen)

    seen[ident] = result
    return result


def _hash_fields(entries: list[tuple[str, Any]], seen: dict[int, str]) -> str:
    """Format ``(label, value)`` pairs in label order."""
    entries.sort(key=itemgetter(0))
    return "".join(f"{label}:{_hash(value, seen)}," for label, value in entries)


def _identity(arg: Any) -> str:
    """Mint (or recall) an identity token for an opaque object."""
    try:
        token = _table.get(arg)
        if token is None:
            token = f"{next(_counter)}~"
            _table[arg] = token
        return token
    except TypeError:
        # Not weakly referenceable or not hashable
        return f"<{type(arg).__name__}>:{arg}"
