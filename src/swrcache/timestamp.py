"""Logical timestamps used to order fetches and mutations."""

import itertools

_counter = itertools.count(1)


def get_timestamp() -> int:
    """Return a strictly increasing integer, unique within the process."""
    return next(_counter)
