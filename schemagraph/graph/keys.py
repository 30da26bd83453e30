"""
Property key derivation.

Keys are the document property names of nodes. They are derived from
human titles when the caller does not provide one.

Invariants:
    - derive_key is deterministic: same title and fallback, same key
    - generate_unique_key never returns a key in the taken set
    - Derived keys always match KEY_PATTERN
"""

from __future__ import annotations

import re
from collections.abc import Collection

DEFAULT_KEY = "field"

KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def is_valid_key(key: str) -> bool:
    """Check a key against the identifier pattern."""
    return bool(key) and KEY_PATTERN.match(key) is not None


def derive_key(title: str | None, fallback: str = DEFAULT_KEY) -> str:
    """Derive a key from a human title.

    Lower-cases the title, collapses runs of non-alphanumerics into a
    single underscore and strips underscores from both ends. A leading
    digit is prefixed with the fallback token; an empty result falls
    back to the token itself.

    Example:
        >>> derive_key("First Name")
        'first_name'
        >>> derive_key("2nd address")
        'field_2nd_address'
        >>> derive_key("!!!")
        'field'
    """
    base = _NON_ALNUM.sub("_", (title or "").lower()).strip("_")
    if not base:
        return fallback
    if base[0].isdigit():
        return f"{fallback}_{base}"
    return base


def generate_unique_key(
    title: str | None,
    taken: Collection[str],
    fallback: str = DEFAULT_KEY,
) -> str:
    """Derive a key from a title that is not in ``taken``.

    Collisions get a numeric suffix starting at 2: ``person``,
    ``person_2``, ``person_3``.
    """
    base = derive_key(title, fallback)
    return unique_key(base, taken)


def unique_key(base: str, taken: Collection[str]) -> str:
    """Suffix ``base`` until it is not in ``taken``."""
    if base not in taken:
        return base
    counter = 2
    while f"{base}_{counter}" in taken:
        counter += 1
    return f"{base}_{counter}"
