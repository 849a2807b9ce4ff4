from __future__ import annotations

import re

MAX_NAME_LENGTH = 253
MAX_LABEL_LENGTH = 63

_LABEL_RE = re.compile(r"^[a-z0-9_](?:[a-z0-9_\-]*[a-z0-9_])?$")


def normalize_domain(text: str) -> str:
    """Return the canonical form of a search domain (lower case, no trailing dot).

    Raises ValueError for names that cannot be used as a search domain,
    including the root domain.
    """
    name = text.strip().lower()
    if name.endswith("."):
        name = name[:-1]
    if not name:
        raise ValueError(f"Invalid search domain '{text}': root or empty name.")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Invalid search domain '{text}': longer than {MAX_NAME_LENGTH} characters.")
    for label in name.split("."):
        if not label or len(label) > MAX_LABEL_LENGTH or not _LABEL_RE.match(label):
            raise ValueError(f"Invalid search domain '{text}': bad label '{label}'.")
    return name
