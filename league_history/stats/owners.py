"""
Owner identity normalization.

Owners change display names and occasionally accounts between seasons. A
canonical key is computed from the raw name and then passed through an alias
table so that every historical identity of one person folds into one key.
"""

import re
from typing import Mapping, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_name(name: Optional[str]) -> str:
    """Lowercase and strip everything that is not a letter or digit."""
    if name is None:
        return ""
    return _NON_ALNUM.sub("", str(name).lower())


class OwnerIdentity:
    """
    Pure name -> canonical key mapping with an injected alias table.

    Alias keys and values are normalized the same way as names, so
    {"Old Name": "NewName"} and {"oldname": "newname"} are equivalent.
    """

    def __init__(self, aliases: Optional[Mapping[str, str]] = None):
        self.aliases: dict[str, str] = {}
        for raw, canonical in (aliases or {}).items():
            source, target = normalize_name(raw), normalize_name(canonical)
            if source and target:
                self.aliases[source] = target

    def key(self, name: Optional[str]) -> Optional[str]:
        """Canonical key for a raw owner name, or None when nothing usable remains."""
        normalized = normalize_name(name)
        if not normalized:
            return None
        return self.aliases.get(normalized, normalized)

    def key_for(self, owner_name: Optional[str], owner_username: Optional[str] = None) -> Optional[str]:
        """Key from the display name, falling back to the username."""
        return self.key(owner_name) or self.key(owner_username)
