"""
Roster/owner enrichment for Sleeper leagues.

Joins raw roster records with raw user records into one RosterView per
roster: display team name, owner name and avatars.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from league_history.parsing.helpers import Rule, as_id, first_present, resolve, safe_get

SLEEPER_AVATAR_URL = "https://sleepercdn.com/avatars/"

# Identifier fields, in precedence order
ROSTER_ID_KEYS = ("roster_id", "rosterId", "id")
ROSTER_OWNER_KEYS = ("owner_id", "ownerId", "user_id")
USER_ID_KEYS = ("user_id", "userId", "id")


def _owner_display(user: Optional[dict]) -> Optional[str]:
    return first_present(user, "display_name", "username")


TEAM_NAME_RULES: list[Rule] = [
    ("roster_metadata", lambda roster, user: safe_get(roster, "metadata", "team_name")),
    ("owner_metadata", lambda roster, user: safe_get(user, "metadata", "team_name")),
    (
        "owner_display_name",
        lambda roster, user: f"{_owner_display(user)}'s Team" if _owner_display(user) else None,
    ),
]

TEAM_AVATAR_RULES: list[Rule] = [
    ("roster_team_avatar", lambda roster, user: safe_get(roster, "metadata", "team_avatar")),
    ("roster_avatar", lambda roster, user: safe_get(roster, "metadata", "avatar")),
    ("roster_logo", lambda roster, user: safe_get(roster, "metadata", "logo")),
]

OWNER_AVATAR_RULES: list[Rule] = [
    ("owner_team_avatar", lambda roster, user: safe_get(user, "metadata", "team_avatar")),
    ("owner_metadata_avatar", lambda roster, user: safe_get(user, "metadata", "avatar")),
    ("owner_profile_avatar", lambda roster, user: safe_get(user, "avatar")),
]


def avatar_url(raw: Any) -> Optional[str]:
    """Rewrite a bare Sleeper avatar id to its CDN URL; absolute URLs pass through."""
    if raw is None or raw == "":
        return None
    text = str(raw)
    if text.startswith("http"):
        return text
    return f"{SLEEPER_AVATAR_URL}{text}"


@dataclass
class RosterView:
    """One roster's display metadata within a single league."""

    roster_id: str
    team_name: str
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    owner_username: Optional[str] = None
    team_avatar: Optional[str] = None
    owner_avatar: Optional[str] = None
    roster_raw: dict = field(default_factory=dict, repr=False)
    user_raw: Optional[dict] = field(default=None, repr=False)

    @property
    def avatar(self) -> Optional[str]:
        return self.team_avatar or self.owner_avatar

    def to_dict(self, include_raw: bool = False) -> dict[str, Any]:
        data = {
            "roster_id": self.roster_id,
            "owner_id": self.owner_id,
            "team_name": self.team_name,
            "owner_name": self.owner_name,
            "owner_username": self.owner_username,
            "team_avatar": self.team_avatar,
            "owner_avatar": self.owner_avatar,
            "avatar": self.avatar,
        }
        if include_raw:
            data["roster_raw"] = self.roster_raw
            data["user_raw"] = self.user_raw
        return data


def placeholder_roster(roster_id: str) -> RosterView:
    """RosterView for a roster id seen in matchups but missing from the roster list."""
    return RosterView(roster_id=str(roster_id), team_name=f"Roster {roster_id}")


def build_roster_view(roster: dict, user: Optional[dict]) -> Optional[RosterView]:
    """
    Build the RosterView for one raw roster and its (possibly missing) owner.

    Args:
        roster: Raw roster object from /league/{id}/rosters
        user: Raw user object from /league/{id}/users, or None

    Returns:
        RosterView, or None when the roster carries no id
    """
    roster_id = as_id(first_present(roster, *ROSTER_ID_KEYS))
    if roster_id is None:
        return None

    _, team_name = resolve(TEAM_NAME_RULES, roster, user)
    _, team_avatar = resolve(TEAM_AVATAR_RULES, roster, user)
    _, owner_avatar = resolve(OWNER_AVATAR_RULES, roster, user)

    return RosterView(
        roster_id=roster_id,
        team_name=str(team_name) if team_name else f"Roster {roster_id}",
        owner_id=as_id(first_present(roster, *ROSTER_OWNER_KEYS)),
        owner_name=_owner_display(user),
        owner_username=first_present(user, "username"),
        team_avatar=avatar_url(team_avatar),
        owner_avatar=avatar_url(owner_avatar),
        roster_raw=roster,
        user_raw=user,
    )


def build_roster_map(rosters: Any, users: Any) -> dict[str, RosterView]:
    """
    Join raw rosters and users into roster_id -> RosterView.

    Either list may be empty or not a list at all; rosters without a matching
    user still get an entry with placeholder names.

    Args:
        rosters: Raw roster list
        users: Raw user list

    Returns:
        Dictionary keyed by roster id (as str), in roster list order
    """
    users_by_id: dict[str, dict] = {}
    for user in users if isinstance(users, list) else []:
        if not isinstance(user, dict):
            continue
        user_id = as_id(first_present(user, *USER_ID_KEYS))
        if user_id is not None:
            users_by_id[user_id] = user

    roster_map: dict[str, RosterView] = {}
    for roster in rosters if isinstance(rosters, list) else []:
        if not isinstance(roster, dict):
            continue
        owner_id = as_id(first_present(roster, *ROSTER_OWNER_KEYS))
        view = build_roster_view(roster, users_by_id.get(owner_id) if owner_id else None)
        if view is not None:
            roster_map[view.roster_id] = view
    return roster_map


def find_roster_by_owner(roster_map: dict[str, RosterView], owner: str) -> Optional[RosterView]:
    """Find a roster by owner username, then owner display name (case-insensitive)."""
    wanted = str(owner).strip().lower()
    for attr in ("owner_username", "owner_name"):
        for view in roster_map.values():
            value = getattr(view, attr)
            if value and value.lower() == wanted:
                return view
    return None
