"""Person and Role value types."""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any


class Role(Enum):
    """Permission level of a person on a site."""

    ADMIN = "administrator"
    EDITOR = "editor"
    AUTHOR = "author"
    CONTRIBUTOR = "contributor"
    FOLLOWER = "follower"
    VIEWER = "viewer"
    UNSUPPORTED = "unsupported"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_remote(cls, value: str | None) -> "Role":
        """Map a backend role string to a Role.

        Unknown or empty values map to UNSUPPORTED.
        """
        if not value:
            return cls.UNSUPPORTED
        value = value.strip().lower()
        if value == "admin":
            return cls.ADMIN
        try:
            return cls(value)
        except ValueError:
            return cls.UNSUPPORTED


@dataclass(frozen=True)
class Person:
    """A member of a site's team.

    Equality covers every field, not just (site_id, user_id); the merge
    relies on that to skip people whose stored copy is already current.
    """

    user_id: int
    site_id: int
    username: str
    display_name: str
    role: Role
    first_name: str = ""
    last_name: str = ""
    avatar_url: str | None = None
    linked_user_id: int | None = None
    is_super_admin: bool = False

    @property
    def key(self) -> tuple[int, int]:
        return (self.site_id, self.user_id)

    def with_role(self, role: Role) -> "Person":
        return replace(self, role=role)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["role"] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Person":
        """Create from dictionary."""
        return cls(
            user_id=int(data["user_id"]),
            site_id=int(data["site_id"]),
            username=data.get("username") or "",
            display_name=data.get("display_name") or "",
            role=Role.from_remote(data.get("role")),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            avatar_url=data.get("avatar_url"),
            linked_user_id=data.get("linked_user_id"),
            is_super_admin=bool(data.get("is_super_admin", False)),
        )

    @classmethod
    def from_remote(cls, site_id: int, data: dict[str, Any]) -> "Person":
        """Create from a user object returned by the REST backend.

        Args:
            site_id: Site the user was fetched for.
            data: One entry of the response's "users" list.
        """
        roles = data.get("roles") or []
        linked = data.get("linked_user_ID")

        return cls(
            user_id=int(data["ID"]),
            site_id=site_id,
            username=data.get("nice_name") or data.get("login") or "",
            display_name=data.get("name") or "",
            role=Role.from_remote(roles[0] if roles else None),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            avatar_url=data.get("avatar_URL") or None,
            linked_user_id=int(linked) if linked not in (None, "", False) else None,
            is_super_admin=bool(data.get("is_super_admin", False)),
        )
