"""Domain entity representing a user."""

from dataclasses import dataclass

from .role import Role


@dataclass
class User:
    """Directory attributes the notification core needs about a user."""

    id: int | None
    role: Role
    name: str
    email: str | None
    is_active: bool

    def has_role(self, alias: str) -> bool:
        """Return ``True`` when the user's role alias matches ``alias``."""

        return self.role.alias.lower() == alias.lower()

    def is_admin(self) -> bool:
        """Return ``True`` when the user is an administrator."""

        return self.has_role("admin")
