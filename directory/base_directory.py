from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class DirectoryUser:
    """A user object as seen in the directory."""

    sam_account_name: str
    distinguished_name: str
    display_name: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def container(self) -> str:
        """DN of the OU holding this user."""
        parts = [p.strip() for p in self.distinguished_name.split(",") if p.strip()]
        return ",".join(parts[1:]) if len(parts) > 1 else ""


class BaseDirectory(ABC):
    """
    Read-only directory queries consumed by the import planners.

    Implementations may block; the planners run them in a thread pool.
    """

    @abstractmethod
    def container_exists(self, path: str) -> bool:
        """Check whether an organizational unit exists."""
        pass

    @abstractmethod
    def is_container_empty_of_users(self, path: str) -> bool:
        """Check whether an organizational unit holds no user objects."""
        pass

    @abstractmethod
    def is_container_completely_empty(self, path: str) -> bool:
        """Check whether an organizational unit has no child objects at all."""
        pass

    @abstractmethod
    def groups_in(self, container_path: str) -> List[str]:
        """Get the DNs of groups directly inside an organizational unit."""
        pass

    @abstractmethod
    def is_group_empty(self, group_dn: str) -> bool:
        """Check whether a group has no members."""
        pass

    @abstractmethod
    def find_user(
        self, sam_account_name: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryUser]:
        """
        Look up a user by account name.

        Args:
            sam_account_name: Account name to look for
            attributes: Attribute names to return alongside the identity ones;
                        None lets the implementation pick its default set
        """
        pass

    @abstractmethod
    def users_under(self, base_path: str) -> List[DirectoryUser]:
        """Get every user below an organizational unit (subtree)."""
        pass
