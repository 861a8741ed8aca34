"""
Pending action model for import plans.

Every planned directory change is a frozen PendingAction. The action kind is a
closed enum and each kind carries its own metadata record, so the applier that
consumes the plan never has to parse a free-form attribute bag.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ActionType(str, Enum):
    """Kinds of planned directory changes."""

    CREATE_OU = "CREATE_OU"
    CREATE_GROUP = "CREATE_GROUP"
    DELETE_OU = "DELETE_OU"
    DELETE_GROUP = "DELETE_GROUP"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    MOVE_USER = "MOVE_USER"
    DELETE_USER = "DELETE_USER"
    ERROR = "ERROR"


class DeletionReason(str, Enum):
    """Why an organizational unit was planned for deletion."""

    CONTAINS_ONLY_GROUPS = "contains_only_groups"
    COMPLETELY_EMPTY = "completely_empty"


@dataclass(frozen=True)
class CreateOuMetadata:
    ou_name: str
    ou_path: str
    create_linked_resource: bool = True


@dataclass(frozen=True)
class CreateGroupMetadata:
    is_security: bool
    is_global: bool = True


@dataclass(frozen=True)
class DeleteOuMetadata:
    reason: DeletionReason
    group_count: int = 0


@dataclass(frozen=True)
class DeleteGroupMetadata:
    container_path: str


@dataclass(frozen=True)
class UserMetadata:
    """Attributes for CREATE_USER / UPDATE_USER / MOVE_USER actions."""

    attributes: Tuple[Tuple[str, str], ...] = ()
    source_container: Optional[str] = None
    changed_attributes: Tuple[str, ...] = ()

    @classmethod
    def from_attributes(
        cls,
        attributes: Dict[str, str],
        source_container: Optional[str] = None,
        changed_attributes: Optional[List[str]] = None,
    ) -> "UserMetadata":
        return cls(
            attributes=tuple(attributes.items()),
            source_container=source_container,
            changed_attributes=tuple(changed_attributes or ()),
        )

    def attributes_dict(self) -> Dict[str, str]:
        return dict(self.attributes)


@dataclass(frozen=True)
class DeleteUserMetadata:
    distinguished_name: str
    display_name: str = ""


@dataclass(frozen=True)
class ErrorMetadata:
    reason: str
    raw_row: Tuple[Tuple[str, str], ...] = ()


ActionMetadata = Union[
    CreateOuMetadata,
    CreateGroupMetadata,
    DeleteOuMetadata,
    DeleteGroupMetadata,
    UserMetadata,
    DeleteUserMetadata,
    ErrorMetadata,
]

_METADATA_TYPES = {
    ActionType.CREATE_OU: CreateOuMetadata,
    ActionType.CREATE_GROUP: CreateGroupMetadata,
    ActionType.DELETE_OU: DeleteOuMetadata,
    ActionType.DELETE_GROUP: DeleteGroupMetadata,
    ActionType.CREATE_USER: UserMetadata,
    ActionType.UPDATE_USER: UserMetadata,
    ActionType.MOVE_USER: UserMetadata,
    ActionType.DELETE_USER: DeleteUserMetadata,
    ActionType.ERROR: ErrorMetadata,
}


@dataclass(frozen=True)
class PendingAction:
    """
    One planned directory change.

    Created by the planners and consumed, in order, by an external applier.
    The metadata record type must match the action kind.
    """

    action_type: ActionType
    object_name: str
    path: str
    message: str
    metadata: ActionMetadata
    row_index: Optional[int] = None

    def __post_init__(self):
        expected = _METADATA_TYPES[self.action_type]
        if not isinstance(self.metadata, expected):
            raise TypeError(
                f"{self.action_type.value} requires {expected.__name__} metadata, "
                f"got {type(self.metadata).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the action into JSON-friendly primitives."""
        metadata = asdict(self.metadata)
        for key, value in list(metadata.items()):
            if isinstance(value, Enum):
                metadata[key] = value.value
            elif key in ("attributes", "raw_row"):
                metadata[key] = dict(value)
            elif isinstance(value, tuple):
                metadata[key] = list(value)

        return {
            "action_type": self.action_type.value,
            "object_name": self.object_name,
            "path": self.path,
            "message": self.message,
            "row_index": self.row_index,
            "metadata": metadata,
        }
