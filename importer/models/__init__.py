from .actions import (
    ActionType,
    CreateGroupMetadata,
    CreateOuMetadata,
    DeleteGroupMetadata,
    DeleteOuMetadata,
    DeleteUserMetadata,
    DeletionReason,
    ErrorMetadata,
    PendingAction,
    UserMetadata,
)
from .canonical_attributes import REQUIRED_ATTRIBUTES, CanonicalAttributes
from .import_analysis import Diagnostic, ImportAnalysis, ImportSummary
from .import_config import ImportConfig

__all__ = [
    'ActionType', 'CreateGroupMetadata', 'CreateOuMetadata', 'DeleteGroupMetadata',
    'DeleteOuMetadata', 'DeleteUserMetadata', 'DeletionReason', 'ErrorMetadata',
    'PendingAction', 'UserMetadata', 'REQUIRED_ATTRIBUTES', 'CanonicalAttributes',
    'Diagnostic', 'ImportAnalysis', 'ImportSummary', 'ImportConfig',
]
