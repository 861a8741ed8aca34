from dataclasses import dataclass, field
from typing import Dict, List, Optional

REQUIRED_ATTRIBUTES = ("givenName", "sn", "sAMAccountName")


@dataclass
class CanonicalAttributes:
    """
    Normalized attributes produced from one input row.

    ``grouping_value`` is the raw grouping column value, never normalized.
    A required attribute that could not be filled is absent from
    ``attributes`` and listed in ``missing_required``.
    """

    attributes: Dict[str, str] = field(default_factory=dict)
    grouping_value: Optional[str] = None
    missing_columns: List[str] = field(default_factory=list)
    missing_required: List[str] = field(default_factory=list)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    @property
    def sam_account_name(self) -> Optional[str]:
        value = self.attributes.get("sAMAccountName")
        return value.strip() if value and value.strip() else None

    @property
    def needs_manual_correction(self) -> bool:
        return bool(self.missing_required)
