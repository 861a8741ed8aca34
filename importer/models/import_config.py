import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

from ..exceptions import ImportConfigError

logger = logging.getLogger(__name__)

DEFAULT_OU = "DC=domain,DC=local"
DEFAULT_DOMAIN = "domain.local"
DEFAULT_PROTECTED_OU_NAMES = [
    "Users",
    "Computers",
    "Groups",
    "Domain Controllers",
    "Service Accounts",
]

# Keys as written by the settings document (camelCase) -> dataclass field
_KEY_ALIASES = {
    "headerMapping": "header_mapping",
    "ouColumn": "ou_column",
    "defaultOU": "default_ou",
    "defaultOu": "default_ou",
    "createMissingOUs": "create_missing_ous",
    "createMissingOus": "create_missing_ous",
    "groupPrefix": "group_prefix",
    "deleteNotInImport": "delete_not_in_import",
    "cleanupEmptyOUs": "cleanup_empty_ous",
    "cleanupEmptyOus": "cleanup_empty_ous",
    "defaultDomain": "default_domain",
    "protectedOuNames": "protected_ou_names",
    "createLinkedResources": "create_linked_resources",
    "maxConcurrentQueries": "max_concurrent_queries",
    "csvDelimiter": "csv_delimiter",
}


@dataclass
class ImportConfig:
    """
    Mapping configuration for one spreadsheet import.

    ``header_mapping`` maps a target directory attribute (``givenName``,
    ``sAMAccountName``...) to a template such as ``%Prenom:capitalize%``.
    ``ou_column`` names the grouping column whose raw value decides each
    row's organizational unit under ``default_ou``.
    """

    header_mapping: Dict[str, str] = field(default_factory=dict)
    ou_column: str = ""
    default_ou: str = DEFAULT_OU
    create_missing_ous: bool = True
    group_prefix: Optional[str] = None
    delete_not_in_import: bool = False
    cleanup_empty_ous: bool = False
    default_domain: str = DEFAULT_DOMAIN
    protected_ou_names: List[str] = field(
        default_factory=lambda: list(DEFAULT_PROTECTED_OU_NAMES)
    )
    create_linked_resources: bool = True
    max_concurrent_queries: int = 8
    csv_delimiter: str = ";"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportConfig":
        """
        Build a config from a settings dictionary.

        Accepts both snake_case field names and the camelCase keys used by
        saved settings documents. Unknown keys are ignored with a debug log.

        Raises:
            ImportConfigError: If data is not a dictionary
        """
        if not isinstance(data, dict):
            raise ImportConfigError(
                f"Import configuration must be a dictionary, got {type(data).__name__}"
            )

        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _KEY_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
            else:
                logger.debug(f"Ignoring unknown import config key: {key}")

        return cls(**kwargs).ensure_valid()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def ensure_valid(self) -> "ImportConfig":
        """Replace missing collections and bad values with usable defaults."""
        if self.header_mapping is None:
            logger.warning("header_mapping is None, using an empty mapping")
            self.header_mapping = {}
        if self.protected_ou_names is None:
            logger.warning("protected_ou_names is None, using the default list")
            self.protected_ou_names = list(DEFAULT_PROTECTED_OU_NAMES)
        if self.ou_column is None:
            self.ou_column = ""
        if self.default_ou is None:
            self.default_ou = ""
        self.default_ou = self.default_ou.strip()
        if not self.default_domain:
            self.default_domain = DEFAULT_DOMAIN
        if not isinstance(self.max_concurrent_queries, int) or self.max_concurrent_queries < 1:
            logger.warning(
                f"Invalid max_concurrent_queries {self.max_concurrent_queries!r}, using 8"
            )
            self.max_concurrent_queries = 8
        return self

    @classmethod
    def ensure(cls, config: Optional["ImportConfig"]) -> "ImportConfig":
        """Return a usable config, creating a default one when None is given."""
        if config is None:
            logger.warning("Import configuration is None, creating a default configuration")
            return cls()
        return config.ensure_valid()
