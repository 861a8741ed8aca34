"""
Directory facade for the import planner.

Answers the read-only questions the planners ask (does this OU exist, is it
empty, who lives under it) on top of a single LDAPAdapter.
"""

import logging
from typing import Any, Dict, List, Optional

from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from importer.exceptions import DirectoryQueryError

from ..adapters.ldap_adapter import LDAPAdapter
from ..base_directory import BaseDirectory, DirectoryUser

logger = logging.getLogger(__name__)

OU_FILTER = "(objectClass=organizationalUnit)"
USER_FILTER = "(&(objectCategory=person)(objectClass=user))"
GROUP_FILTER = "(objectClass=group)"
ANY_OBJECT_FILTER = "(objectClass=*)"

USER_ATTRIBUTES = [
    "sAMAccountName",
    "displayName",
    "givenName",
    "sn",
    "mail",
    "userPrincipalName",
    "initials",
    "description",
    "title",
    "department",
    "company",
    "telephoneNumber",
]
IDENTITY_ATTRIBUTES = ["sAMAccountName", "displayName"]


def requested_attributes(attributes: Optional[List[str]] = None) -> List[str]:
    """Identity attributes plus the given names (or USER_ATTRIBUTES), without case-insensitive repeats."""
    names = []
    seen = set()
    for name in IDENTITY_ATTRIBUTES + list(USER_ATTRIBUTES if attributes is None else attributes):
        if name and name.strip() and name.strip().lower() not in seen:
            seen.add(name.strip().lower())
            names.append(name.strip())
    return names


class DirectoryFacade(BaseDirectory):
    """
    LDAP-backed implementation of the planners' directory queries.

    Every ldap3 failure is re-raised as DirectoryQueryError so callers deal
    with one exception type.
    """

    def __init__(self, ldap_config: Dict[str, Any], adapter: Optional[LDAPAdapter] = None) -> None:
        """
        Args:
            ldap_config: Configuration dictionary for the LDAP adapter
            adapter: Ready-made adapter, used instead of building one from ldap_config

        Raises:
            DirectoryQueryError: If the connection test fails
        """
        self.adapter = adapter or LDAPAdapter(ldap_config)
        if not self.adapter.test_connection():
            logger.error(f"❌ Failed to connect to directory {self.adapter.server_hostname}")
            raise DirectoryQueryError(
                f"Failed to establish directory connection to {self.adapter.server_hostname}"
            )
        logger.info(f"✅ Directory facade connected to {self.adapter.server_hostname}")

    def _search(self, description: str, **kwargs) -> List[Dict[str, Any]]:
        try:
            return self.adapter.search_as_dicts(**kwargs)
        except LDAPException as e:
            logger.error(f"Directory query failed ({description}): {e}")
            raise DirectoryQueryError(f"Directory query failed ({description}): {e}") from e

    def _count(self, description: str, **kwargs) -> int:
        try:
            return self.adapter.count_search_results(**kwargs)
        except LDAPException as e:
            logger.error(f"Directory query failed ({description}): {e}")
            raise DirectoryQueryError(f"Directory query failed ({description}): {e}") from e

    def container_exists(self, path: str) -> bool:
        if not path or not path.strip():
            return False
        count = self._count(
            f"OU exists {path}",
            search_filter=OU_FILTER,
            search_base=path,
            scope="base",
            max_results=1,
        )
        return count > 0

    def is_container_empty_of_users(self, path: str) -> bool:
        count = self._count(
            f"users in {path}",
            search_filter=USER_FILTER,
            search_base=path,
            scope="level",
            max_results=1,
        )
        return count == 0

    def is_container_completely_empty(self, path: str) -> bool:
        count = self._count(
            f"children of {path}",
            search_filter=ANY_OBJECT_FILTER,
            search_base=path,
            scope="level",
            max_results=1,
        )
        return count == 0

    def groups_in(self, container_path: str) -> List[str]:
        entries = self._search(
            f"groups in {container_path}",
            search_filter=GROUP_FILTER,
            search_base=container_path,
            scope="level",
            attributes=["cn"],
        )
        return [e["dn"] for e in entries]

    def is_group_empty(self, group_dn: str) -> bool:
        entries = self._search(
            f"members of {group_dn}",
            search_filter=GROUP_FILTER,
            search_base=group_dn,
            scope="base",
            attributes=["member"],
            use_pagination=False,
        )
        if not entries:
            logger.warning(f"Group '{group_dn}' not found")
            return False
        return not entries[0].get("member")

    def find_user(
        self, sam_account_name: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryUser]:
        search_filter = (
            f"(&{USER_FILTER}(sAMAccountName={escape_filter_chars(sam_account_name)}))"
        )
        entries = self._search(
            f"user {sam_account_name}",
            search_filter=search_filter,
            attributes=requested_attributes(attributes),
            max_results=2,
        )
        if not entries:
            return None
        if len(entries) > 1:
            logger.warning(f"Several directory users match '{sam_account_name}', using the first")
        return self._to_user(entries[0])

    def users_under(self, base_path: str) -> List[DirectoryUser]:
        entries = self._search(
            f"users under {base_path}",
            search_filter=USER_FILTER,
            search_base=base_path,
            scope="subtree",
            attributes=USER_ATTRIBUTES,
        )
        return [self._to_user(e) for e in entries]

    @staticmethod
    def _to_user(entry: Dict[str, Any]) -> DirectoryUser:
        attributes = {}
        for name, value in entry.items():
            if name == "dn" or value is None or value == []:
                continue
            if isinstance(value, list):
                value = value[0]
            attributes[name] = str(value)

        return DirectoryUser(
            sam_account_name=attributes.get("sAMAccountName", ""),
            distinguished_name=entry["dn"],
            display_name=attributes.get("displayName"),
            attributes=attributes,
        )

    def close(self) -> None:
        # The adapter opens one connection per search; nothing stays bound
        logger.info("Directory facade closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
