"""
Shared pytest fixtures: an in-memory directory standing in for LDAP.
"""

import threading
from typing import Dict, Iterable, List, Optional

import pytest

from directory.base_directory import BaseDirectory, DirectoryUser
from importer.exceptions import DirectoryQueryError
from importer.models.import_config import ImportConfig
from importer.path_builder import canonical_key, container_of

BASE_OU = "OU=Base,DC=school,DC=local"


class FakeDirectory(BaseDirectory):
    """
    In-memory directory.

    ``failures`` holds ``(method_name, argument)`` pairs that raise
    DirectoryQueryError, matched case-insensitively on the argument.
    """

    def __init__(
        self,
        containers: Iterable[str] = (),
        users: Iterable[DirectoryUser] = (),
        groups: Optional[Dict[str, List[str]]] = None,
        other_objects: Iterable[str] = (),
        failures: Iterable = (),
    ):
        self.containers = {canonical_key(c): c for c in containers}
        self.users = list(users)
        self.groups = dict(groups or {})
        self.other_objects = {canonical_key(c) for c in other_objects}
        self.failures = {(m, canonical_key(a)) for m, a in failures}
        self.calls = []
        self.requested_attributes = []
        self._lock = threading.Lock()

    def _record(self, method: str, argument: str) -> None:
        with self._lock:
            self.calls.append((method, argument))
        if (method, canonical_key(argument)) in self.failures:
            raise DirectoryQueryError(f"{method} failed for {argument}")

    def _users_in(self, path: str) -> List[DirectoryUser]:
        return [u for u in self.users if canonical_key(u.container) == canonical_key(path)]

    def _groups_in(self, path: str) -> List[str]:
        return [g for g in self.groups if canonical_key(container_of(g)) == canonical_key(path)]

    def container_exists(self, path: str) -> bool:
        self._record("container_exists", path)
        return canonical_key(path) in self.containers

    def is_container_empty_of_users(self, path: str) -> bool:
        self._record("is_container_empty_of_users", path)
        return not self._users_in(path)

    def is_container_completely_empty(self, path: str) -> bool:
        self._record("is_container_completely_empty", path)
        key = canonical_key(path)
        has_child_ou = any(canonical_key(container_of(c)) == key for c in self.containers.values())
        return not (
            has_child_ou
            or self._users_in(path)
            or self._groups_in(path)
            or key in self.other_objects
        )

    def groups_in(self, container_path: str) -> List[str]:
        self._record("groups_in", container_path)
        return self._groups_in(container_path)

    def is_group_empty(self, group_dn: str) -> bool:
        self._record("is_group_empty", group_dn)
        return not self.groups.get(group_dn)

    def find_user(
        self, sam_account_name: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryUser]:
        self._record("find_user", sam_account_name)
        with self._lock:
            self.requested_attributes.append(attributes)
        for user in self.users:
            if user.sam_account_name.lower() == sam_account_name.lower():
                return user
        return None

    def users_under(self, base_path: str) -> List[DirectoryUser]:
        self._record("users_under", base_path)
        suffix = canonical_key(base_path)
        return [
            u for u in self.users
            if canonical_key(u.distinguished_name).endswith("," + suffix)
        ]

    def calls_to(self, method: str) -> List[str]:
        return [argument for name, argument in self.calls if name == method]


def make_user(sam: str, container: str, **attributes) -> DirectoryUser:
    attributes.setdefault("sAMAccountName", sam)
    return DirectoryUser(
        sam_account_name=sam,
        distinguished_name=f"CN={sam},{container}",
        display_name=attributes.get("displayName"),
        attributes=attributes,
    )


@pytest.fixture
def fake_directory_factory():
    return FakeDirectory


@pytest.fixture
def base_config():
    return ImportConfig(
        header_mapping={
            "givenName": "%Prenom:capitalize%",
            "sn": "%Nom:uppercase%",
            "sAMAccountName": "%Prenom%.%Nom%",
        },
        ou_column="Classe",
        default_ou=BASE_OU,
        create_missing_ous=True,
    )
