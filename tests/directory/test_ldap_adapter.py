"""
Unit tests for LDAPAdapter with ldap3 and keyring mocked out.
"""

from unittest.mock import MagicMock, patch

import pytest
from ldap3.core.exceptions import LDAPException

from directory.adapters.ldap_adapter import LDAPAdapter

CONFIG = {
    "server": "dc01.school.local",
    "search_base": "DC=school,DC=local",
    "user": "svc-import@school.local",
    "keyring_service": "directory-import",
}


def make_entry(dn, **attributes):
    entry = MagicMock()
    entry.entry_dn = dn
    entry.entry_attributes = list(attributes)
    for name, value in attributes.items():
        setattr(entry, name, MagicMock(value=value))
    return entry


@pytest.fixture
def connection():
    with patch("directory.adapters.ldap_adapter.Connection") as connection_class, patch(
        "directory.adapters.ldap_adapter.Server"
    ), patch("directory.adapters.ldap_adapter.keyring") as mock_keyring:
        mock_keyring.get_password.return_value = "secret"
        conn = connection_class.return_value
        conn.bound = True
        conn.result = {"result": 0, "description": "success"}
        conn.entries = []
        yield conn


class TestLDAPAdapterConfig:
    """Tests for configuration validation."""

    def test_requires_dict(self):
        with pytest.raises(TypeError):
            LDAPAdapter("not a dict")

    def test_requires_keys(self):
        with pytest.raises(ValueError):
            LDAPAdapter({"server": "dc01"})

    def test_defaults(self):
        adapter = LDAPAdapter(CONFIG)

        assert adapter.port == 636
        assert adapter.use_ssl is True
        assert "password" not in adapter.get_connection_info()

    def test_non_ssl_default_port(self):
        adapter = LDAPAdapter({**CONFIG, "use_ssl": False})

        assert adapter.port == 389


class TestLDAPAdapterPassword:
    """Tests for password lookup."""

    @patch("directory.adapters.ldap_adapter.keyring")
    def test_keyring_password(self, mock_keyring):
        mock_keyring.get_password.return_value = "secret"
        adapter = LDAPAdapter(CONFIG)

        assert adapter._get_password() == "secret"
        assert adapter._get_password() == "secret"
        mock_keyring.get_password.assert_called_once_with("directory-import", CONFIG["user"])

    @patch("directory.adapters.ldap_adapter.keyring")
    def test_configured_password_skips_keyring(self, mock_keyring):
        adapter = LDAPAdapter({**CONFIG, "password": "from-env"})

        assert adapter._get_password() == "from-env"
        mock_keyring.get_password.assert_not_called()

    @patch("builtins.input", return_value="n")
    @patch("directory.adapters.ldap_adapter.getpass.getpass", return_value="typed")
    @patch("directory.adapters.ldap_adapter.keyring")
    def test_prompt_when_keyring_empty(self, mock_keyring, mock_getpass, mock_input):
        mock_keyring.get_password.return_value = None
        adapter = LDAPAdapter(CONFIG)

        assert adapter._get_password() == "typed"
        mock_keyring.set_password.assert_not_called()


class TestLDAPAdapterSearch:
    """Tests for search and its helpers."""

    def test_search_returns_entries(self, connection):
        connection.entries = [make_entry("CN=a,DC=school,DC=local", cn="a")]
        adapter = LDAPAdapter(CONFIG)

        results = adapter.search("(objectClass=group)", scope="level", max_results=5)

        assert len(results) == 1
        kwargs = connection.search.call_args.kwargs
        assert kwargs["size_limit"] == 5
        assert kwargs["search_base"] == "DC=school,DC=local"
        connection.unbind.assert_called_once()

    def test_paged_search_by_default(self, connection):
        connection.entries = [make_entry("CN=a,DC=x"), make_entry("CN=b,DC=x")]
        adapter = LDAPAdapter(CONFIG)

        results = adapter.search("(objectClass=user)")

        assert len(results) == 2
        connection.extend.standard.paged_search.assert_called_once()
        assert connection.extend.standard.paged_search.call_args.kwargs["paged_size"] == 1000

    def test_missing_base_is_empty(self, connection):
        connection.result = {"result": 32, "description": "noSuchObject"}
        connection.entries = [make_entry("CN=stale,DC=x")]
        adapter = LDAPAdapter(CONFIG)

        assert adapter.search("(objectClass=*)", search_base="OU=Gone,DC=x", max_results=1) == []

    def test_failed_search_raises(self, connection):
        connection.result = {"result": 50, "description": "insufficientAccessRights"}
        adapter = LDAPAdapter(CONFIG)

        with pytest.raises(LDAPException):
            adapter.search("(objectClass=*)", max_results=1)
        connection.unbind.assert_called_once()

    def test_invalid_scope(self, connection):
        with pytest.raises(ValueError):
            LDAPAdapter(CONFIG).search("(objectClass=*)", scope="everything")

    def test_search_as_dicts(self, connection):
        connection.entries = [make_entry("CN=a,DC=x", sAMAccountName="a", member=[])]

        results = LDAPAdapter(CONFIG).search_as_dicts("(objectClass=user)", max_results=1)

        assert results == [{"dn": "CN=a,DC=x", "sAMAccountName": "a", "member": []}]

    def test_count_requests_no_attributes(self, connection):
        connection.entries = [make_entry("CN=a,DC=x")]

        count = LDAPAdapter(CONFIG).count_search_results("(objectClass=*)", max_results=1)

        assert count == 1
        assert connection.search.call_args.kwargs["attributes"] == ["1.1"]

    def test_connection_test(self, connection):
        connection.search.return_value = True

        assert LDAPAdapter(CONFIG).test_connection() is True

    def test_connection_test_bind_failure(self, connection):
        connection.bound = False

        assert LDAPAdapter(CONFIG).test_connection() is False
