import getpass
import logging
import threading
from typing import Any, Dict, List, Optional

import keyring
from ldap3 import ALL, BASE, LEVEL, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException

logger = logging.getLogger(__name__)

# LDAP result codes that mean "nothing matched" rather than "the query failed"
RESULT_SUCCESS = 0
RESULT_SIZE_LIMIT_EXCEEDED = 4
RESULT_NO_SUCH_OBJECT = 32

SCOPES = {"base": BASE, "level": LEVEL, "subtree": SUBTREE}


class LDAPAdapter:
    """
    LDAP connection adapter for the directory being imported into.

    Handles the server connection, authentication (keyring with an
    interactive fallback) and read-only searches. Every search opens and
    closes its own connection so searches may run from several threads.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the adapter from a configuration dictionary.

        Args:
            config: LDAP connection settings.
                   Required keys:
                   - 'server': LDAP server hostname
                   - 'search_base': Base DN for searches
                   - 'user': Bind user (DN or user@domain)
                   - 'keyring_service': Keyring service name holding the password

                   Optional keys with defaults:
                   - 'port': LDAP port (default: 636 with SSL, 389 without)
                   - 'use_ssl': Enable SSL/TLS (default: True)
                   - 'timeout': Connection timeout in seconds (default: 30)
                   - 'password': Bind password, skips the keyring lookup when set
                   - 'default_page_size': Page size for paged searches (default: 1000)

        Raises:
            TypeError: If configuration is not a dictionary
            ValueError: If required configuration keys are missing or empty
        """
        if not isinstance(config, dict):
            raise TypeError("Configuration must be a dictionary")

        required_keys = ["server", "search_base", "user", "keyring_service"]
        missing_keys = [key for key in required_keys if not config.get(key)]
        if missing_keys:
            raise ValueError(f"Missing required configuration keys: {missing_keys}")

        self.server_hostname = config["server"]
        self.search_base = config["search_base"]
        self.user = config["user"]
        self.keyring_service = config["keyring_service"]

        self.use_ssl = config.get("use_ssl", True)
        self.port = config.get("port") or (636 if self.use_ssl else 389)
        self.timeout = config.get("timeout", 30)
        self.default_page_size = config.get("default_page_size", 1000)

        self._server = None
        self._password = config.get("password")
        self._password_lock = threading.Lock()

        logger.debug(f"LDAP adapter initialized for server: {self.server_hostname}")

    def _get_password(self) -> str:
        """
        Retrieve the bind password from the keyring or prompt for it.

        Raises:
            KeyboardInterrupt: If the user cancels the password prompt
        """
        with self._password_lock:
            if self._password:
                return self._password

            try:
                password = keyring.get_password(self.keyring_service, self.user)
                if password:
                    logger.debug("Using password from keyring")
                    self._password = password
                    return password
            except Exception as e:
                logger.warning(f"Could not retrieve password from keyring: {e}")

            try:
                password = getpass.getpass(f"Enter LDAP password for {self.user}: ")
            except KeyboardInterrupt:
                logger.info("Password prompt cancelled by user")
                raise

            self._password = password
            try:
                if input("Save password to keyring? (y/n): ").lower().strip() == "y":
                    keyring.set_password(self.keyring_service, self.user, password)
                    logger.info("Password saved to keyring")
            except Exception as e:
                logger.warning(f"Could not save password to keyring: {e}")

            return password

    def _create_server(self) -> Server:
        if not self._server:
            self._server = Server(
                self.server_hostname,
                use_ssl=self.use_ssl,
                port=self.port,
                get_info=ALL,
                connect_timeout=self.timeout,
            )
            logger.debug(f"LDAP server object created: {self.server_hostname}:{self.port}")
        return self._server

    def _create_connection(self) -> Connection:
        """
        Create and bind a new connection.

        Raises:
            LDAPException: If the connection or the bind fails
        """
        try:
            connection = Connection(
                self._create_server(),
                user=self.user,
                password=self._get_password(),
                auto_bind=True,
                receive_timeout=self.timeout,
            )
        except LDAPException as e:
            logger.error(f"LDAP connection failed: {e}")
            raise

        if not connection.bound:
            raise LDAPException(f"Failed to bind to {self.server_hostname} as {self.user}")

        logger.debug(f"Connected to {self.server_hostname}")
        return connection

    def test_connection(self) -> bool:
        """
        Bind and run a small one-level OU search under the search base.

        Returns:
            bool: True if the bind and the search succeed
        """
        conn = None
        try:
            conn = self._create_connection()
            success = conn.search(
                search_base=self.search_base,
                search_filter="(objectClass=organizationalUnit)",
                search_scope=LEVEL,
                attributes=["ou"],
                size_limit=10,
            )
            if success or conn.result.get("result") == RESULT_SIZE_LIMIT_EXCEEDED:
                logger.info(
                    f"Connection test successful: found {len(conn.entries)} organizational units"
                )
                return True

            logger.warning(f"Connection test search failed: {conn.result}")
            return False

        except LDAPException as e:
            logger.error(f"LDAP connection test failed: {e}")
            return False
        finally:
            self._close(conn)

    def get_connection_info(self) -> Dict[str, Any]:
        """Configuration details, password excluded."""
        return {
            "server": self.server_hostname,
            "port": self.port,
            "use_ssl": self.use_ssl,
            "search_base": self.search_base,
            "user": self.user,
            "keyring_service": self.keyring_service,
            "timeout": self.timeout,
            "default_page_size": self.default_page_size,
        }

    def __repr__(self) -> str:
        return (
            f"LDAPAdapter(server='{self.server_hostname}', port={self.port}, "
            f"use_ssl={self.use_ssl}, search_base='{self.search_base}', user='{self.user}')"
        )

    # Search

    def search(
        self,
        search_filter: str,
        search_base: Optional[str] = None,
        scope: str = "subtree",
        attributes: Optional[List[str]] = None,
        max_results: Optional[int] = None,
        use_pagination: bool = True,
        page_size: Optional[int] = None,
    ) -> List:
        """
        Run a search and return ldap3 Entry objects.

        A missing search base yields an empty list, not an error.

        Args:
            search_filter: LDAP filter string, e.g. '(objectClass=group)'
            search_base: Base DN (defaults to the adapter's search_base)
            scope: 'base', 'level' or 'subtree'
            attributes: Attributes to retrieve (None for all, ['1.1'] for none)
            max_results: Size limit for the search
            use_pagination: Use a paged search when no size limit is given
            page_size: Page size (defaults to the adapter's default_page_size)

        Returns:
            List: ldap3 Entry objects

        Raises:
            ValueError: If the filter or scope is invalid
            LDAPException: If the search fails
        """
        if not search_filter or not isinstance(search_filter, str):
            raise ValueError("search_filter must be a non-empty string")
        if scope.lower() not in SCOPES:
            raise ValueError(f"scope must be one of: {list(SCOPES)}")

        if attributes is None:
            search_attributes = ["*"]
        elif len(attributes) == 0:
            search_attributes = ["objectClass"]
        else:
            search_attributes = attributes

        search_kwargs = {
            "search_base": search_base if search_base is not None else self.search_base,
            "search_filter": search_filter,
            "search_scope": SCOPES[scope.lower()],
            "attributes": search_attributes,
        }

        logger.debug(
            f"Executing search: filter='{search_filter}', base='{search_kwargs['search_base']}', "
            f"scope='{scope}'"
        )

        conn = None
        try:
            conn = self._create_connection()
            if use_pagination and not max_results:
                results = self._execute_paged_search(
                    conn, page_size or self.default_page_size, **search_kwargs
                )
            else:
                if max_results:
                    search_kwargs["size_limit"] = max_results
                results = self._execute_simple_search(conn, **search_kwargs)

            logger.debug(f"Search completed: {len(results)} results")
            return results
        finally:
            self._close(conn)

    def search_as_dicts(self, *args, **kwargs) -> List[Dict[str, Any]]:
        """Same as search() but each entry becomes a dict with 'dn' plus its attributes."""
        result_dicts = []
        for entry in self.search(*args, **kwargs):
            entry_dict = {"dn": entry.entry_dn}
            for attr_name in entry.entry_attributes:
                entry_dict[attr_name] = getattr(entry, attr_name).value
            result_dicts.append(entry_dict)
        return result_dicts

    def count_search_results(
        self,
        search_filter: str,
        search_base: Optional[str] = None,
        scope: str = "subtree",
        max_results: Optional[int] = None,
    ) -> int:
        """
        Count matching entries without transferring attributes.

        With max_results set the count stops there, which is enough for
        "is there anything" checks.
        """
        results = self.search(
            search_filter=search_filter,
            search_base=search_base,
            scope=scope,
            attributes=["1.1"],
            max_results=max_results,
        )
        return len(results)

    @staticmethod
    def _check_result(conn: Connection) -> bool:
        """True if the search matched entries, False if nothing matched; raise otherwise."""
        code = (conn.result or {}).get("result", RESULT_SUCCESS)
        if code in (RESULT_SUCCESS, RESULT_SIZE_LIMIT_EXCEEDED):
            if code == RESULT_SIZE_LIMIT_EXCEEDED:
                logger.debug(f"Search stopped at size limit after {len(conn.entries)} results")
            return True
        if code == RESULT_NO_SUCH_OBJECT:
            return False
        raise LDAPException(f"Search failed: {conn.result.get('description')} ({code})")

    def _execute_simple_search(self, conn: Connection, **search_kwargs) -> List:
        conn.search(**search_kwargs)
        if not self._check_result(conn):
            return []
        return list(conn.entries)

    def _execute_paged_search(self, conn: Connection, page_size: int, **search_kwargs) -> List:
        """
        Retrieve every page through ldap3's paged_search.

        generator=False makes the search complete before the connection is
        closed; the Entry objects are then read back from conn.entries.
        """
        conn.extend.standard.paged_search(
            paged_size=page_size, generator=False, **search_kwargs
        )
        if not self._check_result(conn):
            return []
        return list(conn.entries) if conn.entries else []

    @staticmethod
    def _close(conn: Optional[Connection]) -> None:
        if conn is None:
            return
        try:
            conn.unbind()
            logger.debug("LDAP connection closed")
        except LDAPException as e:
            logger.debug(f"Error while closing LDAP connection: {e}")
