from .base_directory import BaseDirectory, DirectoryUser
from .adapters.ldap_adapter import LDAPAdapter
from .facade.directory_facade import DirectoryFacade

__all__ = ['BaseDirectory', 'DirectoryUser', 'LDAPAdapter', 'DirectoryFacade']
