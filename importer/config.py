import os
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()


class ImporterConfig:
    """Centralized importer configuration management."""

    @staticmethod
    def get_config() -> Dict[str, Any]:
        """Get importer runtime configuration from environment variables."""
        return {
            'max_concurrent_queries': int(os.getenv('IMPORT_MAX_CONCURRENT_QUERIES', '8')),
            'log_dir': os.getenv('IMPORT_LOG_DIR', 'logs'),
            'config_store': os.getenv('IMPORT_CONFIG_STORE', 'import_configs.json'),
            'default_domain': os.getenv('IMPORT_DEFAULT_DOMAIN', 'domain.local'),
        }

    @staticmethod
    def get_ldap_config() -> Dict[str, Any]:
        """Get the LDAP adapter configuration from environment variables."""
        return {
            'server': os.getenv('LDAP_SERVER'),
            'search_base': os.getenv('LDAP_SEARCH_BASE'),
            'user': os.getenv('LDAP_USER'),
            'password': os.getenv('LDAP_PASSWORD'),
            'keyring_service': os.getenv('LDAP_KEYRING_SERVICE', 'directory-import'),
            'port': int(os.getenv('LDAP_PORT', '636')),
            'use_ssl': os.getenv('LDAP_USE_SSL', 'true').lower() in ('1', 'true', 'yes'),
            'timeout': int(os.getenv('LDAP_TIMEOUT', '30')),
        }
