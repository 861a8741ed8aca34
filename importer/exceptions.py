class ImporterError(Exception):
    """Base exception for import planning errors."""
    pass

class ImportConfigError(ImporterError):
    """Raised when an import configuration cannot be used."""
    pass

class DirectoryQueryError(ImporterError):
    """Raised when a read-only directory query fails."""
    pass

class ConfigStoreError(ImporterError):
    """Raised when the saved configuration document cannot be read or written."""
    pass
