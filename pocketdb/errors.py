class PocketError(Exception):
    """Base error for the project."""


class ConfigError(PocketError):
    """Raised for a missing driver, collection name, or invalid option."""


class QueryError(PocketError):
    """Raised when a query uses an unknown operator or a malformed operand."""


class DocumentValidationError(PocketError):
    """Raised when input documents fail basic validation."""


class PersistenceError(PocketError):
    """Raised for persistence-level issues."""


class CollectionDestroyedError(PocketError):
    """Raised when a destroyed collection is used again."""
