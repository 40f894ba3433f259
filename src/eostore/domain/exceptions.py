"""Error taxonomy for the catalog.

Schema and catalog errors are surfaced to callers unchanged; any failure
raised by the backing store is wrapped in StorageError.
"""

from dataclasses import dataclass


class CatalogError(Exception):
    """Base class for all catalog errors."""

    pass


class NotFoundError(CatalogError):
    """Raised for an unknown type name or schema descriptor."""

    pass


class SchemaMismatchError(CatalogError):
    """Raised when a requested property is absent from the resolved type."""

    pass


class DuplicateClassError(CatalogError):
    """Raised when a product class collides with a registered one."""

    pass


class StorageError(CatalogError):
    """Raised when the backing store fails, including constraint violations."""

    pass


class ConfigurationError(CatalogError):
    """Raised for malformed configuration, e.g. an invalid index specification."""

    pass


class ReadOnlyTypeError(CatalogError):
    """Raised when writing to a type or property that cannot be written."""

    pass


@dataclass
class IndexFailure:
    """A single index that could not be created or dropped.

    Attributes:
        name: The index name.
        definition: The DDL that was attempted.
        error: The error reported by the store.
    """

    name: str
    definition: str
    error: str


class IndexReconciliationError(StorageError):
    """Raised when one or more indexes failed to reconcile."""

    def __init__(self, collection: str, failures: list[IndexFailure]) -> None:
        self.collection = collection
        self.failures = failures
        names = ", ".join(failure.name for failure in failures)
        super().__init__(f"Index reconciliation for '{collection}' failed on: {names}")
