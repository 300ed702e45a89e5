"""
Core Exceptions

Custom exceptions for the migration service.
"""


class MigrationError(Exception):
    """Base class for migration failures."""

    def __init__(self, message: str = "Migration failed"):
        self.message = message
        super().__init__(self.message)


class RepositoryNotFoundError(MigrationError):
    """
    Raised when storage has no repository registered under a name.

    Callers probing alias names catch this and move to the next candidate.
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Repository '{name}' not found")


class RecordNotFoundError(MigrationError):
    """Raised when an update targets a primary key that does not exist."""

    def __init__(self, repository: str, pk: object):
        self.repository = repository
        self.pk = pk
        super().__init__(f"{repository}: no record with primary key {pk!r}")


class InvalidBundleError(MigrationError):
    """Raised when an item of an import payload cannot be interpreted."""
