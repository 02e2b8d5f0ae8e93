class RepositoryError(Exception):
    """Base class for every error raised by opensearch_repositories."""


class ConfigurationError(RepositoryError, ValueError):
    """Invalid setup: duplicate strategy names, unknown options, missing keys.

    Raised immediately to the caller and never retried.
    """


class InfrastructureError(RepositoryError):
    """An operation could not run against the search backend or the record store."""


class IndexMissingError(InfrastructureError):
    """The target index does not exist and the import was not asked to create it."""


class AdapterNotFoundError(InfrastructureError):
    """No backend adapter matches an entity type and no default adapter is set."""


class ImportCancelledError(InfrastructureError):
    """The caller cancelled an import between two batches."""
