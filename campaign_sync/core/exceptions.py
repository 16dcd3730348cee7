__all__ = [
    "CampaignSyncError",
    "ConfigurationError",
    "UnknownSchemaError",
    "InputError",
    "MissingUploadListError",
    "LogonError",
    "QueryError",
    "PayloadError",
]


class CampaignSyncError(Exception):
    """
    Base class for errors raised by this package.
    """


class ConfigurationError(CampaignSyncError):
    """
    Raised when the requested operation is not configured correctly. Always
    detected before any request is made to the backend.
    """


class UnknownSchemaError(ConfigurationError):
    """
    Raised when a schema id has no descriptor in the registry.
    """

    schema_id: str
    known: list[str]

    def __init__(self, schema_id: str, known: list[str]):
        self.schema_id = schema_id
        self.known = known
        super().__init__(
            f"Unrecognised schema: {schema_id}. Known schemas are: {', '.join(known)}"
        )


class InputError(CampaignSyncError):
    """
    Raised when local input can't be read.
    """


class MissingUploadListError(InputError):
    """
    Raised when the upload list file does not exist.
    """

    def __init__(self, path):
        self.path = path
        super().__init__(f"File {path} not found.")


class LogonError(CampaignSyncError):
    """
    Raised when logon to the backend is rejected or fails.
    """


class QueryError(CampaignSyncError):
    """
    Raised when a query fails. Fatal to the invocation which issued it.
    """


class PayloadError(CampaignSyncError):
    """
    Raised when a write request can't be built from a template, e.g. the
    code of an xml-bodied schema is not well-formed.
    """
