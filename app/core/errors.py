"""
Exceptions raised by the storage layer.
Routes translate them into JSON error responses.
"""


class StorageError(Exception):
    """Base class for remote storage failures."""


class StorageConfigError(StorageError):
    """Credentials or backend settings are missing."""


class StorageConnectionError(StorageError):
    """Login or connection to the remote storage failed."""


class RemoteFileNotFound(StorageError):
    """No remote file exists for the given identifier."""

    def __init__(self, file_id: str):
        super().__init__(f"File not found: {file_id}")
        self.file_id = file_id
