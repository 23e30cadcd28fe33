"""Exceptions raised by the link registry and upload orchestrator."""


class LinkError(Exception):
    """Base exception for link errors."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class EmptyBatchError(LinkError):
    """Raised when an upload request carries no files."""
    def __init__(self, message: str = "No files uploaded"):
        super().__init__(message, status_code=400)


class BatchTooLargeError(LinkError):
    """Raised when an upload request carries more files than allowed."""
    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f"Batch of {count} files exceeds limit of {limit}", status_code=400
        )


class FolderNotFoundError(LinkError):
    """Raised when a folder id was never created (or was discarded)."""
    def __init__(self, folder_id: str):
        self.folder_id = folder_id
        super().__init__(f"Folder {folder_id} not found", status_code=404)


class FolderSealedError(LinkError):
    """Raised when appending to a folder that is already published."""
    def __init__(self, folder_id: str):
        self.folder_id = folder_id
        super().__init__(f"Folder {folder_id} is already published", status_code=409)
