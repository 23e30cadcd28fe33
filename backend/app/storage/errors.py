"""Errors raised while moving uploaded bytes into the blob store."""


class UploadFailedError(Exception):
    """A blob store call or local staging I/O failed.

    The message is meant for logs only; clients get a generic "Upload failed".
    """
    def __init__(self, message: str, filename: str = ""):
        self.message = message
        self.filename = filename
        super().__init__(message)
