"""Blob storage for uploaded files.

Uploaded bytes are staged to a uniquely named temporary file, pushed to the
configured blob store (local directory or S3-compatible bucket) and the
staged copy is removed whether or not the upload succeeded.
"""
