"""Expiring share links.

A batch of uploaded files becomes a folder in the in-memory LinkRegistry.
The folder is addressed by an opaque id and rendered by the viewer until its
retention period runs out.  Nothing survives a process restart.
"""
