"""Ephemeral chat rooms.

Connections join rooms by name and relay text or file messages to the other
members.  Nothing is stored; a message reaches whoever is in the room when it
is sent.
"""
