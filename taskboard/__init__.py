"""Shared task board: authoritative task store, change broadcast and client sync."""
