"""Pydantic schemas for requests, snapshots and domain events."""
