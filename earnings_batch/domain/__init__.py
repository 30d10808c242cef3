"""Frozen DTOs for the finalization sweep."""
