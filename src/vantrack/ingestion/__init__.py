"""Payload normalization for incoming client data."""

from vantrack.ingestion.normalize import moved_beyond, safe_float, safe_str, short_place_name

__all__ = ["moved_beyond", "safe_float", "safe_str", "short_place_name"]
