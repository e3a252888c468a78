"""Utility modules for the procurement kernel."""

from procurement_kernel.utils.hashing import (
    canonicalize_json,
    hash_payload,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
]
