"""Utility exports for filesystem and hashing helpers."""

from editgate.utils.fs import (
    atomic_write,
    directory_size,
    is_within,
    read_text_if_exists,
    resolve_in_workspace,
    safe_delete,
)
from editgate.utils.hashing import (
    canonical_json,
    sha256_bytes,
    sha256_file,
    sha256_json,
    sha256_text,
)

__all__ = [
    "atomic_write",
    "canonical_json",
    "directory_size",
    "is_within",
    "read_text_if_exists",
    "resolve_in_workspace",
    "safe_delete",
    "sha256_bytes",
    "sha256_file",
    "sha256_json",
    "sha256_text",
]
