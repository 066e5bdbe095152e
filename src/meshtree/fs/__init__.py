"""Filesystem helpers: path sandboxing and virtual path arithmetic."""

from meshtree.fs.security import (
    SecurePathResult,
    SecurityViolation,
    get_parent_relative_path,
    is_relative_path,
    is_root_path,
    is_secure_path,
    is_within_root,
    normalize_path_separators,
    require_secure_path,
    secure_combine,
    to_relative_path,
    trim_leading_slashes,
)
from meshtree.fs.utils import matches_pattern, normalize_path, split_path, validate_path

__all__ = [
    "SecurePathResult",
    "SecurityViolation",
    "get_parent_relative_path",
    "is_relative_path",
    "is_root_path",
    "is_secure_path",
    "is_within_root",
    "matches_pattern",
    "normalize_path",
    "normalize_path_separators",
    "require_secure_path",
    "secure_combine",
    "split_path",
    "to_relative_path",
    "trim_leading_slashes",
    "validate_path",
]
