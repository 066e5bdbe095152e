"""Path sandboxing: validate and combine relative paths against a trusted root.

Everything here is pure string arithmetic over ``os.path``; nothing touches
the disk.  ``secure_combine`` canonicalizes the joined path and re-checks
containment, so ``folder/../file.txt`` is accepted while ``../outside`` is
rejected.  Violations come back as a typed :class:`SecurePathResult` rather
than an exception.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from meshtree.exceptions import PathSecurityError


class SecurityViolation(str, Enum):
    """Kind of sandbox violation reported by ``secure_combine``."""

    NONE = "none"
    ABSOLUTE_PATH_NOT_ALLOWED = "absolute_path_not_allowed"
    PATH_ESCAPES_ROOT = "path_escapes_root"
    INVALID_PATH = "invalid_path"


@dataclass(frozen=True, slots=True)
class SecurePathResult:
    """Outcome of a ``secure_combine`` call.

    Use :meth:`ok` and :meth:`fail`; a result is either valid with a
    ``full_path`` or invalid with an ``error_message`` and a violation.
    """

    is_valid: bool
    full_path: str | None = None
    error_message: str | None = None
    violation: SecurityViolation = SecurityViolation.NONE

    @classmethod
    def ok(cls, full_path: str) -> SecurePathResult:
        return cls(is_valid=True, full_path=full_path)

    @classmethod
    def fail(cls, violation: SecurityViolation, message: str) -> SecurePathResult:
        return cls(is_valid=False, error_message=message, violation=violation)


# =============================================================================
# Primitive checks
# =============================================================================


def is_root_path(path: str | None) -> bool:
    """True for ``None``, blank, ``"/"`` or ``"\\"``."""
    return path is None or not path.strip() or path in ("/", "\\")


def normalize_path_separators(path: str | None) -> str:
    """Convert backslashes to forward slashes."""
    if not path:
        return ""
    return path.replace("\\", "/")


def trim_leading_slashes(path: str | None) -> str:
    """Strip any run of leading ``/`` and ``\\``."""
    if not path:
        return ""
    return path.lstrip("/\\")


def is_relative_path(path: str | None) -> bool:
    """True unless the host OS treats *path* as absolute.  Empty is relative."""
    if not path:
        return True
    return not os.path.isabs(path)


def is_within_root(root_path: str | None, combined_path: str | None) -> bool:
    """True iff *combined_path* is *root_path* or lies underneath it.

    Comparison is ordinal; both arguments are expected to be canonical.
    """
    if not root_path or not combined_path:
        return False

    root_with_sep = root_path if root_path.endswith(os.sep) else root_path + os.sep
    return combined_path == root_path or combined_path.startswith(root_with_sep)


def is_secure_path(path: str | None) -> bool:
    """Cheap pre-check: no NUL bytes and no literal ``..``.  Blank is secure."""
    if path is None or not path.strip():
        return True
    return "\x00" not in path and ".." not in path


# =============================================================================
# Combination
# =============================================================================


def _canonicalize(path: str) -> str:
    if "\x00" in path:
        raise ValueError("embedded null byte")
    return os.path.abspath(path)


def secure_combine(root_path: str, relative_path: str | None) -> SecurePathResult:
    """Combine *relative_path* with *root_path*, refusing anything outside it."""
    try:
        if is_root_path(relative_path):
            return SecurePathResult.ok(root_path)

        normalized = trim_leading_slashes(normalize_path_separators(relative_path))

        if not is_relative_path(normalized):
            return SecurePathResult.fail(
                SecurityViolation.ABSOLUTE_PATH_NOT_ALLOWED,
                "Absolute paths are not allowed.",
            )

        root = _canonicalize(root_path)
        combined = _canonicalize(os.path.join(root, normalized))

        if not is_within_root(root, combined):
            return SecurePathResult.fail(
                SecurityViolation.PATH_ESCAPES_ROOT,
                "Path escapes the allowed root.",
            )

        return SecurePathResult.ok(combined)
    except Exception as e:
        return SecurePathResult.fail(SecurityViolation.INVALID_PATH, f"Invalid path: {e}")


def require_secure_path(root_path: str, relative_path: str | None) -> str:
    """Like ``secure_combine`` but raise ``PathSecurityError`` on violation."""
    result = secure_combine(root_path, relative_path)
    if not result.is_valid:
        raise PathSecurityError(
            result.error_message or "Invalid path.", result.violation
        )
    assert result.full_path is not None
    return result.full_path


# =============================================================================
# Relative path helpers
# =============================================================================


def to_relative_path(root_path: str | None, full_path: str | None) -> str:
    """Return *full_path* relative to *root_path* with ``/`` separators.

    The root itself maps to ``"."``.
    """
    if not root_path or not full_path:
        return ""
    return normalize_path_separators(os.path.relpath(full_path, root_path))


def get_parent_relative_path(relative_path: str | None) -> str:
    """Parent of a relative path, or ``""`` for a top-level entry.

    Examples:
        get_parent_relative_path("folder/sub/file.txt") -> "folder/sub"
        get_parent_relative_path("file.txt") -> ""
    """
    if relative_path is None or not relative_path.strip():
        return ""

    normalized = normalize_path_separators(relative_path).rstrip("/")
    idx = normalized.rfind("/")
    if idx <= 0:
        return ""
    return normalized[:idx]
