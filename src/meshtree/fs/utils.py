"""Virtual path helpers shared by the non-disk backends."""

from __future__ import annotations

import fnmatch
import posixpath

# Reserved filenames (Windows compatibility)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}


def normalize_path(path: str | None) -> str:
    """Normalize a virtual path to absolute POSIX form.

    - Converts backslashes to ``/``
    - Ensures leading /
    - Resolves .. and . references (never above ``/``)
    - Removes double and trailing slashes

    Examples:
        normalize_path("foo.txt") -> "/foo.txt"
        normalize_path("\\foo\\bar.txt") -> "/foo/bar.txt"
        normalize_path("/foo/../bar.txt") -> "/bar.txt"
        normalize_path("") -> "/"
    """
    if not path or not path.strip():
        return "/"

    path = path.strip().replace("\\", "/")

    if not path.startswith("/"):
        path = "/" + path

    path = posixpath.normpath(path)

    # posixpath keeps a leading "//" (implementation-defined root)
    if path.startswith("//"):
        path = "/" + path.lstrip("/")

    return path


def split_path(path: str) -> tuple[str, str]:
    """Split path into (parent_dir, filename).

    Examples:
        split_path("/foo/bar.txt") -> ("/foo", "bar.txt")
        split_path("/foo.txt") -> ("/", "foo.txt")
        split_path("/") -> ("/", "")
    """
    path = normalize_path(path)
    if path == "/":
        return "/", ""
    return posixpath.split(path)


def escapes_root(path: str | None) -> bool:
    """True if *path* climbs above ``/`` when resolved as a relative path."""
    if not path:
        return False
    depth = 0
    for part in path.replace("\\", "/").split("/"):
        if part == "..":
            depth -= 1
            if depth < 0:
                return True
        elif part not in ("", "."):
            depth += 1
    return False


def validate_path(path: str) -> tuple[bool, str]:
    """Validate a virtual path for security and compatibility issues.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if "\x00" in path:
        return False, "Path contains null bytes"

    # Reject ASCII control characters (0x01-0x1f) except \t, \n, \r
    for ch in path:
        code = ord(ch)
        if 0x01 <= code <= 0x1F and ch not in ("\t", "\n", "\r"):
            return False, f"Path contains control character: 0x{code:02x}"

    if len(path) > 4096:
        return False, "Path too long (max 4096 characters)"

    if escapes_root(path.lstrip("/\\")):
        return False, "Path escapes the allowed root."

    _, name = split_path(path)

    if name and len(name) > 255:
        return False, "Filename too long (max 255 characters)"

    if name:
        name_upper = name.upper()
        base_name = name_upper.split(".")[0] if "." in name_upper else name_upper
        if base_name in RESERVED_NAMES:
            return False, f"Reserved filename: {name}"

    return True, ""


def to_relative(path: str) -> str:
    """Strip the leading ``/`` from a normalized virtual path."""
    return normalize_path(path).lstrip("/")


def matches_pattern(name: str, pattern: str | None) -> bool:
    """Shell-style match of an entry name against a search pattern."""
    if not pattern or pattern in ("*", "*.*"):
        return True
    return fnmatch.fnmatch(name, pattern)
