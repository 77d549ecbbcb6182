"""Protected paths that must never be staged or deleted.

Cleanup candidates are checked against these patterns before staging and
again when category targets locate candidates. The recovery store itself
is always protected so a cleanup can never archive its own archives.
"""

import fnmatch
from pathlib import Path

# Protected filesystem path patterns (glob-style).
# Patterns starting with ~ are expanded to the user's home directory
# before matching. Patterns starting with / are matched as-is.
PROTECTED_PATH_PATTERNS: list[str] = [
    # SSH and security
    "~/.ssh",
    "~/.ssh/*",
    "~/.gnupg",
    "~/.gnupg/*",
    "~/.pki/*",
    # Keyrings and password stores
    "~/.local/share/keyrings/*",
    "~/.password-store/*",
    # tidyctl itself
    "~/.config/tidyctl/*",
    "~/.local/state/tidyctl/*",
    # Version control internals
    "*/.git/*",
    "*/.hg/*",
    "*/.svn/*",
    # System
    "/etc/*",
    "/boot/*",
    "/usr/*",
    "/bin/*",
    "/sbin/*",
    "/lib/*",
    "/lib64/*",
    "/proc/*",
    "/sys/*",
    "/dev/*",
]


def is_protected_path(path: str) -> bool:
    """Check if a filesystem path is protected and should not be deleted.

    The path argument should be an absolute path (e.g., /home/user/.ssh/id_rsa).
    Patterns using ~ notation are expanded to the actual home directory before
    comparison using fnmatch for glob-style matching.

    Args:
        path: Absolute filesystem path to check.

    Returns:
        True if the path matches any protected pattern, False otherwise.
    """
    home = str(Path.home())

    for pattern in PROTECTED_PATH_PATTERNS:
        expanded = home + pattern[1:] if pattern.startswith("~") else pattern

        if fnmatch.fnmatch(path, expanded):
            return True

    return False


def is_within(path: str | Path, root: str | Path) -> bool:
    """Check whether ``path`` is ``root`` or lies underneath it.

    Both paths are resolved without requiring them to exist.
    """
    resolved = Path(path).resolve(strict=False)
    resolved_root = Path(root).resolve(strict=False)
    return resolved == resolved_root or resolved_root in resolved.parents
