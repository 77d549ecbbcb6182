"""tidyctl - Recoverable file cleanup and duplicate detection.

Finds duplicate file content and removes unwanted files without ever
causing unrecoverable data loss: every removal is archived, verified and
recorded in a manifest first, and stays restorable until its retention
period ends.
"""

__version__ = "0.1.0"
