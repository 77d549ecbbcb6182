"""Content hashing and duplicate detection.

This module provides the streaming content hasher and the size-then-hash
duplicate detector. Both are read-only.
"""

from tidyctl.dedup.detector import DuplicateDetector
from tidyctl.dedup.hasher import HashAlgorithm, HashOutcome, hash_file, hash_files
from tidyctl.dedup.models import DuplicateGroup, DuplicateScanResult, FileRecord, ScanError

__all__ = [
    "DuplicateDetector",
    "DuplicateGroup",
    "DuplicateScanResult",
    "FileRecord",
    "HashAlgorithm",
    "HashOutcome",
    "ScanError",
    "hash_file",
    "hash_files",
]
