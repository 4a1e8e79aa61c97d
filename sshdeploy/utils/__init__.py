"""Utilities (logging, retry, patterns, paths, batches, credentials)"""
from .logging import log, vlog, warn, error, notice, set_verbose, set_quiet
from .retry import retry_call
from .ignore_patterns import matches
from .file_utils import format_byte_count, is_under, path_depth
from .batch import BoundedBatch, SerialBatch, make_batch
from .credentials import (CredentialProtector, DpapiProtector, UnsupportedProtector,
                          default_protector, reveal_password)

__all__ = [
    "log", "vlog", "warn", "error", "notice", "set_verbose", "set_quiet",
    "retry_call",
    "matches",
    "format_byte_count", "is_under", "path_depth",
    "BoundedBatch", "SerialBatch", "make_batch",
    "CredentialProtector", "DpapiProtector", "UnsupportedProtector",
    "default_protector", "reveal_password",
]
