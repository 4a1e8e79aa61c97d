"""Core functionality"""
from .ssh_manager import SSHManager
from .diff import FileEntry, DiffResult, compute_diff

__all__ = ["SSHManager", "FileEntry", "DiffResult", "compute_diff"]
