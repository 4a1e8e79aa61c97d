"""
File entries and the local/remote diff
"""
from dataclasses import dataclass, field

from .. import config as _cfg


@dataclass(frozen=True)
class FileEntry:
    """
    One file or directory, relative to the deployment root.
    Directory names end in "/" and carry size 0 and mtime 0.
    """
    name: str
    mtime: float = 0.0
    size: int = 0

    @property
    def is_dir(self) -> bool:
        return self.name.endswith("/")


@dataclass
class DiffResult:
    local_only: list[FileEntry] = field(default_factory=list)
    remote_only: list[FileEntry] = field(default_factory=list)
    modified: list[FileEntry] = field(default_factory=list)

    @property
    def upload_set(self) -> list[FileEntry]:
        """Local-only and modified entries, by name."""
        return sorted(self.local_only + self.modified, key=lambda e: e.name)


def sort_tree(entries: list[FileEntry]) -> list[FileEntry]:
    return sorted(entries, key=lambda e: e.name)


def file_changed(local: FileEntry, remote: FileEntry) -> bool:
    """True if the local copy must replace the remote one."""
    if local.size != remote.size:
        return True
    return abs(local.mtime - remote.mtime) > _cfg.MTIME_TOLERANCE


def compute_diff(local_tree: list[FileEntry], remote_tree: list[FileEntry]) -> DiffResult:
    """
    Classify both trees into local-only, remote-only and modified entries.
    Local wins for modified entries. Output lists are sorted by name.
    """
    remote_by_name = {e.name: e for e in remote_tree}
    local_names = {e.name for e in local_tree}

    result = DiffResult()
    for entry in sort_tree(local_tree):
        remote = remote_by_name.get(entry.name)
        if remote is None:
            result.local_only.append(entry)
        elif file_changed(entry, remote):
            result.modified.append(entry)
    result.remote_only = [e for e in sort_tree(remote_tree) if e.name not in local_names]
    return result
