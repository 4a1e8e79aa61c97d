"""
File scanning operations (local and remote)
"""
import os
import stat
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Optional

from ..core.diff import FileEntry, sort_tree
from ..core.ssh_manager import SSHManager
from ..exceptions import ScanError
from ..utils.ignore_patterns import matches
from ..utils.logging import vlog


class _Accumulator:
    """Append-only entry list shared by the remote scan tasks."""

    def __init__(self, lock=None):
        self._lock = lock or threading.Lock()
        self.entries: list[FileEntry] = []

    def add(self, entry: FileEntry):
        with self._lock:
            self.entries.append(entry)


# ── local ────────────────────────────────────────────────────────────────────

def local_list_all(root: Path, ignored: Optional[list[str]] = None) -> list[FileEntry]:
    """
    Depth-first walk of `root`. Directories are listed with a trailing "/"
    and ignored directories are not descended into. Returns entries sorted
    by name.
    """
    entries: list[FileEntry] = []
    try:
        _walk_local(Path(root), "", ignored or [], entries)
    except OSError as exc:
        raise ScanError(f"Error scanning local files: {exc}", side="local") from exc
    return sort_tree(entries)


def _walk_local(root: Path, rel_dir: str, ignored: list[str], out: list[FileEntry]):
    with os.scandir(root / rel_dir if rel_dir else root) as it:
        children = sorted(it, key=lambda d: d.name)
    dirs = [d for d in children if d.is_dir()]
    files = [d for d in children if not d.is_dir()]

    for d in dirs:
        rel = f"{rel_dir}/{d.name}".lstrip("/")
        if matches(rel + "/", ignored):
            continue
        out.append(FileEntry(rel + "/"))
        _walk_local(root, rel, ignored, out)

    for f in files:
        rel = f"{rel_dir}/{f.name}".lstrip("/")
        if matches(rel, ignored):
            continue
        st = f.stat()
        out.append(FileEntry(rel, st.st_mtime, st.st_size))


# ── remote ───────────────────────────────────────────────────────────────────

def change_remote_directory(mgr: SSHManager, remote_path: str):
    try:
        mgr.chdir(remote_path)
    except Exception as exc:
        raise ScanError(f"Error changing to remote directory: {exc}", side="remote") from exc


def remote_list_all(mgr: SSHManager, single_thread: bool = False,
                    lock=None, max_workers: Optional[int] = None) -> list[FileEntry]:
    """
    List the remote tree below the SFTP working directory, one listdir
    round-trip per directory. Subdirectories are listed concurrently unless
    single_thread is set. Returns entries sorted by name.
    """
    acc = _Accumulator(lock)
    try:
        if single_thread:
            _scan_remote_sequential(mgr, "", acc)
        else:
            _scan_remote_concurrent(mgr, acc, max_workers)
    except ScanError:
        raise
    except Exception as exc:
        raise ScanError(f"Error scanning remote files: {exc}", side="remote") from exc
    return sort_tree(acc.entries)


def _list_remote_dir(mgr: SSHManager, rel_dir: str, acc: _Accumulator) -> list[str]:
    """Record one directory's children; return its subdirectories."""
    vlog(f"{threading.get_ident() % 100:2}> Scanning remote path: {rel_dir}")
    subdirs = []
    for attr in mgr.listdir_attr(rel_dir or "."):
        if attr.filename in (".", ".."):
            continue
        rel = f"{rel_dir}/{attr.filename}".lstrip("/")
        if attr.st_mode is not None and stat.S_ISDIR(attr.st_mode):
            acc.add(FileEntry(rel + "/"))
            subdirs.append(rel)
        else:
            acc.add(FileEntry(rel, float(attr.st_mtime or 0), int(attr.st_size or 0)))
    return subdirs


def _scan_remote_sequential(mgr: SSHManager, rel_dir: str, acc: _Accumulator):
    for sub in _list_remote_dir(mgr, rel_dir, acc):
        _scan_remote_sequential(mgr, sub, acc)


def _scan_remote_concurrent(mgr: SSHManager, acc: _Accumulator, max_workers: Optional[int]):
    # One task per directory; each finished listing schedules its children.
    with ThreadPoolExecutor(max_workers=max_workers,
                            thread_name_prefix="sshdeploy-scan") as pool:
        pending = {pool.submit(_list_remote_dir, mgr, "", acc)}
        while pending:
            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                try:
                    subdirs = future.result()
                except Exception:
                    for other in pending:
                        other.cancel()
                    raise
                for sub in subdirs:
                    pending.add(pool.submit(_list_remote_dir, mgr, sub, acc))
