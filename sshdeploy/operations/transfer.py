"""
Upload phase (staging into a temporary directory) and the final swap
"""
import shlex
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from .. import config as _cfg
from ..core.diff import FileEntry
from ..core.ssh_manager import SSHManager
from ..exceptions import CommandError, TransferError
from ..state.progress_manager import ProgressTracker
from ..utils.batch import make_batch
from ..utils.file_utils import format_byte_count
from ..utils.logging import log, vlog, warn
from .commands import run_commands


def make_temp_upload_dir(now: Callable[[], float] = time.time) -> str:
    """Staging directory name, unique per run (epoch milliseconds)."""
    return f"{_cfg.TEMP_UPLOAD_PREFIX}{int(now() * 1000)}"


def ensure_remote_dirs(mgr: SSHManager, remote_file: str, created: set, lock):
    """
    Create every directory leading up to `remote_file` that this run has
    not created yet. For a directory name ("x/y/") that includes itself.
    """
    segments = remote_file.split("/")
    for i in range(1, len(segments)):
        path = "/".join(segments[:i])
        with lock:
            if path in created:
                continue
            created.add(path)
        vlog(f"Creating remote directory {path}")
        mgr.mkdir(path)


def upload_file(mgr: SSHManager, entry: FileEntry, local_root: Path, temp_dir: str,
                tracker: ProgressTracker):
    """Upload one file into the staging directory and copy its mtime over."""
    vlog(f"{threading.get_ident() % 100:2}> Uploading file {entry.name} ({entry.size:,} bytes)")
    remote = f"{temp_dir}/{entry.name}"
    file_progress = tracker.track_file(entry.size)
    try:
        mgr.put(str(Path(local_root) / entry.name), remote, callback=file_progress)
        mgr.utime(remote, entry.mtime)
    except Exception as exc:
        raise TransferError(f'Error uploading file "{entry.name}": {exc}', entry.name) from exc
    file_progress.finish()


def upload_files(mgr: SSHManager, files: list[FileEntry], local_root: Path, temp_dir: str, *,
                 single_thread: bool = False, show_progress: bool = True, lock=None,
                 limit: int = _cfg.MAX_PARALLEL_UPLOADS,
                 executor_factory=None,
                 uploader: Optional[Callable] = None) -> int:
    """
    Stage `files` under `temp_dir` (relative to the remote working dir).

    Parent directories are created first, each only once. At most `limit`
    uploads run at the same time; a failure surfaces after the running
    uploads have finished. Returns the number of bytes uploaded.
    """
    if not files:
        return 0
    lock = lock or threading.Lock()
    uploader = uploader or upload_file
    total = sum(e.size for e in files)
    log(f"Uploading {len(files)} files ({format_byte_count(total)}) to {temp_dir}")

    created: set[str] = set()
    tracker = ProgressTracker(total, lock=lock, enabled=show_progress)
    with tracker, make_batch(limit, single_thread, executor_factory) as batch:
        for entry in files:
            try:
                ensure_remote_dirs(mgr, f"{temp_dir}/{entry.name}", created, lock)
            except Exception as exc:
                raise TransferError(f'Error uploading file "{entry.name}": {exc}',
                                    entry.name) from exc
            if entry.is_dir:
                continue
            batch.submit(uploader, mgr, entry, local_root, temp_dir, tracker)
        batch.join()
    return tracker.uploaded_bytes


def copy_uploaded_files(mgr: SSHManager, remote_path: str, temp_dir: str):
    """
    Merge the staging directory into the deployment directory, keeping
    timestamps, then remove it. If the copy fails the staged files are
    left in place.
    """
    staged = f"{remote_path.rstrip('/')}/{temp_dir}"
    copy_cmd = f"cp -prvT {shlex.quote(staged)} {shlex.quote(remote_path)}"
    if not run_commands(mgr, "copy", [copy_cmd], throw_on_error=False, show_name=False):
        raise CommandError("New files could not be copied.", command=copy_cmd)
    remove_cmd = f"rm -r {shlex.quote(staged)}"
    if not run_commands(mgr, "delete", [remove_cmd], throw_on_error=False, show_name=False):
        warn("Uploaded temporary files could not be deleted.")
