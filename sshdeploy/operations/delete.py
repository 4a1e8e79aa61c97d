"""
Remote deletions, deepest paths first
"""
from collections import defaultdict
from typing import Optional

from .. import config as _cfg
from ..core.ssh_manager import SSHManager
from ..exceptions import TransferError
from ..utils.batch import make_batch
from ..utils.file_utils import format_byte_count, path_depth
from ..utils.logging import log, vlog


def group_by_depth(names: list[str]) -> list[tuple[int, list[str]]]:
    """[(depth, names), ...] from the deepest group to the shallowest."""
    groups: dict[int, list[str]] = defaultdict(list)
    for name in names:
        groups[path_depth(name)].append(name)
    return sorted(groups.items(), key=lambda kv: kv[0], reverse=True)


def delete_one(mgr: SSHManager, name: str):
    try:
        if name.endswith("/"):
            mgr.rmdir(name.rstrip("/"))
        else:
            mgr.remove(name)
    except Exception as exc:
        raise TransferError(f'Error deleting file "{name}": {exc}', name) from exc


def delete_remote(mgr: SSHManager, names: list[str], *, single_thread: bool = False,
                  sizes: Optional[dict[str, int]] = None,
                  limit: int = _cfg.MAX_PARALLEL_DELETES,
                  executor_factory=None, deleter=None):
    """
    Delete `names` (relative to the remote working dir) one depth group at
    a time, deepest first, so a directory is only removed once everything
    below it is gone. Each group must finish before the next one starts.
    """
    if not names:
        return
    deleter = deleter or delete_one
    sizes = sizes or {}
    total = sum(sizes.get(n, 0) for n in names)
    log(f"Deleting {len(names)} files ({format_byte_count(total)})")

    for depth, group in group_by_depth(names):
        with make_batch(limit, single_thread, executor_factory) as batch:
            for name in group:
                if name.endswith("/"):
                    vlog(f"Deleting directory {name}")
                else:
                    vlog(f"Deleting file {name} ({sizes.get(name, 0):,} bytes)")
                batch.submit(deleter, mgr, name)
            batch.join()
