"""
Interactive handling of files that only exist on the remote side
"""
import enum
from dataclasses import dataclass, field
from typing import Callable

from ..config import Profile
from ..core.diff import FileEntry
from ..exceptions import DeployCancelled
from ..utils.file_utils import is_under, path_segments
from ..utils.ignore_patterns import matches
from ..utils.logging import is_verbose, notice, vlog

PROMPT = "(D)elete, (k)eep once, keep (a)lways, (c)ancel? "


class Decision(enum.Enum):
    DELETE = "delete"
    KEEP_ONCE = "keep"
    KEEP_ALWAYS = "always"
    CANCEL = "cancel"


_ANSWERS = {
    "d": Decision.DELETE, "delete": Decision.DELETE,
    "k": Decision.KEEP_ONCE, "keep": Decision.KEEP_ONCE,
    "a": Decision.KEEP_ALWAYS, "always": Decision.KEEP_ALWAYS,
    "c": Decision.CANCEL, "cancel": Decision.CANCEL, "q": Decision.CANCEL,
}


@dataclass
class Resolution:
    delete_set: list[str] = field(default_factory=list)
    ignored: list[FileEntry] = field(default_factory=list)
    profile_changed: bool = False


def ask_decision(prompt: Callable[[str], str] = input) -> Decision:
    """Ask until the answer is one of delete / keep / always / cancel."""
    while True:
        try:
            answer = prompt(PROMPT)
        except (EOFError, KeyboardInterrupt):
            return Decision.CANCEL
        decision = _ANSWERS.get(answer.strip().lower())
        if decision is not None:
            return decision
        notice("  Please enter d, k, a, or c.")


def _ancestors(name: str) -> list[str]:
    segments = path_segments(name)
    return ["/".join(segments[:i]) + "/" for i in range(1, len(segments))]


def resolve_remote_only(remote_only: list[FileEntry], profile: Profile,
                        prompt: Callable[[str], str] = input) -> Resolution:
    """
    Ask what to do with every remote-only entry that is not ignored, in
    name order.

    Deleting a directory also deletes every remote-only entry below it
    without asking again. "Keep always" adds the name to the profile's
    ignoredRemoteFiles. Cancelling raises DeployCancelled.
    """
    res = Resolution()
    deleted_dirs: set[str] = set()

    for entry in remote_only:
        if any(a in deleted_dirs for a in _ancestors(entry.name)):
            res.delete_set.append(entry.name)
            if entry.is_dir:
                deleted_dirs.add(entry.name)
            continue

        if matches(entry.name, profile.ignored_remote_files):
            continue

        if entry.is_dir:
            count = sum(1 for e in remote_only if is_under(e.name, entry.name))
            notice(f"Directory with {count} entries only exists in remote: {entry.name}")
        else:
            notice(f"File only exists in remote: {entry.name} ({entry.size:,} bytes)")

        decision = ask_decision(prompt)
        if decision is Decision.DELETE:
            res.delete_set.append(entry.name)
            if entry.is_dir:
                deleted_dirs.add(entry.name)
        elif decision is Decision.KEEP_ALWAYS:
            profile.ignored_remote_files.append(entry.name)
            res.profile_changed = True
        elif decision is Decision.CANCEL:
            raise DeployCancelled()

    deleted = set(res.delete_set)
    res.ignored = [e for e in remote_only
                   if e.name not in deleted and matches(e.name, profile.ignored_remote_files)]
    if is_verbose():
        if res.ignored:
            vlog("Current remote-only ignored files:")
            for e in res.ignored:
                vlog(f"  {e.name}" if e.is_dir else f"  {e.name} ({e.size:,} bytes)")
        vlog(f"{len(res.delete_set)} files to delete")
    return res
