"""
Ignore pattern matching for local and remote file names

Pattern syntax:
  **   any sequence of characters, including "/"
  *    any sequence of characters except "/"
  ?    exactly one character
Everything else matches literally (case-sensitive). A pattern must match
the whole relative path; directories are tested with a trailing "/".
"""
import functools
import re
from typing import Iterable, Optional


@functools.lru_cache(maxsize=1024)
def _compile_pattern(raw: str) -> Optional["re.Pattern[str]"]:
    """Compile an ignore pattern into an anchored regex"""
    if not raw:
        return None
    escaped = re.escape(raw)
    escaped = escaped.replace(r"\*\*", "§DS§")
    escaped = escaped.replace(r"\*", "[^/]*")
    escaped = escaped.replace(r"\?", ".")
    escaped = escaped.replace("§DS§", ".*")
    return re.compile(escaped, re.DOTALL)


def matches(rel_path: str, patterns: Optional[Iterable[str]]) -> bool:
    """True if any pattern fully matches the relative path"""
    if not patterns:
        return False
    norm = rel_path.replace("\\", "/")
    for raw in patterns:
        c = _compile_pattern(raw)
        if c is not None and c.fullmatch(norm):
            return True
    return False
