"""
Path and size helpers shared by the scanner, resolver and scheduler
"""


def is_dir_name(name: str) -> bool:
    """Directory entries end in '/'."""
    return name.endswith("/")


def path_segments(name: str) -> list[str]:
    return [s for s in name.split("/") if s]


def is_under(name: str, directory: str) -> bool:
    """True if `name` is a strict descendant of `directory` (segment-wise)."""
    parent = path_segments(directory)
    child = path_segments(name)
    return len(child) > len(parent) and child[:len(parent)] == parent


def path_depth(name: str) -> int:
    """Number of '/' separators, not counting a directory's trailing one."""
    depth = name.count("/")
    if name.endswith("/"):
        depth -= 1
    return depth


def format_byte_count(length: int) -> str:
    """Human-readable size in binary units."""
    if length < 1024:
        return f"{length} bytes"
    if length < 10 * 1024:
        return f"{_round(length / 1024, 1)} KiB"
    if length < 1024 * 1024:
        return f"{_round(length / 1024, 0)} KiB"
    if length < 10 * 1024 * 1024:
        return f"{_round(length / 1024 / 1024, 1)} MiB"
    return f"{_round(length / 1024 / 1024, 0)} MiB"


def _round(value: float, digits: int) -> str:
    # Halves round to even; trailing ".0" dropped, e.g. 2.0 KiB -> "2 KiB"
    rounded = round(value, digits)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.{digits}f}"
