"""
Console output for sshdeploy

Every write goes through one lock so a pending progress line is cleared
before any other line is printed.
"""
import sys
import threading
from datetime import datetime

_verbose = False
_quiet = False
_lock = threading.RLock()
_progress_width = 0


def set_verbose(verbose: bool):
    """Set the verbose flag (verbose overrides quiet)"""
    global _verbose, _quiet
    _verbose = verbose
    if verbose:
        _quiet = False


def set_quiet(quiet: bool):
    """Set the quiet flag"""
    global _quiet
    _quiet = quiet and not _verbose


def is_verbose() -> bool:
    return _verbose


def is_quiet() -> bool:
    return _quiet


def _write(msg: str, stream):
    with _lock:
        _clear_locked()
        print(msg, file=stream, flush=True)


def log(msg: str):
    """Log a message with timestamp (suppressed in quiet mode)"""
    if _quiet:
        return
    ts = datetime.now().strftime("%H:%M:%S")
    _write(f"[{ts}] {msg}", sys.stdout)


def vlog(msg: str):
    """Log a verbose message (only if verbose mode is enabled)"""
    if _verbose:
        log(f"- {msg}")


def notice(msg: str):
    """Print a line the user must see, even in quiet mode"""
    _write(msg, sys.stdout)


def warn(msg: str):
    """Log a warning message to stderr"""
    _write(f"Warning: {msg}", sys.stderr)


def error(msg: str):
    """Log an error message to stderr"""
    _write(msg, sys.stderr)


def echo(text: str):
    """Write raw remote command output to stderr without a newline"""
    if not text:
        return
    with _lock:
        _clear_locked()
        sys.stderr.write(text)
        sys.stderr.flush()


def progress(msg: str):
    """Replace the current progress line"""
    global _progress_width
    with _lock:
        _clear_locked()
        sys.stdout.write(msg)
        sys.stdout.flush()
        _progress_width = len(msg)


def clear_progress():
    """Blank out the progress line, if one is showing"""
    with _lock:
        _clear_locked()


def _clear_locked():
    global _progress_width
    if _progress_width:
        sys.stdout.write("\r" + " " * _progress_width + "\r")
        sys.stdout.flush()
        _progress_width = 0
