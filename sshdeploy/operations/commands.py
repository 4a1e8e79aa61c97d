"""
Remote shell commands (lifecycle hooks and the swap commands)
"""
from typing import Optional, Sequence

from ..core.ssh_manager import SSHManager
from ..exceptions import CommandError
from ..utils.logging import echo, error, is_verbose, log, vlog


def run_commands(mgr: SSHManager, name: str, commands: Optional[Sequence[str]], *,
                 throw_on_error: bool = True, show_name: bool = True) -> bool:
    """
    Run `commands` one after another over SSH, stopping at the first failure.

    With throw_on_error a failure raises CommandError; otherwise it is
    printed and False is returned. Command output is shown when a command
    fails, or always in verbose mode.
    """
    if not commands:
        return True

    capitalised = name[:1].upper() + name[1:]
    mgr.ensure_connected()
    if show_name or is_verbose():
        log(f"Running {name} commands")

    for cmd in commands:
        vlog(f"$ {cmd}")
        try:
            rc, out, err = mgr.run_command(cmd)
        except Exception as exc:
            msg = f"Error executing {name} command: {cmd}\n  {exc}"
            if throw_on_error:
                raise CommandError(msg, command=cmd) from exc
            error(msg)
            return False

        if rc != 0 or is_verbose():
            echo(out)
            echo(err)
        if rc != 0:
            msg = f"{capitalised} command failed: {cmd}"
            if throw_on_error:
                raise CommandError(msg, command=cmd, exit_status=rc)
            error(msg)
            return False
    return True
