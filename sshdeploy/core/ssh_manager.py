"""
SSH connection manager with connect retries and reconnect-on-demand
"""
import time
from typing import Callable, Optional

import paramiko

from .. import config as _cfg
from ..exceptions import ConfigError, SSHConnectionError
from ..utils.credentials import CredentialProtector, default_protector, reveal_password
from ..utils.logging import error, vlog
from ..utils.retry import retry_call


class SSHManager:
    """
    Wraps a paramiko SSHClient (shell commands) and the SFTPClient opened
    on the same transport (file operations).

    connect() retries CONNECT_RETRIES times, CONNECT_RETRY_DELAY apart.
    run_command() reconnects through the same policy when the transport
    has dropped.
    """

    def __init__(self, profile: _cfg.Profile, config_path=None,
                 protector: Optional[CredentialProtector] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 attempts: int = _cfg.CONNECT_RETRIES,
                 delay: float = _cfg.CONNECT_RETRY_DELAY):
        self.profile = profile
        self._config_path = config_path
        self._protector = protector or default_protector()
        self._sleep = sleep
        self._attempts = attempts
        self._delay = delay
        self._connect_kwargs: Optional[dict] = None
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._cwd: Optional[str] = None

    @property
    def target(self) -> str:
        p = self.profile
        return f"{p.user_name}@{p.host_name}:{p.effective_port}"

    # ── connection ─────────────────────────────────────────────────────────

    def build_connect_kwargs(self) -> dict:
        """Credentials for SSHClient.connect(); key problems are config errors."""
        p = self.profile
        kw: dict = dict(hostname=p.host_name, port=p.effective_port, username=p.user_name,
                        timeout=20, banner_timeout=30, auth_timeout=30,
                        allow_agent=False, look_for_keys=False)
        if p.password:
            kw["password"] = reveal_password(p.password, _cfg.ENCRYPTED_PASSWORD_PREFIX,
                                             self._protector)
        if p.key_file_name:
            key_path = p.key_file_name
            if self._config_path is not None:
                key_path = str(_cfg.resolve_path(key_path, self._config_path))
            try:
                kw["pkey"] = paramiko.PKey.from_path(key_path, p.key_file_passphrase or None)
            except paramiko.PasswordRequiredException as exc:
                raise ConfigError(
                    f"Error loading the private key, maybe the passphrase is wrong: {exc}") from exc
            except (paramiko.SSHException, OSError, ValueError) as exc:
                raise ConfigError(f"Error loading the private key: {exc}") from exc
        if "password" not in kw and "pkey" not in kw:
            # Nothing configured: fall back to the agent and ~/.ssh keys
            kw["allow_agent"] = True
            kw["look_for_keys"] = True
        return kw

    def _open(self):
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        sftp = None
        try:
            client.connect(**self._connect_kwargs)
            client.get_transport().set_keepalive(30)
            sftp = client.open_sftp()
            if self._cwd is not None:
                sftp.chdir(self._cwd)
        except Exception:
            if sftp is not None:
                sftp.close()
            client.close()
            raise
        self._ssh = client
        self._sftp = sftp
        vlog(f"connected to {self.target}")

    def connect(self):
        """Connect, retrying a fixed number of times with a fixed delay."""
        self._close_quietly()
        if self._connect_kwargs is None:
            # Key/password problems are not worth retrying
            self._connect_kwargs = self.build_connect_kwargs()

        def on_error(attempt: int, exc: Exception):
            if attempt < self._attempts:
                error(f"Error connecting to server (retrying): {exc}")

        try:
            retry_call(self._open, attempts=self._attempts, delay=self._delay,
                       sleep=self._sleep, on_error=on_error)
        except Exception as exc:
            raise SSHConnectionError("Giving up connecting to server.",
                                     host=self.profile.host_name,
                                     attempts=self._attempts) from exc

    def is_connected(self) -> bool:
        try:
            transport = self._ssh.get_transport() if self._ssh else None
            return bool(transport and transport.is_active())
        except Exception:
            return False

    def ensure_connected(self):
        """Call before running a shell command."""
        if not self.is_connected():
            self.connect()

    def _close_quietly(self):
        for closable in (self._sftp, self._ssh):
            if closable is None:
                continue
            try:
                closable.close()
            except Exception as exc:
                vlog(f"ignoring error while closing connection: {exc}")
        self._ssh = None
        self._sftp = None

    def disconnect(self):
        self._close_quietly()
        vlog("disconnected.")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()
        return False

    # ── raw exec ────────────────────────────────────────────────────────────

    def run_command(self, cmd: str) -> tuple[int, str, str]:
        """Run a shell command; return (exit_status, stdout, stderr)."""
        self.ensure_connected()
        _, stdout, stderr = self._ssh.exec_command(cmd)
        out = stdout.read().decode("utf-8", errors="replace")
        err = stderr.read().decode("utf-8", errors="replace")
        rc = stdout.channel.recv_exit_status()
        return rc, out, err

    # ── sftp ops ────────────────────────────────────────────────────────────
    # Relative paths resolve against the directory set by chdir().

    def chdir(self, remote: str):
        self._sftp.chdir(remote)
        self._cwd = self._sftp.getcwd()

    def listdir_attr(self, remote: str) -> list:
        return self._sftp.listdir_attr(remote)

    def mkdir(self, remote: str):
        self._sftp.mkdir(remote)

    def put(self, local: str, remote: str, callback: Optional[Callable[[int, int], None]] = None):
        self._sftp.put(local, remote, callback=callback, confirm=True)

    def utime(self, remote: str, mtime: float):
        self._sftp.utime(remote, (mtime, mtime))

    def remove(self, remote: str):
        self._sftp.remove(remote)

    def rmdir(self, remote: str):
        self._sftp.rmdir(remote)
