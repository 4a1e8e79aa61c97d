"""
Deployment orchestration

  scan → resolve remote-only files → pre-upload commands → upload to a
  staging directory → pre-install commands → delete → swap staging into
  place → post-install commands

Exit codes: 0 success (including "already up-to-date"), 1 any error,
2 cancelled by the user while resolving remote-only files.
"""
import getpass
import threading
import time
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .. import config as _cfg
from ..exceptions import DeployCancelled, DeployError
from ..operations.commands import run_commands
from ..operations.conflict import resolve_remote_only
from ..operations.delete import delete_remote
from ..operations.scanner import change_remote_directory, local_list_all, remote_list_all
from ..operations.transfer import copy_uploaded_files, make_temp_upload_dir, upload_files
from ..utils.credentials import CredentialProtector, default_protector
from ..utils.logging import clear_progress, error, is_quiet, log, set_quiet, set_verbose, vlog, warn
from .diff import compute_diff
from .ssh_manager import SSHManager

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 2


@dataclass
class DeployOptions:
    profile_name: Optional[str] = None
    config_path: Optional[str] = None
    quiet: bool = False
    verbose: bool = False
    hide_progress: bool = False
    single_thread: bool = False
    encrypt_password: bool = False


class Deployer:
    """
    One deployment run. The collaborators that touch the outside world
    (session, prompt, password input, clock, sleep) can be swapped out.
    """

    def __init__(self, options: DeployOptions, *,
                 session_factory: Callable[..., SSHManager] = SSHManager,
                 prompt: Callable[[str], str] = input,
                 read_password: Callable[[str], str] = getpass.getpass,
                 protector: Optional[CredentialProtector] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.time,
                 cwd: Optional[Path] = None):
        self.options = options
        self._session_factory = session_factory
        self._prompt = prompt
        self._read_password = read_password
        self._protector = protector or default_protector()
        self._sleep = sleep
        self._clock = clock
        self._cwd = cwd
        # Guards the remote scan accumulator, created-directory set and byte counters
        self.lock = threading.Lock()
        self.config: Optional[_cfg.ConfigFile] = None
        self.profile: Optional[_cfg.Profile] = None
        self.delete_set: list[str] = []
        self.upload_set: list = []
        self.temp_dir: Optional[str] = None

    # ── execution wrapper ──────────────────────────────────────────────────

    def execute(self) -> int:
        try:
            return self.execute_internal()
        except DeployCancelled:
            log("Deployment cancelled.")
            return EXIT_CANCELLED
        except DeployError as exc:
            error(str(exc))
            return EXIT_ERROR
        except KeyboardInterrupt:
            error("Interrupted by user.")
            return EXIT_ERROR
        except Exception as exc:
            if self.options.verbose:
                error(f"Error: An unhandled exception has occurred: {traceback.format_exc()}")
            else:
                error(f"Error: An unhandled exception has occurred: {exc}")
            return EXIT_ERROR
        finally:
            clear_progress()

    def execute_internal(self) -> int:
        opts = self.options
        started = time.monotonic()
        set_verbose(opts.verbose)
        set_quiet(opts.quiet)

        config_path = _cfg.find_config_file(opts.config_path, self._cwd)
        vlog(f"Using config file: {config_path}")
        self.config = _cfg.load_config_file(config_path)
        self.profile = self.config.get_profile(opts.profile_name)
        if opts.encrypt_password:
            return self.encrypt_password()

        profile = self.profile
        log(f"Deploying to {profile.user_name}@{profile.host_name}:{profile.remote_path}")

        local_root = _cfg.resolve_path(profile.local_path, config_path)
        local_tree = local_list_all(local_root, profile.ignored_local_files)

        with self._session_factory(profile, config_path=config_path,
                                   protector=self._protector, sleep=self._sleep) as mgr:
            mgr.connect()
            change_remote_directory(mgr, profile.remote_path)
            remote_tree = remote_list_all(mgr, single_thread=opts.single_thread, lock=self.lock)

            diff = compute_diff(local_tree, remote_tree)
            self.upload_set = diff.upload_set
            vlog(f"{len(diff.local_only)} local-only, {len(diff.remote_only)} remote-only, "
                 f"{len(diff.modified)} locally modified files")
            vlog(f"{len(self.upload_set)} files to upload")

            resolution = resolve_remote_only(diff.remote_only, profile, self._prompt)
            self.delete_set = resolution.delete_set
            if resolution.profile_changed:
                vlog("Saving config file due to changes")
                if not self.config.save():
                    warn("Profile data will be unchanged at next deployment.")

            if not self.upload_set and not self.delete_set:
                log("Remote already up-to-date.")
                return EXIT_OK

            run_commands(mgr, "pre-upload", profile.commands.pre_upload)
            if self.upload_set:
                self.temp_dir = make_temp_upload_dir(self._clock)
                upload_files(mgr, self.upload_set, local_root, self.temp_dir,
                             single_thread=opts.single_thread,
                             show_progress=not (is_quiet() or opts.hide_progress),
                             lock=self.lock)
            run_commands(mgr, "pre-install", profile.commands.pre_install)
            delete_remote(mgr, self.delete_set, single_thread=opts.single_thread,
                          sizes={e.name: e.size for e in diff.remote_only})
            if self.temp_dir:
                copy_uploaded_files(mgr, profile.remote_path, self.temp_dir)
            run_commands(mgr, "post-install", profile.commands.post_install)

        log(f"Finished in {time.monotonic() - started:.2f}s.")
        return EXIT_OK

    # ── password encryption ────────────────────────────────────────────────

    def encrypt_password(self) -> int:
        """
        Ask for the profile's password and store it encrypted. A single
        space removes the password; an empty answer keeps the current one.
        """
        profile = self.profile
        current = "****" if profile.password else ""
        entered = self._read_password(f"Password [{current}] (space to delete): ")
        if entered == " ":
            profile.password = ""
        elif entered:
            profile.password = _cfg.ENCRYPTED_PASSWORD_PREFIX + self._protector.encrypt(entered)
        self.config.save(throw_on_error=True)
        return EXIT_OK


def run_deploy(options: DeployOptions, **kwargs) -> int:
    """Run one deployment and return its exit code."""
    return Deployer(options, **kwargs).execute()
