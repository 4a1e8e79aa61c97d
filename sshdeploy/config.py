"""
Configuration constants and config-file handling for sshdeploy

The config file maps profile names to deployment targets:

  {
    "profiles": {
      "live": {
        "isDefault": true,
        "hostName": "example.com",
        "userName": "deploy",
        "localPath": "bin/publish",
        "remotePath": "/srv/www/app",
        "ignoredRemoteFiles": ["logs/**"],
        "commands": {"postInstall": ["systemctl restart app"]}
      }
    }
  }

JSON is the default format; files ending in .yaml / .yml are read and
written as YAML.
"""
import json
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigError
from .utils.logging import error

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS
# ══════════════════════════════════════════════════════════════════════════════

# Searched relative to the working directory when no -c option is given
CONFIG_FILE_NAMES = (
    "sshDeploy.json",
    "sshDeploy.yaml",
    os.path.join("Properties", "sshDeploy.json"),
)

ENCRYPTED_PASSWORD_PREFIX = "$$crypt$$"

DEFAULT_SSH_PORT = 22

# Connection retry settings (fixed delay, no back-off)
CONNECT_RETRIES = 10
CONNECT_RETRY_DELAY = 2.0  # seconds

# Files whose size matches and whose mtime differs by no more than this are unchanged
MTIME_TOLERANCE = 2  # seconds

# Channel limits a single SFTP session realistically sustains
MAX_PARALLEL_UPLOADS = 6
MAX_PARALLEL_DELETES = 11

PROGRESS_INTERVAL = 1.0  # seconds between progress lines

# Staging directory created under the remote path, suffixed with epoch milliseconds
TEMP_UPLOAD_PREFIX = "__upload"

_YAML_SUFFIXES = (".yaml", ".yml")


# ══════════════════════════════════════════════════════════════════════════════
#  PROFILE DATA
# ══════════════════════════════════════════════════════════════════════════════

@dataclass
class ProfileCommands:
    pre_upload: list[str] = field(default_factory=list)
    pre_install: list[str] = field(default_factory=list)
    post_install: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ProfileCommands":
        data = data or {}
        return cls(
            pre_upload=_str_list(data.get("preUpload"), "commands.preUpload"),
            pre_install=_str_list(data.get("preInstall"), "commands.preInstall"),
            post_install=_str_list(data.get("postInstall"), "commands.postInstall"),
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        if self.pre_upload:
            out["preUpload"] = list(self.pre_upload)
        if self.pre_install:
            out["preInstall"] = list(self.pre_install)
        if self.post_install:
            out["postInstall"] = list(self.post_install)
        return out


@dataclass
class Profile:
    name: str
    host_name: str
    user_name: str
    local_path: str
    remote_path: str
    is_default: bool = False
    port: int = 0
    password: str = ""
    key_file_name: str = ""
    key_file_passphrase: str = ""
    ignored_local_files: list[str] = field(default_factory=list)
    ignored_remote_files: list[str] = field(default_factory=list)
    commands: ProfileCommands = field(default_factory=ProfileCommands)

    @property
    def effective_port(self) -> int:
        return self.port or DEFAULT_SSH_PORT

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "Profile":
        if not isinstance(data, dict):
            raise ConfigError(f'Profile "{name}" must be an object.')
        missing = [k for k in ("hostName", "userName", "localPath", "remotePath")
                   if not data.get(k)]
        if missing:
            raise ConfigError(f'Profile "{name}" is missing: {", ".join(missing)}')
        try:
            port = int(data.get("port") or 0)
        except (TypeError, ValueError):
            raise ConfigError(f'Profile "{name}" has an invalid port: {data.get("port")!r}')
        return cls(
            name=name,
            host_name=str(data["hostName"]),
            user_name=str(data["userName"]),
            local_path=str(data["localPath"]),
            remote_path=str(data["remotePath"]),
            is_default=bool(data.get("isDefault", False)),
            port=port,
            password=str(data.get("password") or ""),
            key_file_name=str(data.get("keyFileName") or ""),
            key_file_passphrase=str(data.get("keyFilePassphrase") or ""),
            ignored_local_files=_str_list(data.get("ignoredLocalFiles"), "ignoredLocalFiles"),
            ignored_remote_files=_str_list(data.get("ignoredRemoteFiles"), "ignoredRemoteFiles"),
            commands=ProfileCommands.from_dict(data.get("commands")),
        )

    def to_dict(self) -> dict:
        """camelCase record; optional keys are left out when empty"""
        out: dict[str, Any] = {}
        if self.is_default:
            out["isDefault"] = True
        out["hostName"] = self.host_name
        if self.port:
            out["port"] = self.port
        out["userName"] = self.user_name
        if self.password:
            out["password"] = self.password
        if self.key_file_name:
            out["keyFileName"] = self.key_file_name
        if self.key_file_passphrase:
            out["keyFilePassphrase"] = self.key_file_passphrase
        out["localPath"] = self.local_path
        out["remotePath"] = self.remote_path
        if self.ignored_local_files:
            out["ignoredLocalFiles"] = list(self.ignored_local_files)
        if self.ignored_remote_files:
            out["ignoredRemoteFiles"] = list(self.ignored_remote_files)
        commands = self.commands.to_dict()
        if commands:
            out["commands"] = commands
        return out


def _str_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"Config value {key} must be a list of strings.")
    return [str(v) for v in value]


# ══════════════════════════════════════════════════════════════════════════════
#  CONFIG FILE
# ══════════════════════════════════════════════════════════════════════════════

class ConfigFile:
    """A loaded config file. Keys we don't know are kept when saving."""

    def __init__(self, path: Path, data: dict):
        self.path = Path(path)
        self.data = data
        raw_profiles = data.get("profiles") or {}
        if not isinstance(raw_profiles, dict):
            raise ConfigError("Config value profiles must be an object.", str(self.path))
        self._raw_profiles: dict[str, Any] = raw_profiles
        self._loaded: dict[str, Profile] = {}

    @property
    def profile_names(self) -> list[str]:
        return list(self._raw_profiles)

    def _load(self, name: str) -> Profile:
        if name not in self._loaded:
            self._loaded[name] = Profile.from_dict(name, self._raw_profiles[name])
        return self._loaded[name]

    def get_profile(self, name: Optional[str] = None) -> Profile:
        """
        Return the named profile, else the one marked isDefault, else the
        only one in the file.
        """
        if not name:
            name = next((n for n, p in self._raw_profiles.items()
                         if isinstance(p, dict) and p.get("isDefault")), None)
        if not name and len(self._raw_profiles) == 1:
            name = next(iter(self._raw_profiles))
        if not name:
            raise ConfigError("No profile specified and no default or single profile available.",
                              str(self.path))
        if name not in self._raw_profiles:
            raise ConfigError(f'Profile "{name}" is not defined in config file: {self.path}',
                              str(self.path))
        return self._load(name)

    def serialize(self) -> str:
        data = dict(self.data)
        profiles = dict(self._raw_profiles)
        for name, profile in self._loaded.items():
            raw = profiles.get(name)
            merged = {k: v for k, v in raw.items() if k not in _PROFILE_KEYS} \
                if isinstance(raw, dict) else {}
            merged.update(profile.to_dict())
            profiles[name] = merged
        data["profiles"] = profiles
        if self.path.suffix.lower() in _YAML_SUFFIXES:
            return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        return json.dumps(data, indent=2, ensure_ascii=False).rstrip() + "\n"

    def save(self, throw_on_error: bool = False) -> bool:
        """
        Write the file back: copy it to FILE.bak, overwrite it, then remove
        the backup. The backup stays behind if writing fails. Failing to
        remove the backup is only reported.
        """
        backup = self.path.with_name(self.path.name + ".bak")

        def fail(msg: str, exc: Exception) -> bool:
            if throw_on_error:
                raise ConfigError(msg, str(self.path)) from exc
            error(msg)
            return False

        try:
            text = self.serialize()
        except Exception as exc:
            return fail(f"Error serializing config file: {exc}", exc)

        try:
            shutil.copyfile(self.path, backup)
        except OSError as exc:
            return fail(f"Error backing up config file: {exc}", exc)

        try:
            self.path.write_text(text, encoding="utf-8")
        except OSError as exc:
            return fail(f"Error writing config file (backup created): {exc}", exc)

        try:
            backup.unlink()
        except OSError as exc:
            error(f"Error deleting backup config file: {exc}")
        return True


_PROFILE_KEYS = {
    "isDefault", "hostName", "port", "userName", "password", "keyFileName",
    "keyFilePassphrase", "localPath", "remotePath", "ignoredLocalFiles",
    "ignoredRemoteFiles", "commands",
}


def expand_path(path: str) -> str:
    return os.path.expanduser(os.path.expandvars(path))


def find_config_file(explicit: Optional[str] = None, cwd: Optional[Path] = None) -> Path:
    """
    Locate the config file: an explicit path must exist; otherwise the
    first of CONFIG_FILE_NAMES found in `cwd` (default: the working directory).
    """
    if explicit:
        path = Path(expand_path(explicit))
        if not path.is_file():
            raise ConfigError(f"Specified config file not found: {path}", str(path))
        return path
    base = Path(cwd) if cwd else Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    raise ConfigError("No config file found.")


def load_config_file(path: Path) -> ConfigFile:
    """Read and parse a config file (JSON, or YAML by extension)."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise ConfigError(f"Error reading config file: {exc}", str(path)) from exc

    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Error parsing config file: {exc}", str(path)) from exc
    if not isinstance(data, dict):
        raise ConfigError("Error parsing config file: top level must be an object.", str(path))
    return ConfigFile(path, data)


def resolve_path(path: str, config_path: Path) -> Path:
    """
    Expand environment variables and '~'; relative paths are taken
    relative to the config file's directory.
    """
    p = Path(expand_path(path.replace("\\", "/")))
    if not p.is_absolute():
        p = Path(config_path).resolve().parent / p
    return p
