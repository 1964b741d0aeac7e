"""
Configuration for sshmirror

Settings are layered (built-in defaults < global config.yaml defaults < project
.sshmirror profile < address string < CLI flags) and frozen into one SyncConfig
that is handed to the transport, watcher, engine and shell.
"""
import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional, Union

import yaml

from .address import DEFAULT_PORT, SSHAddress
from .errors import ConfigError

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS
# ══════════════════════════════════════════════════════════════════════════════

PROJECT_FILE = ".sshmirror"
DEFAULT_IGNORE_FILE = ".stignore"

# Mode bits every pushed file receives
DEFAULT_FILE_MODE = 0o755

# Remote receiver; the destination directory is appended per push
DEFAULT_SCP_COMMAND = "scp -qt"

# Watch events buffered before the observer thread blocks
DEFAULT_QUEUE_SIZE = 1024

CONNECT_TIMEOUT = 20
KEEPALIVE_INTERVAL = 30

# Retry settings for opening channels
RETRY_MAX = 3
RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt

DEFAULT_TERM = "xterm-256color"


@dataclass(frozen=True)
class SyncConfig:
    host: str
    user: str
    port: int = DEFAULT_PORT
    password: Optional[str] = field(default=None, repr=False)
    key_path: Optional[str] = None
    local_root: Path = field(default_factory=Path.cwd)
    # None until resolved against the remote home directory
    remote_root: Optional[PurePosixPath] = None
    skip_initial_sync: bool = False
    file_mode: int = DEFAULT_FILE_MODE
    scp_command: str = DEFAULT_SCP_COMMAND
    ignore_file: str = DEFAULT_IGNORE_FILE
    queue_size: int = DEFAULT_QUEUE_SIZE
    connect_timeout: float = CONNECT_TIMEOUT
    keepalive: int = KEEPALIVE_INTERVAL
    retry_max: int = RETRY_MAX
    retry_base_delay: float = RETRY_BASE_DELAY
    shell: bool = True
    term: str = DEFAULT_TERM
    verbose: bool = False

    def with_remote_root(self, remote_root: Union[str, PurePosixPath]) -> "SyncConfig":
        return dataclasses.replace(self, remote_root=PurePosixPath(remote_root))


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL CONFIG FILE  ── $XDG_CONFIG_HOME/sshmirror/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for sshmirror."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "sshmirror"
    if os.name == "nt":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "sshmirror"
    return Path.home() / ".config" / "sshmirror"


def load_global_config() -> dict:
    """Load global config; a missing file is an empty config."""
    cfg_path = get_global_config_dir() / "config.yaml"
    if not cfg_path.is_file():
        return {}
    return load_config_file(cfg_path)


# ══════════════════════════════════════════════════════════════════════════════
#  PROJECT CONFIG FILE  ── .sshmirror (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def find_config(start: Optional[Path] = None) -> Optional[Path]:
    """
    Search upward from *start* (default: cwd) for a .sshmirror YAML file.
    Returns the Path if found, or None if no .sshmirror exists in any parent.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / PROJECT_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config_file(path: Path) -> dict:
    """Parse a YAML config file and return its contents as a dict."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return data


def get_profile(data: dict, profile_name: str = "default") -> dict:
    """
    Extract a named profile from a .sshmirror or config.yaml data dict.
    Falls back to the first profile if the named one is not found.
    Returns a flat profile dict merged with top-level defaults.
    """
    defaults = data.get("defaults", {}) or {}
    profiles = data.get("profiles", []) or []
    if not profiles:
        return dict(defaults)
    profile = next((p for p in profiles if p.get("name") == profile_name), None)
    if profile is None:
        profile = profiles[0]
    merged = dict(defaults)
    merged.update(profile)
    return merged


def load_profile(profile_name: str = "default", start: Optional[Path] = None) -> dict:
    """Global defaults overlaid with the nearest project profile."""
    merged = dict(load_global_config().get("defaults", {}) or {})
    project = find_config(start)
    if project is not None:
        merged.update(get_profile(load_config_file(project), profile_name))
    return merged


# ══════════════════════════════════════════════════════════════════════════════
#  BUILD  ── profile + address + flags → SyncConfig
# ══════════════════════════════════════════════════════════════════════════════

def parse_mode(value: Union[str, int]) -> int:
    """Accept 0o755, "755", "0755" or "0o755"."""
    if isinstance(value, int) and not isinstance(value, bool):
        mode = value
    else:
        raw = str(value).strip().lower()
        if raw.startswith("0o"):
            raw = raw[2:]
        try:
            mode = int(raw, 8)
        except ValueError:
            raise ConfigError(f"invalid file mode: {value!r}") from None
    if not 0 <= mode <= 0o7777:
        raise ConfigError(f"file mode out of range: {value!r}")
    return mode


def _remote_root(profile: dict) -> Optional[PurePosixPath]:
    if not profile.get("remote_root"):
        return None
    rr = str(profile["remote_root"])
    base = str(profile.get("base_remote", "") or "").rstrip("/")
    if base and not rr.startswith("/"):
        rr = f"{base}/{rr}"
    return PurePosixPath(rr)


def build_config(profile: Optional[dict] = None,
                 address: Optional[SSHAddress] = None,
                 **overrides) -> SyncConfig:
    """
    Merge a profile dict, a parsed address and explicit overrides (CLI flags;
    None values are ignored) into a validated SyncConfig.

    Profile keys: server, port, user/username, ssh_key, ssh_password,
    local_root, remote_root, base_remote, skip_initial_sync, file_mode,
    scp_command, ignore_file, queue_size, connect_timeout, keepalive,
    retry_max, retry_base_delay, term.
    """
    profile = dict(profile or {})
    kw: dict = {}

    if "server" in profile:
        kw["host"] = str(profile["server"])
    if "user" in profile:
        kw["user"] = str(profile["user"])
    elif "username" in profile:
        kw["user"] = str(profile["username"])
    if profile.get("ssh_key"):
        kw["key_path"] = str(Path(str(profile["ssh_key"])).expanduser())
    if profile.get("ssh_password"):
        kw["password"] = str(profile["ssh_password"])
    if "local_root" in profile:
        kw["local_root"] = Path(str(profile["local_root"]))
    remote = _remote_root(profile)
    if remote is not None:
        kw["remote_root"] = remote
    for key in ("port", "queue_size", "keepalive", "retry_max"):
        if key in profile:
            kw[key] = profile[key]
    for key in ("connect_timeout", "retry_base_delay"):
        if key in profile:
            kw[key] = float(profile[key])
    for key in ("scp_command", "ignore_file", "term"):
        if key in profile:
            kw[key] = str(profile[key])
    if "skip_initial_sync" in profile:
        kw["skip_initial_sync"] = bool(profile["skip_initial_sync"])
    if "file_mode" in profile:
        kw["file_mode"] = profile["file_mode"]

    if address is not None:
        kw["host"] = address.host
        kw["user"] = address.user
        kw["port"] = address.port
        if address.password is not None:
            kw["password"] = address.password
        if address.path:
            kw["remote_root"] = PurePosixPath(address.path)

    kw.update({k: v for k, v in overrides.items() if v is not None})

    if not kw.get("host"):
        raise ConfigError("no remote host: pass user@host or set 'server' in .sshmirror")
    if not kw.get("user"):
        raise ConfigError("no remote user: pass user@host or set 'user' in .sshmirror")
    try:
        kw["port"] = int(kw.get("port", DEFAULT_PORT))
        for key in ("queue_size", "keepalive", "retry_max"):
            if key in kw:
                kw[key] = int(kw[key])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid numeric setting: {exc}") from None
    if not 0 < kw["port"] < 65536:
        raise ConfigError(f"port out of range: {kw['port']}")
    if "file_mode" in kw:
        kw["file_mode"] = parse_mode(kw["file_mode"])
    if "remote_root" in kw:
        kw["remote_root"] = PurePosixPath(kw["remote_root"])

    local_root = Path(kw.pop("local_root", Path.cwd())).expanduser()
    kw["local_root"] = Path(os.path.abspath(local_root))
    return SyncConfig(**kw)
