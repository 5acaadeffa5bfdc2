"""Configuration helpers for the pt CLI."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pt_tracker.client import DEFAULT_TRACKER_BASE

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "pt" / "config.json"
CONFIG_PATH_ENV_VAR = "PT_CONFIG_PATH"
TRACKER_BASE_ENV_VAR = "PT_TRACKER_BASE"
REQUEST_TIMEOUT_ENV_VAR = "PT_REQUEST_TIMEOUT"
DEFAULT_REQUEST_TIMEOUT = 10.0
ZERO_TIME = "0001-01-01T00:00:00Z"
_FRACTION_RE = re.compile(r"\.(\d+)")

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when CLI settings or the user config are invalid."""


class ConfigCorruptError(ConfigError):
    """Raised when an existing user config cannot be decoded."""


class ConfigIOError(ConfigError):
    """Raised when the user config cannot be read from or written to disk."""


@dataclass(frozen=True)
class CLISettings:
    tracker_base: str = DEFAULT_TRACKER_BASE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    config_path: Path = DEFAULT_CONFIG_PATH


@dataclass(frozen=True)
class User:
    api_token: str
    id: int
    name: str
    username: str
    alias: str = ""


@dataclass
class UserConfig:
    current_user_id: int = 0
    current_user_set_time: datetime | None = None
    users: list[User] = field(default_factory=list)

    def current_user(self) -> User | None:
        if not self.current_user_id:
            return None
        for user in self.users:
            if user.id == self.current_user_id:
                return user
        return None


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path:
        return Path(path).expanduser()
    env_path = os.getenv(CONFIG_PATH_ENV_VAR)
    if env_path and env_path.strip():
        return Path(env_path.strip()).expanduser()
    return DEFAULT_CONFIG_PATH


def load_cli_settings(
    *,
    config_path: str | Path | None = None,
    tracker_base: str | None = None,
) -> CLISettings:
    env_tracker_base = os.getenv(TRACKER_BASE_ENV_VAR)
    if tracker_base is not None:
        resolved_base = tracker_base.strip()
    elif env_tracker_base is not None:
        resolved_base = env_tracker_base.strip()
    else:
        resolved_base = DEFAULT_TRACKER_BASE
    if not resolved_base:
        raise ConfigError("tracker_base must not be empty")

    raw_timeout = os.getenv(REQUEST_TIMEOUT_ENV_VAR)
    if raw_timeout is None or not raw_timeout.strip():
        request_timeout = DEFAULT_REQUEST_TIMEOUT
    else:
        try:
            request_timeout = float(raw_timeout)
        except ValueError as exc:
            raise ConfigError(f"{REQUEST_TIMEOUT_ENV_VAR} must be a number of seconds") from exc
        if request_timeout <= 0:
            raise ConfigError(f"{REQUEST_TIMEOUT_ENV_VAR} must be greater than zero")

    return CLISettings(
        tracker_base=resolved_base,
        request_timeout=request_timeout,
        config_path=resolve_config_path(config_path),
    )


def _format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == ZERO_TIME:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ConfigCorruptError(f"currentUserSetTime out of range: {value}") from exc
    if not isinstance(value, str):
        raise ConfigCorruptError("currentUserSetTime must be an RFC 3339 string")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    # fromisoformat before 3.11 takes exactly 6 fractional digits; RFC 3339 allows up to 9.
    raw = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], raw, count=1)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ConfigCorruptError(f"invalid currentUserSetTime: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _user_from_dict(raw: Any, index: int) -> User:
    if not isinstance(raw, dict):
        raise ConfigCorruptError(f"users[{index}] must be an object")
    user_id = raw.get("id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise ConfigCorruptError(f"users[{index}].id must be an integer")
    fields = {}
    for key in ("apiToken", "name", "username", "alias"):
        value = raw.get(key, "")
        if not isinstance(value, str):
            raise ConfigCorruptError(f"users[{index}].{key} must be a string")
        fields[key] = value
    return User(
        api_token=fields["apiToken"],
        id=user_id,
        name=fields["name"],
        username=fields["username"],
        alias=fields["alias"],
    )


def config_from_dict(payload: Any) -> UserConfig:
    if not isinstance(payload, dict):
        raise ConfigCorruptError("config root must be a JSON object")

    current_user_id = payload.get("currentUserID", 0)
    if not isinstance(current_user_id, int) or isinstance(current_user_id, bool):
        raise ConfigCorruptError("currentUserID must be an integer")

    raw_users = payload.get("users")
    if raw_users is None:
        raw_users = []
    if not isinstance(raw_users, list):
        raise ConfigCorruptError("users must be a list")

    return UserConfig(
        current_user_id=current_user_id,
        current_user_set_time=_parse_time(payload.get("currentUserSetTime")),
        users=[_user_from_dict(raw, index) for index, raw in enumerate(raw_users)],
    )


def config_to_dict(config: UserConfig) -> dict[str, Any]:
    return {
        "currentUserID": config.current_user_id,
        "currentUserSetTime": _format_time(config.current_user_set_time),
        "users": [
            {
                "apiToken": user.api_token,
                "id": user.id,
                "name": user.name,
                "username": user.username,
                "alias": user.alias,
            }
            for user in config.users
        ],
    }


def read_user_config(path: str | Path | None = None) -> UserConfig | None:
    """Load the stored users, or ``None`` when no config file exists yet."""
    config_path = resolve_config_path(path)
    try:
        raw_bytes = config_path.read_bytes()
    except FileNotFoundError:
        logger.debug("no user config at %s", config_path)
        return None
    except OSError as exc:
        raise ConfigIOError(f"failed to read config file: {config_path}: {exc}") from exc

    try:
        payload = json.loads(raw_bytes.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ConfigCorruptError(f"config file is not valid UTF-8: {config_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigCorruptError(f"invalid JSON in {config_path}: {exc}") from exc

    config = config_from_dict(payload)
    logger.debug("loaded %d user(s) from %s", len(config.users), config_path)
    return config


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def write_user_config(config: UserConfig, path: str | Path | None = None) -> Path:
    """Atomically replace the config file with ``config``."""
    config_path = resolve_config_path(path)
    serialized = json.dumps(config_to_dict(config), indent=2) + "\n"

    tmp_name: str | None = None
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{config_path.name}.",
            suffix=".tmp",
            dir=config_path.parent,
        )
        try:
            handle = os.fdopen(fd, "w", encoding="utf-8")
        except OSError:
            os.close(fd)
            raise
        with handle:
            handle.write(serialized)
            handle.flush()
            os.fsync(handle.fileno())
        _chmod_owner_only(Path(tmp_name))
        os.replace(tmp_name, config_path)
    except OSError as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise ConfigIOError(f"failed to write config file: {config_path}: {exc}") from exc

    logger.debug("wrote %d user(s) to %s", len(config.users), config_path)
    return config_path
