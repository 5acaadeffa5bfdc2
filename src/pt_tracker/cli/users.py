"""User registration workflow for the pt CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pt_tracker.cli.config import User, UserConfig, read_user_config, write_user_config
from pt_tracker.client import TrackerClient
from pt_tracker.errors import TokenValidationError
from pt_tracker.types import TokenInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddUserResult:
    user: User
    config: UserConfig
    config_path: Path
    replaced: bool


def resolve_token(flag_value: str | None, prompt: Callable[[], str]) -> str:
    """Return the flag token when given, else ask ``prompt`` for one.

    Only the prompted value is validated here; a blank flag value falls
    through to the prompt just like an omitted one.
    """
    if flag_value and flag_value.strip():
        return flag_value.strip()

    token = (prompt() or "").strip()
    if not token:
        raise TokenValidationError("API token must not be empty")
    return token


def build_user(token_info: TokenInfo, alias: str | None = None) -> User:
    return User(
        api_token=token_info.api_token,
        id=token_info.id,
        name=token_info.name,
        username=token_info.username,
        alias=alias or "",
    )


def upsert_user(config: UserConfig, user: User) -> bool:
    """Replace the entry sharing ``user.id`` in place, or append. Returns True on replace."""
    for index, existing in enumerate(config.users):
        if existing.id == user.id:
            config.users[index] = user
            return True
    config.users.append(user)
    return False


def set_current_user(config: UserConfig, user: User, *, now: datetime | None = None) -> None:
    config.current_user_id = user.id
    config.current_user_set_time = now or datetime.now(timezone.utc)


def add_user(
    *,
    api_token: str,
    alias: str | None,
    client: TrackerClient,
    config_path: str | Path | None = None,
    now: datetime | None = None,
) -> AddUserResult:
    token_info = client.resolve_identity(api_token)
    logger.debug("token resolved to tracker user id=%s", token_info.id)

    existing = read_user_config(config_path)
    config = UserConfig() if existing is None else replace(existing, users=list(existing.users))

    user = build_user(token_info, alias)
    replaced = upsert_user(config, user)
    set_current_user(config, user, now=now)

    written_path = write_user_config(config, config_path)
    logger.debug(
        "%s user id=%s in %s",
        "updated" if replaced else "appended",
        user.id,
        written_path,
    )
    return AddUserResult(user=user, config=config, config_path=written_path, replaced=replaced)
