from __future__ import annotations

import io
import json
import logging

import pytest

from pt_tracker.cli.config import User, UserConfig, write_user_config
from pt_tracker.cli.main import main
from pt_tracker.types import TokenInfo


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv("PT_TRACKER_BASE", raising=False)
    monkeypatch.delenv("PT_REQUEST_TIMEOUT", raising=False)
    path = tmp_path / "config.json"
    monkeypatch.setenv("PT_CONFIG_PATH", str(path))
    return path


def _two_users(config_path) -> None:
    write_user_config(
        UserConfig(
            current_user_id=42,
            users=[
                User(api_token="BBBB", id=3, name="Weyman Fung", username="weymanf", alias="wf"),
                User(api_token="FFFF", id=42, name="Anand Gaitonde", username="agaitonde"),
            ],
        ),
        config_path,
    )


def test_version_json_has_expected_fields() -> None:
    out = io.StringIO()
    err = io.StringIO()

    rc = main(["version", "--json"], stdout=out, stderr=err)

    assert rc == 0
    assert err.getvalue() == ""
    payload = json.loads(out.getvalue())
    assert payload["cli"] == "pt"
    assert isinstance(payload["version"], str)


def test_users_without_config_prints_hint(config_path) -> None:
    out = io.StringIO()

    rc = main(["users"], stdout=out, stderr=io.StringIO())

    assert rc == 0
    assert "pt add-user" in out.getvalue()
    assert not config_path.exists()


def test_users_marks_current_user(config_path) -> None:
    _two_users(config_path)
    out = io.StringIO()

    rc = main(["users"], stdout=out, stderr=io.StringIO())

    assert rc == 0
    lines = out.getvalue().splitlines()
    assert lines == [
        "  3  Weyman Fung (weymanf) [wf]",
        "* 42  Anand Gaitonde (agaitonde)",
    ]


def test_users_json_omits_tokens(config_path) -> None:
    _two_users(config_path)
    out = io.StringIO()

    rc = main(["users", "--json"], stdout=out, stderr=io.StringIO())

    assert rc == 0
    payload = json.loads(out.getvalue())
    assert [entry["id"] for entry in payload] == [3, 42]
    assert [entry["current"] for entry in payload] == [False, True]
    assert "BBBB" not in out.getvalue()
    assert "FFFF" not in out.getvalue()


def test_users_with_corrupt_config_returns_error(config_path) -> None:
    config_path.write_text("[]", encoding="utf-8")
    err = io.StringIO()

    rc = main(["users"], stdout=io.StringIO(), stderr=err)

    assert rc == 4
    assert "config error" in err.getvalue()


def test_invalid_timeout_setting_returns_config_error(monkeypatch, config_path) -> None:
    monkeypatch.setenv("PT_REQUEST_TIMEOUT", "never")
    out = io.StringIO()
    err = io.StringIO()

    rc = main(["add-user", "--api-token", "FFFF"], stdout=out, stderr=err)

    assert rc == 4
    assert out.getvalue() == ""
    assert "config error" in err.getvalue()
    assert not config_path.exists()


def test_verbose_logs_to_stderr_without_token(monkeypatch, config_path) -> None:
    class _Client:
        def __init__(self, *, base_url: str, timeout: float) -> None:  # noqa: ARG002
            pass

        def resolve_identity(self, api_token: str) -> TokenInfo:
            return TokenInfo(api_token=api_token, id=42, name="Anand", username="agaitonde")

        def close(self) -> None:
            pass

    monkeypatch.setattr("pt_tracker.cli.main.TrackerClient", _Client)
    err = io.StringIO()

    rc = main(
        ["-v", "add-user", "--api-token", "SECRETSECRET"],
        stdout=io.StringIO(),
        stderr=err,
    )

    assert rc == 0
    assert "pt_tracker.cli.users" in err.getvalue()
    assert "SECRETSECRET" not in err.getvalue()


def test_unknown_option_exits_with_usage_error() -> None:
    with pytest.raises(SystemExit) as caught:
        main(["add-user", "--bogus"], stdout=io.StringIO(), stderr=io.StringIO())
    assert caught.value.code == 2


def test_verbose_handler_is_released_after_each_run(config_path) -> None:
    package_logger = logging.getLogger("pt_tracker")
    handlers_before = list(package_logger.handlers)
    first = io.StringIO()
    second = io.StringIO()

    assert main(["-v", "users"], stdout=io.StringIO(), stderr=first) == 0
    assert main(["-v", "users"], stdout=io.StringIO(), stderr=second) == 0

    assert package_logger.handlers == handlers_before
    assert first.getvalue().count("running command users") == 1
    assert second.getvalue().count("running command users") == 1
