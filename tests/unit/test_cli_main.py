from __future__ import annotations

import json
from contextlib import nullcontext
from functools import partial
from pathlib import Path
from unittest.mock import patch

from user_import.cli import main as cli_main
from user_import.cli.session import OperatorSession
from user_import.client.api import CreateUserResult


def _scripted_session(answers: list[str], secrets: list[str]):
    answers = list(answers)
    secrets = list(secrets)
    return partial(
        OperatorSession,
        prompt=lambda _label: answers.pop(0),
        secret_prompt=lambda _label: secrets.pop(0),
        echo=lambda _text: None,
    )


def _patch_api(fake_api):
    return patch("user_import.cli.app.DashboardApiClient", lambda cfg: nullcontext(fake_api))


def test_cli_success(write_config, write_import_file, fake_api, capsys):
    path = write_import_file({"users": [{"username": "a"}]})
    with _patch_api(fake_api), \
         patch("user_import.cli.app.OperatorSession", _scripted_session(["n"], ["longenough", "longenough"])):
        code = cli_main([str(path)])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO Successfully imported 1 user(s)." in out
    assert "SUMMARY users=1 created=1 skipped=0 failed=0 errors=0 elapsed_sec=" in out


def test_cli_partial_failure_exit_code(write_config, write_import_file, fake_api, temp_workdir: Path, capsys):
    fake_api.create["b"] = CreateUserResult(False, error="boom")
    path = write_import_file([{"username": "a"}, {"username": "b"}])
    session = _scripted_session(["n", "n"], ["longenough"] * 4)
    with _patch_api(fake_api), patch("user_import.cli.app.OperatorSession", session):
        code = cli_main([str(path)])
    out = capsys.readouterr().out
    assert code == 2
    assert "SUMMARY users=2 created=1 skipped=0 failed=1 errors=1" in out
    logs = list((temp_workdir / "logs").glob("import-errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert record["error_type"] == "COMMIT_FAILED"
    assert record["username"] == "b"


def test_cli_config_missing(temp_workdir: Path, capsys):
    code = cli_main(["users.json"])
    assert code == 1
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_cli_structural_error(write_config, write_import_file, temp_workdir: Path, capsys):
    path = write_import_file({"people": []})
    code = cli_main([str(path)])
    out = capsys.readouterr().out
    assert code == 1
    assert 'ERROR import file: Invalid import file: must have a "users" array or a "user" object' in out
    logs = list((temp_workdir / "logs").glob("import-errors-*.log"))
    assert json.loads(logs[0].read_text(encoding="utf-8"))["error_type"] == "STRUCTURAL"


def test_cli_duplicate_precheck(write_config, write_import_file, fake_api, capsys):
    fake_api.existing.add("a")
    path = write_import_file({"users": [{"username": "a"}]})
    with _patch_api(fake_api):
        code = cli_main([str(path)])
    assert code == 1
    assert 'ERROR User "a" already exists.' in capsys.readouterr().out
    assert fake_api.calls_to("create") == []


def test_cli_operator_quit(write_config, write_import_file, fake_api, capsys):
    path = write_import_file({"users": [{"username": "a"}]})
    with _patch_api(fake_api), patch("user_import.cli.app.OperatorSession", _scripted_session(["q"], [])):
        code = cli_main([str(path)])
    assert code == 1
    assert "WARN import cancelled by operator" in capsys.readouterr().out


def test_cli_keyboard_interrupt(write_config, write_import_file, fake_api, capsys):
    def interrupted(_label):
        raise KeyboardInterrupt

    path = write_import_file({"users": [{"username": "a"}]})
    session = partial(OperatorSession, prompt=interrupted, echo=lambda _t: None)
    with _patch_api(fake_api), patch("user_import.cli.app.OperatorSession", session):
        code = cli_main([str(path)])
    assert code == 130
    assert fake_api.calls_to("create") == []


def test_cli_inspect_makes_no_network_calls(write_config, write_import_file, capsys):
    path = write_import_file(
        {"users": [{"username": "root", "instanceAdmin": True}, {"username": "b", "discordWebhooks": [{"id": 1}]}]}
    )
    with patch("user_import.cli.app.DashboardApiClient") as client_cls:
        code = cli_main([str(path), "--inspect"])
    out = capsys.readouterr().out
    assert code == 0
    client_cls.assert_not_called()
    assert "USER: root" in out and "steps=['instance_admin_verification', 'password']" in out
    assert "steps=['password', 'discord']" in out
    assert "instance admin requested: root" in out


def test_cli_debug_flag(write_config, write_import_file, capsys):
    path = write_import_file({"users": [{"username": "a"}]})
    code = cli_main([str(path), "--inspect", "--debug"])
    assert code == 0
    assert "DEBUG debug mode enabled" in capsys.readouterr().out


def test_cli_custom_config_path(temp_workdir: Path, write_import_file, sample_config_yaml: str, capsys):
    cfg = temp_workdir / "custom.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    path = write_import_file({"users": [{"username": "a"}]})
    assert cli_main([str(path), "--config", str(cfg), "--inspect"]) == 0


def test_cli_user_skip_is_partial(write_config, write_import_file, fake_api, capsys):
    path = write_import_file([{"username": "a"}, {"username": "b"}])
    session = _scripted_session(["u", "n"], ["longenough", "longenough"])
    with _patch_api(fake_api), patch("user_import.cli.app.OperatorSession", session):
        code = cli_main([str(path)])
    out = capsys.readouterr().out
    assert code == 2
    assert "SUMMARY users=2 created=1 skipped=1 failed=0 errors=0" in out
