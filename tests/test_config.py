"""Tests for layered configuration loading."""

from __future__ import annotations

import dataclasses
import tomllib
from pathlib import Path

import pytest

from safeupd.modules.safeupd_config import ConfigError, ConfigStore, UpdaterConfig, render_default_config


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _load(*paths: Path, env=None) -> ConfigStore:
    return ConfigStore.load(extra_paths=list(paths), env=env or {}, base_paths=[])


def test_defaults_only() -> None:
    cfg = UpdaterConfig.from_store(_load())

    assert cfg.smtp_port == 465
    assert cfg.smtp_security == "ssl"
    assert cfg.smtp_timeout == 30.0
    assert cfg.log_file == Path("/var/log/auto-update.log")
    assert cfg.strict is False
    assert cfg.detail_max_lines == 100
    assert cfg.hostname


def test_file_then_env_priority(tmp_path) -> None:
    first = _write(tmp_path / "a.toml", '[mail]\nsmtp_server = "relay.a"\nsmtp_port = 2525\n')
    second = _write(tmp_path / "b.toml", '[mail]\nsmtp_server = "relay.b"\n')
    env = {"SAFEUPD_MAIL__SMTP_PASSWORD": "from-env", "SAFEUPD_DECISION__STRICT": "true", "OTHER": "x"}

    store = _load(first, second, env=env)
    cfg = UpdaterConfig.from_store(store)

    assert cfg.smtp_server == "relay.b"
    assert cfg.smtp_port == 2525
    assert cfg.smtp_password == "from-env"
    assert cfg.strict is True
    assert store.sources == [str(first), str(second), "env:SAFEUPD_MAIL__SMTP_PASSWORD", "env:SAFEUPD_DECISION__STRICT"]


def test_base_paths_are_merged_first(tmp_path) -> None:
    system = _write(tmp_path / "system.toml", '[general]\nhostname = "from-system"\n')
    store = ConfigStore.load(env={}, base_paths=[system, tmp_path / "missing.toml"])

    assert store.get("general.hostname") == "from-system"


def test_variable_expansion(tmp_path) -> None:
    path = _write(tmp_path / "c.toml", '[paths]\nlog_dir = "/srv/logs"\n[logging]\nfile = "${paths.log_dir}/update.log"\n')
    cfg = UpdaterConfig.from_store(_load(path))

    assert cfg.log_file == Path("/srv/logs/update.log")


def test_expansion_default_value(tmp_path) -> None:
    path = _write(tmp_path / "d.toml", '[logging]\nfile = "${paths.nowhere:-/tmp}/update.log"\n')

    assert _load(path).get("logging.file") == "/tmp/update.log"


def test_expansion_cycle_detected(tmp_path) -> None:
    path = _write(tmp_path / "e.toml", '[x]\na = "${x.b}"\nb = "${x.a}"\n')

    with pytest.raises(ConfigError, match="Cycle"):
        _load(path).get("x.a")


def test_missing_extra_file(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        _load(tmp_path / "nope.toml")


def test_broken_toml(tmp_path) -> None:
    path = _write(tmp_path / "broken.toml", "[mail\n")

    with pytest.raises(ConfigError, match="Cannot read"):
        _load(path)


@pytest.mark.parametrize(
    "text",
    [
        "[mail]\nsmtp_port = 0\n",
        '[mail]\nsmtp_port = "not-a-number"\n',
        '[mail]\nsecurity = "tls13"\n',
        "[decision]\ndetail_max_lines = 0\n",
    ],
)
def test_invalid_values(tmp_path, text: str) -> None:
    with pytest.raises(ConfigError):
        UpdaterConfig.from_store(_load(_write(tmp_path / "bad.toml", text)))


def test_runtime_config_is_frozen() -> None:
    cfg = UpdaterConfig.from_store(_load())

    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.smtp_server = "elsewhere"


def test_default_config_renders_valid_toml() -> None:
    data = tomllib.loads(render_default_config())

    assert data["mail"]["security"] == "ssl"
    assert data["apt"]["binary"] == "apt"


@pytest.mark.parametrize(
    "text, env",
    [
        ("", {"SAFEUPD_MAIL__SMTP_PORT__X": "1"}),
        ('mail = "x"\n', {"SAFEUPD_MAIL__SMTP_PORT": "25"}),
    ],
)
def test_env_override_through_scalar_is_config_error(tmp_path, text: str, env) -> None:
    path = _write(tmp_path / "f.toml", text)

    with pytest.raises(ConfigError, match="is not a section"):
        _load(path, env=env)


def test_password_is_taken_verbatim(tmp_path) -> None:
    path = _write(tmp_path / "g.toml", "[mail]\nsmtp_password = 'pa${ss}word'\n")
    store = _load(path)

    assert UpdaterConfig.from_store(store).smtp_password == "pa${ss}word"
    assert store.as_dict()["mail"]["smtp_password"] == "pa${ss}word"


def test_expansion_ignores_process_environment(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SAFEUPD_TEST_HOME", "/home/ops")
    path = _write(tmp_path / "h.toml", '[logging]\nfile = "${SAFEUPD_TEST_HOME}/update.log"\n')

    with pytest.raises(ConfigError, match="not found during expansion"):
        _load(path).get("logging.file")


def test_escaped_reference_is_kept_literal(tmp_path) -> None:
    path = _write(tmp_path / "i.toml", "[logging]\nfile = '/srv/\\${paths.log_dir}/update.log'\n")

    assert _load(path).get("logging.file") == "/srv/${paths.log_dir}/update.log"
