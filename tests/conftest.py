"""Shared doubles for safeupd tests: no real package manager or SMTP server is touched."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest

from safeupd.modules.safeupd_backend import (
    ApplyFailed,
    BackendFamily,
    CommandResult,
    DryRunOutput,
    RefreshFailed,
    UpdateCheck,
    UpdateStatus,
    UpgradeMode,
)
from safeupd.modules.safeupd_config import UpdaterConfig
from safeupd.modules.safeupd_logger import SafeupdLogger


class FakeRunner:
    """CommandRunner stand-in keyed by argv tuple."""

    def __init__(self, results: Optional[Dict[Tuple[str, ...], Tuple[int, str]]] = None):
        self.results = results or {}
        self.calls: List[Tuple[List[str], Dict[str, str]]] = []

    def run(self, argv, env=None) -> CommandResult:
        self.calls.append((list(argv), dict(env or {})))
        rc, output = self.results.get(tuple(argv), (0, ""))
        return CommandResult(argv=list(argv), rc=rc, output=output, duration=0.0)


class FakeBackend:
    def __init__(
        self,
        family: BackendFamily = BackendFamily.APT,
        tool: str = "apt",
        simulate: Optional[Dict[UpgradeMode, str]] = None,
        check: UpdateStatus = UpdateStatus.AVAILABLE,
        check_rc: int = 100,
        refresh_rc: int = 0,
        apply_rc: int = 0,
    ):
        self.family = family
        self.tool = tool
        self.simulate = simulate or {}
        self.check = check
        self.check_rc = check_rc
        self.refresh_rc = refresh_rc
        self.apply_rc = apply_rc
        self.calls: List[Tuple[str, Optional[UpgradeMode]]] = []

    def refresh_metadata(self) -> None:
        self.calls.append(("refresh", None))
        if self.refresh_rc:
            raise RefreshFailed(self.refresh_rc)

    def check_updates_available(self) -> UpdateCheck:
        self.calls.append(("check", None))
        return UpdateCheck(self.check, self.check_rc)

    def simulate_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> DryRunOutput:
        self.calls.append(("simulate", mode))
        return DryRunOutput(text=self.simulate.get(mode, ""), rc=0)

    def apply_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> CommandResult:
        self.calls.append(("apply", mode))
        if self.apply_rc:
            raise ApplyFailed(mode, self.apply_rc)
        return CommandResult(argv=[self.tool, mode.value], rc=0, output="", duration=0.0)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class FakeNotifier:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent: List[Tuple[str, str]] = []

    def send(self, subject: str, body: str) -> bool:
        self.sent.append((subject, body))
        return self.ok


@pytest.fixture
def cfg(tmp_path) -> UpdaterConfig:
    return UpdaterConfig(
        admin_email="admin@example.com",
        smtp_server="smtp.example.com",
        smtp_port=465,
        smtp_user="updates@example.com",
        smtp_password="secret",
        hostname="web01",
        log_file=tmp_path / "auto-update.log",
    )


@pytest.fixture
def logger(cfg) -> SafeupdLogger:
    return SafeupdLogger(cfg.log_file)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def fake_backend():
    return FakeBackend


@pytest.fixture
def fake_notifier():
    return FakeNotifier
