#!/usr/bin/env python3
# safeupd_backend.py
"""
safeupd_backend.py — package manager adapters

Two families are supported:
 - AptBackend     (apt / apt-get): refresh, upgrade|dist-upgrade --simulate, real upgrade with --force-confold
 - YumDnfBackend  (dnf / yum): check-update pre-check, upgrade --assumeno, upgrade -y

Every external command goes through CommandRunner, which never raises on a
non-zero exit code; the adapters turn exit codes into typed results or
BackendError subclasses, so no caller above this module deals with raw codes.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

# exit codes used when a command could not be started at all
RC_NOT_FOUND = 127
RC_OS_ERROR = 1

# yum/dnf check-update conventions
CHECK_UPDATE_NONE = 0
CHECK_UPDATE_AVAILABLE = 100

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
APT_KEEP_CONFIG = ["-o", "Dpkg::Options::=--force-confold"]


class BackendFamily(str, Enum):
    APT = "apt"
    YUM_DNF = "yum-dnf"


class UpgradeMode(str, Enum):
    SIMPLE = "upgrade"
    DIST = "dist-upgrade"


class UpdateStatus(str, Enum):
    NONE = "none"
    AVAILABLE = "available"
    ERROR = "error"


# ---------------- errors ----------------
class BackendError(Exception):
    pass


class BackendNotFound(BackendError):
    def __init__(self, candidates: List[str]):
        self.candidates = list(candidates)
        super().__init__(f"No supported package manager found (looked for: {', '.join(self.candidates)})")


class RefreshFailed(BackendError):
    def __init__(self, rc: int):
        self.rc = rc
        super().__init__(f"Failed to update package lists (exit code: {rc})")


class ApplyFailed(BackendError):
    def __init__(self, mode: UpgradeMode, rc: int):
        self.mode = mode
        self.rc = rc
        super().__init__(f"{mode.value} failed with exit code {rc}")


# ---------------- results ----------------
@dataclass
class CommandResult:
    argv: List[str]
    rc: int
    output: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.rc == 0


@dataclass(frozen=True)
class DryRunOutput:
    text: str
    rc: int


@dataclass(frozen=True)
class UpdateCheck:
    status: UpdateStatus
    rc: int


# ---------------- command execution ----------------
class CommandRunner:
    """Run a command to completion, capturing stdout and stderr as one stream."""

    def run(self, argv: List[str], env: Optional[Dict[str, str]] = None) -> CommandResult:
        start = time.time()
        env_final = dict(os.environ)
        env_final.update(env or {})
        try:
            proc = subprocess.run(
                argv,
                env=env_final,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                check=False,
            )
            rc = proc.returncode
            output = proc.stdout or ""
        except FileNotFoundError as e:
            rc = RC_NOT_FOUND
            output = f"[exception] {e}"
        except OSError as e:
            rc = RC_OS_ERROR
            output = f"[exception] {e}"
        return CommandResult(argv=list(argv), rc=rc, output=output, duration=time.time() - start)


# ---------------- adapters ----------------
class PackageBackend:
    """Common adapter surface; subclasses fill in the command lines."""

    family: BackendFamily
    modes = (UpgradeMode.SIMPLE,)
    env: Dict[str, str] = {}

    def __init__(self, tool: str, runner: Optional[CommandRunner] = None, logger: Any = None):
        self.tool = tool
        self.runner = runner or CommandRunner()
        self.logger = logger

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tool={self.tool!r})"

    def _run(self, argv: List[str], record_output: bool = True) -> CommandResult:
        res = self.runner.run(argv, env=self.env)
        if self.logger:
            self.logger.debug("backend.command", f"ran {' '.join(argv)} (exit code: {res.rc})", duration=round(res.duration, 3))
            if record_output:
                self.logger.output(" ".join(argv), res.output)
        return res

    def _check_mode(self, mode: UpgradeMode) -> None:
        if mode not in self.modes:
            raise ValueError(f"{self.tool} does not support {mode.value}")

    def refresh_metadata(self) -> None:
        raise NotImplementedError

    def check_updates_available(self) -> UpdateCheck:
        raise NotImplementedError

    def simulate_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> DryRunOutput:
        raise NotImplementedError

    def apply_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> CommandResult:
        raise NotImplementedError


class AptBackend(PackageBackend):
    family = BackendFamily.APT
    modes = (UpgradeMode.SIMPLE, UpgradeMode.DIST)
    env = APT_ENV

    def __init__(self, tool: str = "apt", runner: Optional[CommandRunner] = None, logger: Any = None):
        super().__init__(tool, runner=runner, logger=logger)

    def refresh_metadata(self) -> None:
        res = self._run([self.tool, "update", "-y"])
        if not res.ok:
            raise RefreshFailed(res.rc)

    def check_updates_available(self) -> UpdateCheck:
        # apt has no cheap pre-check; the simulation decides
        return UpdateCheck(UpdateStatus.AVAILABLE, 0)

    def simulate_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> DryRunOutput:
        self._check_mode(mode)
        res = self._run([self.tool, mode.value, "--simulate"], record_output=False)
        return DryRunOutput(text=res.output, rc=res.rc)

    def apply_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> CommandResult:
        self._check_mode(mode)
        res = self._run([self.tool, mode.value, "-y", *APT_KEEP_CONFIG])
        if not res.ok:
            raise ApplyFailed(mode, res.rc)
        return res


class YumDnfBackend(PackageBackend):
    family = BackendFamily.YUM_DNF

    def refresh_metadata(self) -> None:
        # check-update refreshes repository metadata itself
        return None

    def check_updates_available(self) -> UpdateCheck:
        res = self._run([self.tool, "check-update"])
        if res.rc == CHECK_UPDATE_NONE:
            return UpdateCheck(UpdateStatus.NONE, res.rc)
        if res.rc == CHECK_UPDATE_AVAILABLE:
            return UpdateCheck(UpdateStatus.AVAILABLE, res.rc)
        return UpdateCheck(UpdateStatus.ERROR, res.rc)

    def simulate_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> DryRunOutput:
        self._check_mode(mode)
        # --assumeno answers "no" at the confirmation prompt; exit code 1 is expected
        res = self._run([self.tool, "upgrade", "--assumeno"], record_output=False)
        return DryRunOutput(text=res.output, rc=res.rc)

    def apply_upgrade(self, mode: UpgradeMode = UpgradeMode.SIMPLE) -> CommandResult:
        self._check_mode(mode)
        res = self._run([self.tool, "upgrade", "-y"])
        if not res.ok:
            raise ApplyFailed(mode, res.rc)
        return res


# ---------------- detection ----------------
def detect_backend(
    runner: Optional[CommandRunner] = None,
    logger: Any = None,
    apt_binary: str = "apt",
    which: Optional[Callable[[str], Optional[str]]] = None,
) -> PackageBackend:
    """Return the first available backend in priority order apt, dnf, yum."""
    which = which or shutil.which
    candidates = [
        (apt_binary, AptBackend),
        ("dnf", YumDnfBackend),
        ("yum", YumDnfBackend),
    ]
    for tool, cls in candidates:
        if which(tool):
            return cls(tool, runner=runner, logger=logger)
    raise BackendNotFound([tool for tool, _ in candidates])
