#!/usr/bin/env python3
# safeupd_runner.py
"""
safeupd_runner.py — drives one unattended update run

Sequence:
  detect backend -> refresh metadata -> (yum/dnf) check-update -> simulate ->
  parse -> decide (apt may simulate dist-upgrade once more) -> act -> report

Exit codes:
  0  run completed: upgraded, nothing to do, escalated, or upgrade failed (reported)
  1  operational failure: no backend, metadata refresh failed, update check failed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from safeupd.modules.safeupd_backend import (
    ApplyFailed,
    BackendFamily,
    BackendNotFound,
    PackageBackend,
    RefreshFailed,
    UpgradeMode,
    detect_backend,
)
from safeupd.modules.safeupd_decision import Verdict, VerdictKind, evaluate, evaluate_precheck
from safeupd.modules.safeupd_notify import error_message, escalation_message
from safeupd.modules.safeupd_parser import parse

EXIT_OK = 0
EXIT_FAILURE = 1

START_BANNER = "Auto-update script started"
END_BANNER = "Auto-update script completed"


@dataclass
class RunOutcome:
    backend: Optional[str] = None
    verdict: Optional[Verdict] = None
    action_rc: Optional[int] = None
    notification_sent: bool = False
    notified: bool = False
    exit_code: int = EXIT_OK
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "backend": self.backend,
            "verdict": self.verdict.kind.value if self.verdict else None,
            "reason": self.verdict.reason if self.verdict else None,
            "action_rc": self.action_rc,
            "notification_sent": self.notification_sent,
            "exit_code": self.exit_code,
            "error": self.error,
        }


class UpdateRunner:
    def __init__(
        self,
        cfg: Any,
        logger: Any,
        notifier: Any,
        detect: Optional[Callable[[], PackageBackend]] = None,
        dry_run: bool = False,
        strict: Optional[bool] = None,
    ):
        self.cfg = cfg
        self.logger = logger
        self.notifier = notifier
        self.detect = detect or (lambda: detect_backend(logger=logger, apt_binary=cfg.apt_binary))
        self.dry_run = dry_run
        self.strict = cfg.strict if strict is None else strict

    # ---------------- notification (at most once per run) ----------------
    def _notify(self, outcome: RunOutcome, subject: str, body: str) -> None:
        if outcome.notified:
            self.logger.warning("notify.suppressed", f"Notification already sent this run; not sending: {subject}")
            return
        outcome.notified = True
        if self.dry_run:
            self.logger.info("notify.dry_run", f"dry-run: would send email: {subject}", body=body)
            return
        outcome.notification_sent = self.notifier.send(subject, body)

    def _fail(self, outcome: RunOutcome, message: str, verdict: Optional[Verdict] = None, exc: Optional[BaseException] = None) -> None:
        self.logger.error("run.error", message, exc=exc)
        outcome.error = message
        outcome.exit_code = EXIT_FAILURE
        if verdict is not None:
            outcome.verdict = verdict
        self._notify(outcome, *error_message(self.cfg.hostname, message, self.cfg.log_file))

    # ---------------- main entry ----------------
    def run(self) -> RunOutcome:
        outcome = RunOutcome()
        self.logger.banner(START_BANNER)
        try:
            self._run(outcome)
        except Exception as e:
            self._fail(outcome, f"Unexpected error: {e}", exc=e)
        finally:
            self.logger.banner(END_BANNER)
        return outcome

    def _run(self, outcome: RunOutcome) -> None:
        try:
            backend = self.detect()
        except BackendNotFound as e:
            self._fail(outcome, "No supported package manager found", Verdict.detection_failed(str(e)))
            return
        outcome.backend = backend.tool
        self.logger.info("backend.detected", f"Detected {backend.tool} package manager")

        self.logger.info("backend.refresh", f"Updating package lists with {backend.tool}")
        try:
            backend.refresh_metadata()
        except RefreshFailed as e:
            self._fail(outcome, str(e))
            return

        pre = evaluate_precheck(backend.check_updates_available())
        if pre is not None:
            if pre.kind is VerdictKind.DETECTION_FAILED:
                self._fail(outcome, pre.reason, pre)
            else:
                outcome.verdict = pre
                self.logger.info("decision.no_updates", "No updates available")
            return

        verdict = self._decide(backend)
        outcome.verdict = verdict
        self._act(backend, verdict, outcome)

    def _decide(self, backend: PackageBackend) -> Verdict:
        family = backend.family
        max_lines = self.cfg.detail_max_lines
        if family is BackendFamily.APT:
            self.logger.info("decision.simulate", "Checking for packages that would be removed or held back")
        else:
            self.logger.info("decision.simulate", "Checking for packages that would be removed")

        findings = parse(family, backend.simulate_upgrade(UpgradeMode.SIMPLE), max_lines)
        self.logger.debug("decision.findings", "Dry-run findings", signals=findings.signals(), recognized=findings.recognized)
        verdict = evaluate(family, findings, strict=self.strict)

        if verdict.kind is VerdictKind.SIMULATE_DIST_UPGRADE:
            self.logger.info("decision.held_back", "Some packages kept back. Checking if dist-upgrade would remove packages.")
            second = parse(family, backend.simulate_upgrade(UpgradeMode.DIST), max_lines)
            verdict = evaluate(family, findings, second_stage=second, strict=self.strict)
        return verdict

    def _act(self, backend: PackageBackend, verdict: Verdict, outcome: RunOutcome) -> None:
        if verdict.kind is VerdictKind.ESCALATE:
            self.logger.info(
                "decision.escalate",
                "Packages would be removed or require manual intervention. Sending email.",
                reason=verdict.reason,
            )
            self._notify(outcome, *escalation_message(self.cfg.hostname, verdict))
            return

        mode = verdict.upgrade_mode
        if mode is None:
            raise RuntimeError(f"Unexpected verdict at action stage: {verdict.kind.value}")

        if mode is UpgradeMode.DIST:
            self.logger.info("decision.proceed", "dist-upgrade would not remove packages. Proceeding with dist-upgrade.")
        else:
            self.logger.info("decision.proceed", "No packages would be removed. Proceeding with automatic upgrade.")
        if self.dry_run:
            self.logger.info("action.dry_run", f"dry-run: skipping {mode.value}")
            return

        try:
            res = backend.apply_upgrade(mode)
        except ApplyFailed as e:
            outcome.action_rc = e.rc
            # reported, but the run still counts as completed
            self._fail(outcome, str(e))
            outcome.exit_code = EXIT_OK
            return
        outcome.action_rc = res.rc
        if mode is UpgradeMode.DIST:
            self.logger.info("action.done", "dist-upgrade completed successfully")
        else:
            self.logger.info("action.done", "Upgrade completed successfully")
