"""Verdict state machine for one update run.

Responsibilities:
  - Turn a pre-check result and parsed dry-run findings into a Verdict.
  - Ask the caller for the apt dist-upgrade simulation when packages are
    held back (SIMULATE_DIST_UPGRADE), then settle on the second pass.

Invariants:
  - Pure: no I/O, no process exit codes, no clock.
  - Any removal or manual-intervention signal escalates.
  - Only a clean finding set proceeds. In strict mode it must also have been
    recognized as a complete tool transcript.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from safeupd.modules.safeupd_backend import BackendFamily, UpdateCheck, UpdateStatus, UpgradeMode
from safeupd.modules.safeupd_parser import FindingSet

REASON_REMOVAL_OR_MANUAL = "removal-or-manual"
REASON_DIST_UPGRADE_REMOVES = "dist-upgrade-would-remove"
REASON_REMOVAL_OR_CONFLICT = "removal-or-conflict"
REASON_UNRECOGNIZED = "unrecognized-output"


class VerdictKind(str, Enum):
    PROCEED_SIMPLE_UPGRADE = "proceed-simple-upgrade"
    PROCEED_DIST_UPGRADE = "proceed-dist-upgrade"
    ESCALATE = "escalate"
    NO_UPDATES_AVAILABLE = "no-updates-available"
    DETECTION_FAILED = "detection-failed"
    # request back to the caller, never a final outcome
    SIMULATE_DIST_UPGRADE = "simulate-dist-upgrade"


@dataclass(frozen=True)
class Verdict:
    kind: VerdictKind
    reason: str = ""
    detail: str = ""

    @classmethod
    def proceed(cls, mode: UpgradeMode = UpgradeMode.SIMPLE) -> "Verdict":
        if mode is UpgradeMode.DIST:
            return cls(VerdictKind.PROCEED_DIST_UPGRADE)
        return cls(VerdictKind.PROCEED_SIMPLE_UPGRADE)

    @classmethod
    def escalate(cls, reason: str, detail: str) -> "Verdict":
        return cls(VerdictKind.ESCALATE, reason=reason, detail=detail)

    @classmethod
    def no_updates(cls) -> "Verdict":
        return cls(VerdictKind.NO_UPDATES_AVAILABLE)

    @classmethod
    def detection_failed(cls, reason: str) -> "Verdict":
        return cls(VerdictKind.DETECTION_FAILED, reason=reason)

    @property
    def upgrade_mode(self) -> Optional[UpgradeMode]:
        if self.kind is VerdictKind.PROCEED_SIMPLE_UPGRADE:
            return UpgradeMode.SIMPLE
        if self.kind is VerdictKind.PROCEED_DIST_UPGRADE:
            return UpgradeMode.DIST
        return None


def evaluate_precheck(check: UpdateCheck) -> Optional[Verdict]:
    """Map the cheap yum/dnf check-update result; None means keep going."""
    if check.status is UpdateStatus.ERROR:
        return Verdict.detection_failed(f"Failed to check for updates (exit code: {check.rc})")
    if check.status is UpdateStatus.NONE:
        return Verdict.no_updates()
    return None


def combined_detail(first: FindingSet, second: FindingSet) -> str:
    return f"Kept back:\n{first.packages_held_back or ''}\n\ndist-upgrade details:\n{second.raw_detail}"


def _proceed_or_unrecognized(findings: FindingSet, mode: UpgradeMode, strict: bool) -> Verdict:
    if strict and not findings.recognized:
        return Verdict.escalate(REASON_UNRECOGNIZED, findings.raw_detail)
    return Verdict.proceed(mode)


def _evaluate_apt(findings: FindingSet, second_stage: Optional[FindingSet], strict: bool) -> Verdict:
    if findings.packages_to_remove is not None or findings.manual_intervention is not None:
        return Verdict.escalate(REASON_REMOVAL_OR_MANUAL, findings.raw_detail)

    if findings.packages_held_back is not None:
        if second_stage is None:
            return Verdict(VerdictKind.SIMULATE_DIST_UPGRADE)
        if second_stage.packages_to_remove is not None:
            return Verdict.escalate(REASON_DIST_UPGRADE_REMOVES, combined_detail(findings, second_stage))
        return _proceed_or_unrecognized(second_stage, UpgradeMode.DIST, strict)

    return _proceed_or_unrecognized(findings, UpgradeMode.SIMPLE, strict)


def _evaluate_yum_dnf(findings: FindingSet, strict: bool) -> Verdict:
    if findings.packages_to_remove is not None or findings.manual_intervention is not None:
        return Verdict.escalate(REASON_REMOVAL_OR_CONFLICT, findings.raw_detail)
    return _proceed_or_unrecognized(findings, UpgradeMode.SIMPLE, strict)


def evaluate(
    family: BackendFamily,
    findings: FindingSet,
    second_stage: Optional[FindingSet] = None,
    strict: bool = False,
) -> Verdict:
    if family is BackendFamily.APT:
        return _evaluate_apt(findings, second_stage, strict)
    return _evaluate_yum_dnf(findings, strict)
