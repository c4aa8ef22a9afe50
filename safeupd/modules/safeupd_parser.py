"""Classify dry-run transcripts into structured findings.

Each backend family has a small rule table. A rule names the FindingSet field
it feeds and the pattern that triggers it; adding support for a new tool
phrasing means adding a row, never touching the decision logic.

Parsing is pure: the same DryRunOutput always yields an equal FindingSet.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from safeupd.modules.safeupd_backend import BackendFamily, DryRunOutput

REMOVE = "packages_to_remove"
HELD_BACK = "packages_held_back"
MANUAL = "manual_intervention"
RECOGNIZED = "recognized"

DEFAULT_DETAIL_LINES = 100

APT_DETAIL_HEADER = "The following packages"


@dataclass(frozen=True)
class FindingRule:
    field: str
    pattern: re.Pattern
    # capture the header line plus the indented package list under it
    block: bool = False


def _rule(field: str, pattern: str, block: bool = False, flags: int = 0) -> FindingRule:
    return FindingRule(field=field, pattern=re.compile(pattern, flags), block=block)


APT_RULES: Tuple[FindingRule, ...] = (
    _rule(REMOVE, r"The following packages will be REMOVED", block=True),
    _rule(HELD_BACK, r"The following packages have been kept back", block=True),
    _rule(MANUAL, r"You should explicitly select"),
    _rule(MANUAL, r"The following packages require"),
    _rule(MANUAL, r"Need to get .* of archives"),
    _rule(RECOGNIZED, r"^\d+ upgraded, \d+ newly installed, \d+ to remove and \d+ not upgraded"),
)

YUM_DNF_RULES: Tuple[FindingRule, ...] = (
    _rule(REMOVE, r"removing", flags=re.IGNORECASE),
    _rule(MANUAL, r"error:|warning:|conflict|failed|is needed by", flags=re.IGNORECASE),
    _rule(RECOGNIZED, r"Transaction Summary|Nothing to do|Operation aborted|Exiting on user command", flags=re.IGNORECASE),
)

RULES: Dict[BackendFamily, Tuple[FindingRule, ...]] = {
    BackendFamily.APT: APT_RULES,
    BackendFamily.YUM_DNF: YUM_DNF_RULES,
}


@dataclass(frozen=True)
class FindingSet:
    packages_to_remove: Optional[str] = None
    packages_held_back: Optional[str] = None
    manual_intervention: Optional[str] = None
    raw_detail: str = ""
    recognized: bool = False

    @property
    def is_clean(self) -> bool:
        return self.packages_to_remove is None and self.packages_held_back is None and self.manual_intervention is None

    def signals(self) -> List[str]:
        return [name for name in (REMOVE, HELD_BACK, MANUAL) if getattr(self, name) is not None]


def _block_at(lines: Sequence[str], idx: int) -> str:
    block = [lines[idx].rstrip()]
    for line in lines[idx + 1:]:
        if not line[:1].isspace() or not line.strip():
            break
        block.append(line.rstrip())
    return "\n".join(block)


def _scan(rules: Sequence[FindingRule], lines: Sequence[str]) -> Dict[str, List[str]]:
    hits: Dict[str, List[str]] = {}
    for rule in rules:
        for idx, line in enumerate(lines):
            if not rule.pattern.search(line):
                continue
            text = _block_at(lines, idx) if rule.block else line.strip()
            bucket = hits.setdefault(rule.field, [])
            if text not in bucket:
                bucket.append(text)
    return hits


def _apt_detail(lines: Sequence[str], max_lines: int) -> str:
    for idx, line in enumerate(lines):
        if APT_DETAIL_HEADER in line:
            return "\n".join(lines[idx:idx + max_lines + 1])
    return "\n".join(lines[-max_lines:])


def parse(family: BackendFamily, dry_run: DryRunOutput, max_detail_lines: int = DEFAULT_DETAIL_LINES) -> FindingSet:
    lines = dry_run.text.splitlines()
    hits = _scan(RULES[family], lines)

    def joined(field: str) -> Optional[str]:
        found = hits.get(field)
        return "\n".join(found) if found else None

    if family is BackendFamily.APT:
        detail = _apt_detail(lines, max_detail_lines)
        held_back = joined(HELD_BACK)
    else:
        detail = dry_run.text.strip()
        held_back = None  # no such concept for yum/dnf

    return FindingSet(
        packages_to_remove=joined(REMOVE),
        packages_held_back=held_back,
        manual_intervention=joined(MANUAL),
        raw_detail=detail,
        recognized=RECOGNIZED in hits,
    )
