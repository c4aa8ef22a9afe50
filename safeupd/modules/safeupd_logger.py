#!/usr/bin/env python3
# safeupd_logger.py
"""
SafeupdLogger — append-only event log for safeupd runs

Features:
 - Plain text lines (or JSON lines) appended to the configured log file
 - The file is opened and closed for every write (no handle is held across a run)
 - Start/end banners carrying a timestamp
 - Raw command transcripts (apt update, dnf check-update, upgrade output) appended verbatim
 - Optional colorized console mirror through rich (off by default: the agent is unattended)
 - Write failures fall back to a stderr logger and never interrupt the run
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markup import escape

# fallback stdlib logging for internal failures
_base_logger = logging.getLogger("safeupd_logger_internal")
if not _base_logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("[%(levelname)s] safeupd_logger_internal: %(message)s"))
    _base_logger.addHandler(h)
_base_logger.setLevel(logging.INFO)


LEVEL_STYLES = {
    "debug": "cyan",
    "info": "green",
    "warning": "yellow",
    "error": "bold red",
}


# ----------------- helpers -----------------
def _now_iso() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def _safe_json(obj: Any) -> str:
    try:
        return json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return json.dumps(str(obj))


# ----------------- main logger class -----------------
class SafeupdLogger:
    """
    SafeupdLogger writes one line per event into the run log.
    Use SafeupdLogger.from_config(cfg) to build from an UpdaterConfig.
    """

    def __init__(
        self,
        log_path: Path,
        *,
        json_out: bool = False,
        console: bool = False,
        console_obj: Optional[Console] = None,
    ):
        self.log_path = Path(log_path)
        self.json_out = json_out
        self.console = console
        self._console = console_obj or Console(stderr=True)

    @classmethod
    def from_config(cls, cfg: Any, console: Optional[bool] = None) -> "SafeupdLogger":
        return cls(
            cfg.log_file,
            json_out=cfg.json_out,
            console=cfg.console if console is None else console,
        )

    # ----------------- formatting -----------------
    def _format_text(self, level: str, message: str, meta: Dict[str, Any]) -> str:
        line = f"{_now_iso()} {level.upper()} {message}"
        if meta:
            line += f" {_safe_json(meta)}"
        return line

    def _format_json(self, level: str, event: str, message: str, meta: Dict[str, Any]) -> str:
        payload = {
            "ts": _now_iso(),
            "level": level.upper(),
            "event": event,
            "msg": message,
            "meta": meta,
        }
        return _safe_json(payload)

    def _write_to_file(self, text: str) -> None:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as fh:
                fh.write(text if text.endswith("\n") else text + "\n")
        except OSError as e:
            _base_logger.warning(f"Failed to write log to {self.log_path}: {e}")
            _base_logger.info(text.rstrip("\n"))

    def _emit(self, level: str, event: str, message: str, **meta: Any) -> None:
        if self.json_out:
            out = self._format_json(level, event, message, meta)
        else:
            out = self._format_text(level, message, meta)
        self._write_to_file(out)

        if self.console:
            style = LEVEL_STYLES.get(level, "white")
            self._console.print(f"[{style}]{level.upper():<7}[/{style}] {escape(message)}")

    # ------------- public API -------------
    def info(self, event: str, message: str = "", **meta: Any) -> None:
        self._emit("info", event, message or event, **meta)

    def warning(self, event: str, message: str = "", **meta: Any) -> None:
        self._emit("warning", event, message or event, **meta)

    def error(self, event: str, message: str = "", exc: Optional[BaseException] = None, **meta: Any) -> None:
        if exc is not None:
            meta["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        self._emit("error", event, message or event, **meta)

    def debug(self, event: str, message: str = "", **meta: Any) -> None:
        self._emit("debug", event, message or event, **meta)

    def banner(self, text: str) -> None:
        """Write a run boundary marker: `=== <text> at <timestamp> ===`."""
        line = f"=== {text} at {_now_iso()} ==="
        if self.json_out:
            self._write_to_file(self._format_json("info", "run.banner", line, {}))
        else:
            self._write_to_file(line)
        if self.console:
            self._console.rule(escape(line))

    def output(self, label: str, text: str) -> None:
        """Append a raw command transcript to the log file only."""
        if not text:
            return
        if self.json_out:
            self._write_to_file(self._format_json("debug", "command.output", label, {"output": text}))
            return
        body = text if text.endswith("\n") else text + "\n"
        self._write_to_file(f"--- {label} ---\n{body}--- end {label} ---")
