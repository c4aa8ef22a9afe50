#!/usr/bin/env python3
# safeupd_cli.py
"""
safeupd CLI

Commands:
 - run (default): one unattended update pass; exit code 0 = completed, 1 = operational failure
 - config --dump: print the resolved configuration (password masked)
 - config --write-default PATH: write the default config.toml

Global flags:
 - --config PATH (repeatable), --dry-run, --strict, --verbose/-v, --json
 - configuration problems exit with 2
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import tomli_w
from rich.console import Console
from rich.table import Table

from safeupd.modules.safeupd_config import ConfigError, ConfigStore, load_config, render_default_config
from safeupd.modules.safeupd_logger import SafeupdLogger
from safeupd.modules.safeupd_notify import Notifier
from safeupd.modules.safeupd_runner import RunOutcome, UpdateRunner

EXIT_CONFIG_ERROR = 2
MASK = "********"


class SafeupdCLI:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.err_console = Console(stderr=True)

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(prog="safeupd", description="Unattended package updates with escalation by e-mail")
        parser.add_argument("-c", "--config", action="append", default=[], metavar="PATH", help="extra config file (repeatable, later wins)")
        parser.add_argument("--dry-run", action="store_true", help="decide only: never upgrade, never send mail")
        parser.add_argument("--strict", action="store_true", help="escalate when dry-run output is not recognized")
        parser.add_argument("-v", "--verbose", action="store_true", help="mirror the log to the terminal and print a summary")
        parser.add_argument("--json", action="store_true", help="print the run outcome as JSON")

        sub = parser.add_subparsers(dest="cmd")
        sub.add_parser("run", help="run one update pass (default)")
        p_cfg = sub.add_parser("config", help="inspect or generate configuration")
        group = p_cfg.add_mutually_exclusive_group(required=True)
        group.add_argument("--dump", action="store_true", help="print resolved config")
        group.add_argument("--write-default", metavar="PATH", help="write default config to PATH")
        p_cfg.add_argument("--force", action="store_true", help="overwrite an existing file")
        return parser

    # ---------------- commands ----------------
    def cmd_run(self, args: argparse.Namespace) -> int:
        try:
            cfg = load_config([Path(p) for p in args.config])
        except ConfigError as e:
            self.err_console.print(f"[red]Config error:[/red] {e}")
            return EXIT_CONFIG_ERROR

        logger = SafeupdLogger.from_config(cfg, console=True if args.verbose else None)
        runner = UpdateRunner(
            cfg,
            logger,
            Notifier(cfg, logger),
            dry_run=args.dry_run,
            strict=True if args.strict else None,
        )
        outcome = runner.run()

        if args.json:
            self.console.print_json(json.dumps(outcome.to_dict()))
        elif args.verbose:
            self._print_summary(outcome)
        return outcome.exit_code

    def cmd_config(self, args: argparse.Namespace) -> int:
        if args.write_default:
            path = Path(args.write_default)
            if path.exists() and not args.force:
                self.err_console.print(f"[red]Refusing to overwrite[/red] {path} (use --force)")
                return EXIT_CONFIG_ERROR
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(render_default_config(), encoding="utf-8")
            self.console.print(f"[green]Wrote[/green] {path}")
            return 0

        try:
            store = ConfigStore.load(extra_paths=[Path(p) for p in args.config])
            resolved = store.as_dict()
        except ConfigError as e:
            self.err_console.print(f"[red]Config error:[/red] {e}")
            return EXIT_CONFIG_ERROR
        if resolved.get("mail", {}).get("smtp_password"):
            resolved["mail"]["smtp_password"] = MASK
        if args.json:
            self.console.print_json(json.dumps(resolved))
        else:
            self.console.print(f"# sources: {', '.join(store.sources) or 'defaults only'}")
            self.console.print(tomli_w.dumps(resolved), markup=False, highlight=False)
        return 0

    def _print_summary(self, outcome: RunOutcome) -> None:
        table = Table(title="Update run")
        table.add_column("field")
        table.add_column("value")
        for key, value in outcome.to_dict().items():
            table.add_row(key, "" if value is None else str(value))
        self.console.print(table)

    # ---------------- dispatcher ----------------
    def run(self, argv: Optional[List[str]] = None) -> int:
        parser = self.build_parser()
        args = parser.parse_args(sys.argv[1:] if argv is None else argv)
        cmd = args.cmd or "run"
        if cmd == "config":
            return self.cmd_config(args)
        return self.cmd_run(args)


# ---------------- CLI runner ----------------
def main(argv: Optional[List[str]] = None) -> int:
    return SafeupdCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
