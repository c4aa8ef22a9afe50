"""
safeupd.config

Configuration module for `safeupd` (unattended host updates).
- Loads TOML (system file, user file, explicit --config paths)
- Priority: defaults < system < user < extra paths < env
- Variable expansion (${section.key}) with cycle detection
- Exports ConfigStore (mutable, used while loading) and UpdaterConfig
  (frozen, built once per run and passed to the logger, notifier and runner)
"""

from __future__ import annotations

import os
import re
import socket
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli_w


# -------------------------- Utilities --------------------------
VAR_PATTERN = re.compile(r"\$(?:\{([^}\s:]+)(?::-([^}]*))?\})")

SYSTEM_CONFIG = Path("/etc/safeupd/config.toml")
USER_CONFIG = Path.home() / ".config" / "safeupd" / "config.toml"
ENV_PREFIX = "SAFEUPD_"

SMTP_SECURITY_MODES = ("ssl", "starttls", "none")

# taken verbatim, never run through ${...} expansion
VERBATIM_KEYS = ("mail.smtp_password",)

DEFAULTS: Dict[str, Any] = {
    "general": {
        "hostname": "",
    },
    "mail": {
        "admin_email": "admin@example.com",
        "smtp_server": "smtp.example.com",
        "smtp_port": 465,
        "smtp_user": "notifications@example.com",
        "smtp_password": "",
        "security": "ssl",
        "timeout": 30,
        "enabled": True,
        "sender_name": "System Update",
        "recipient_name": "Admin",
    },
    "logging": {
        "file": "/var/log/auto-update.log",
        "console": False,
        "json": False,
    },
    "decision": {
        "strict": False,
        "detail_max_lines": 100,
    },
    "apt": {
        "binary": "apt",
    },
}


def _is_truthy(val: Any) -> bool:
    if isinstance(val, str):
        return val.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(val)


def _read_toml_file(path: Path) -> dict:
    with path.open("rb") as f:
        return tomllib.load(f)


def _merge_dict(a: dict, b: dict) -> dict:
    """Merge b into a (deep), returning new dict."""
    out = dict(a)
    for k, v in b.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _merge_dict(out[k], v)
        else:
            out[k] = v
    return out


# ----------------------- ConfigStore ---------------------------

class ConfigError(Exception):
    pass


@dataclass
class ConfigStore:
    _raw: Dict[str, Any] = field(default_factory=dict)
    sources: List[str] = field(default_factory=list)

    # ---------------------------------
    # Construction / loading helpers
    # ---------------------------------
    @classmethod
    def load(
        cls,
        extra_paths: Optional[List[Path]] = None,
        env: Optional[Dict[str, str]] = None,
        base_paths: Optional[List[Path]] = None,
    ) -> "ConfigStore":
        """Load config following priorities and merge into a ConfigStore.

        Defaults < /etc/safeupd/config.toml < ~/.config/safeupd/config.toml < extra_paths (ordered) < ENV vars
        """
        store = cls(_raw=_merge_dict({}, DEFAULTS))

        if base_paths is None:
            base_paths = [SYSTEM_CONFIG, USER_CONFIG]
        for p in base_paths:
            if p.exists():
                store._merge_file(p)

        for p in extra_paths or []:
            p = Path(p)
            if not p.exists():
                raise ConfigError(f"Config file not found: {p}")
            store._merge_file(p)

        # env overrides: SAFEUPD_MAIL__SMTP_PASSWORD -> mail.smtp_password
        env = os.environ if env is None else env
        for k, v in env.items():
            if not k.startswith(ENV_PREFIX):
                continue
            parts = k[len(ENV_PREFIX):].lower().split("__")
            if len(parts) < 2:
                continue
            dest = store._raw
            for part in parts[:-1]:
                if not isinstance(dest.get(part, {}), dict):
                    raise ConfigError(f"{k}: {part!r} is not a section")
                dest = dest.setdefault(part, {})
            dest[parts[-1]] = v
            store.sources.append(f"env:{k}")
        return store

    def _merge_file(self, path: Path) -> None:
        try:
            data = _read_toml_file(path)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        self._raw = _merge_dict(self._raw, data)
        self.sources.append(str(path))

    # -------------------------------
    # Accessors
    # -------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        """Get a dotted key, expanded.
        Example: get('mail.smtp_server')
        """
        node = self._lookup(key)
        if node is None:
            return default
        if key in VERBATIM_KEYS:
            return node
        return self._expand_value(node)

    def as_dict(self) -> Dict[str, Any]:
        """Whole configuration, expanded (VERBATIM_KEYS excepted)."""
        out: Dict[str, Any] = {}
        for section, values in self._raw.items():
            if isinstance(values, dict):
                out[section] = {
                    k: v if f"{section}.{k}" in VERBATIM_KEYS else self._expand_value(v)
                    for k, v in values.items()
                }
            else:
                out[section] = self._expand_value(values)
        return out

    def _lookup(self, key: str) -> Any:
        node: Any = self._raw
        for p in key.split("."):
            if isinstance(node, dict) and p in node:
                node = node[p]
            else:
                return None
        return node

    # -------------------------------
    # Expansion logic
    # -------------------------------
    def _expand_value(self, value: Any, _stack: Optional[List[str]] = None) -> Any:
        if isinstance(value, str):
            return self._expand_str(value, _stack=_stack)
        if isinstance(value, dict):
            return {k: self._expand_value(v, _stack=_stack) for k, v in value.items()}
        if isinstance(value, list):
            return [self._expand_value(v, _stack=_stack) for v in value]
        return value

    def _expand_str(self, s: str, _stack: Optional[List[str]] = None) -> str:
        if _stack is None:
            _stack = []

        # handle escaped \${...}
        s = s.replace("\\${", "__ESCAPED_DOLLAR__{")

        def _repl(m: re.Match) -> str:
            var_name = m.group(1)
            default = m.group(2)
            if var_name in _stack:
                chain = " -> ".join(_stack + [var_name])
                raise ConfigError(f"Cycle detected when expanding variables: {chain}")
            val = self._lookup(var_name)
            if val is None:
                if default is None:
                    raise ConfigError(f"Variable '{var_name}' not found during expansion and no default provided")
                return default
            if var_name in VERBATIM_KEYS:
                return str(val)
            _stack.append(var_name)
            res = str(self._expand_value(val, _stack=_stack))
            _stack.pop()
            return res

        out = VAR_PATTERN.sub(_repl, s)
        return out.replace("__ESCAPED_DOLLAR__{", "${")


def render_default_config() -> str:
    """TOML text of the built-in defaults, used by `safeupd config --write-default`."""
    return tomli_w.dumps(DEFAULTS)


# ----------------------- runtime config ------------------------

@dataclass(frozen=True)
class UpdaterConfig:
    admin_email: str
    smtp_server: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    hostname: str
    log_file: Path
    smtp_security: str = "ssl"
    smtp_timeout: float = 30.0
    mail_enabled: bool = True
    sender_name: str = "System Update"
    recipient_name: str = "Admin"
    console: bool = False
    json_out: bool = False
    strict: bool = False
    detail_max_lines: int = 100
    apt_binary: str = "apt"

    @classmethod
    def from_store(cls, store: ConfigStore) -> "UpdaterConfig":
        try:
            port = int(store.get("mail.smtp_port"))
            timeout = float(store.get("mail.timeout"))
            max_lines = int(store.get("decision.detail_max_lines"))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e
        if not 0 < port < 65536:
            raise ConfigError(f"mail.smtp_port out of range: {port}")
        if max_lines <= 0:
            raise ConfigError("decision.detail_max_lines must be positive")
        security = str(store.get("mail.security")).lower()
        if security not in SMTP_SECURITY_MODES:
            raise ConfigError(f"mail.security must be one of {', '.join(SMTP_SECURITY_MODES)}, got {security!r}")

        return cls(
            admin_email=str(store.get("mail.admin_email")),
            smtp_server=str(store.get("mail.smtp_server")),
            smtp_port=port,
            smtp_user=str(store.get("mail.smtp_user")),
            smtp_password=str(store.get("mail.smtp_password", "")),
            hostname=str(store.get("general.hostname") or socket.gethostname()),
            log_file=Path(str(store.get("logging.file"))).expanduser(),
            smtp_security=security,
            smtp_timeout=timeout,
            mail_enabled=_is_truthy(store.get("mail.enabled")),
            sender_name=str(store.get("mail.sender_name")),
            recipient_name=str(store.get("mail.recipient_name")),
            console=_is_truthy(store.get("logging.console")),
            json_out=_is_truthy(store.get("logging.json")),
            strict=_is_truthy(store.get("decision.strict")),
            detail_max_lines=max_lines,
            apt_binary=str(store.get("apt.binary")),
        )


def load_config(extra_paths: Optional[List[Path]] = None, env: Optional[Dict[str, str]] = None) -> UpdaterConfig:
    """Load the layered store once and freeze it."""
    return UpdaterConfig.from_store(ConfigStore.load(extra_paths=extra_paths, env=env))
