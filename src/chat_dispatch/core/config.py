import dataclasses
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError

logger = logging.getLogger("chat_dispatch.core.config")

CONFIG_FILENAME = "chat-dispatch.yml"
OVERRIDE_FILENAME = "chat-dispatch.override.yml"
ENV_PREFIX = "CHAT_DISPATCH_"

DEFAULT_PREFIX = "."
DEFAULT_WINDOW_MS = 60_000
DEFAULT_MAX_REQUESTS = 10
DEFAULT_DEDUPE_TTL_MS = 300_000
DEFAULT_HANDLER_TIMEOUT_MS = 30_000
DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0
DEFAULT_SUDO_FILE = ".chat-dispatch/sudo.json"
DEFAULT_LOG_FILE = ".chat-dispatch/dispatch.log"

DEFAULT_CONFIG: Dict[str, Any] = {
    "prefix": DEFAULT_PREFIX,
    "prefixes": [],
    "owners": [],
    "window_ms": DEFAULT_WINDOW_MS,
    "max_requests": DEFAULT_MAX_REQUESTS,
    "dedupe_ttl_ms": DEFAULT_DEDUPE_TTL_MS,
    "handler_timeout_ms": DEFAULT_HANDLER_TIMEOUT_MS,
    "sweep_interval_seconds": DEFAULT_SWEEP_INTERVAL_SECONDS,
    "sudo_file": DEFAULT_SUDO_FILE,
    "permissions": {
        "lookup_attempts": 2,
        "lookup_base_wait_seconds": 0.2,
    },
    "log": {
        "path": DEFAULT_LOG_FILE,
        "level": "INFO",
        "max_bytes": 10 * 1024 * 1024,
        "backup_count": 3,
    },
}

# CHAT_DISPATCH_<suffix> -> config key
_ENV_OVERRIDES: Dict[str, str] = {
    "PREFIX": "prefix",
    "OWNERS": "owners",
    "WINDOW_MS": "window_ms",
    "MAX_REQUESTS": "max_requests",
    "DEDUPE_TTL_MS": "dedupe_ttl_ms",
    "HANDLER_TIMEOUT_MS": "handler_timeout_ms",
}


@dataclasses.dataclass(frozen=True)
class LogConfig:
    path: Path
    level: int
    max_bytes: int
    backup_count: int


@dataclasses.dataclass(frozen=True)
class PermissionsConfig:
    lookup_attempts: int = 2
    lookup_base_wait_seconds: float = 0.2


@dataclasses.dataclass(frozen=True)
class DispatchConfig:
    root: Path
    prefixes: tuple[str, ...]
    owner_ids: frozenset[str]
    window_ms: int
    max_requests: int
    dedupe_ttl_ms: int
    handler_timeout_ms: int
    sweep_interval_seconds: float
    sudo_file: Path
    permissions: PermissionsConfig
    log: LogConfig

    @property
    def prefix(self) -> str:
        return self.prefixes[0]

    @classmethod
    def defaults(cls, root: Path, **overrides: Any) -> "DispatchConfig":
        return cls.from_raw(root=root, raw=_merge_defaults(DEFAULT_CONFIG, overrides))

    @classmethod
    def from_raw(cls, *, root: Path, raw: Mapping[str, Any]) -> "DispatchConfig":
        cfg: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

        prefixes = _parse_prefixes(cfg.get("prefix"), cfg.get("prefixes"))
        window_ms = _parse_positive_int(cfg.get("window_ms"), key="window_ms")
        max_requests = _parse_positive_int(
            cfg.get("max_requests"), key="max_requests"
        )
        dedupe_ttl_ms = _parse_positive_int(
            cfg.get("dedupe_ttl_ms"), key="dedupe_ttl_ms"
        )
        handler_timeout_ms = _parse_positive_int(
            cfg.get("handler_timeout_ms"), key="handler_timeout_ms"
        )
        sweep_interval = _parse_positive_float(
            cfg.get("sweep_interval_seconds"), key="sweep_interval_seconds"
        )

        sudo_file_value = cfg.get("sudo_file")
        if not isinstance(sudo_file_value, str) or not sudo_file_value.strip():
            raise ConfigError("sudo_file must be a non-empty string path")

        permissions_raw = cfg.get("permissions")
        permissions_cfg = permissions_raw if isinstance(permissions_raw, Mapping) else {}
        permissions = PermissionsConfig(
            lookup_attempts=_parse_positive_int(
                permissions_cfg.get("lookup_attempts", 2),
                key="permissions.lookup_attempts",
            ),
            lookup_base_wait_seconds=_parse_non_negative_float(
                permissions_cfg.get("lookup_base_wait_seconds", 0.2),
                key="permissions.lookup_base_wait_seconds",
            ),
        )

        return cls(
            root=root,
            prefixes=prefixes,
            owner_ids=frozenset(_parse_string_ids(cfg.get("owners"))),
            window_ms=window_ms,
            max_requests=max_requests,
            dedupe_ttl_ms=dedupe_ttl_ms,
            handler_timeout_ms=handler_timeout_ms,
            sweep_interval_seconds=sweep_interval,
            sudo_file=(root / sudo_file_value.strip()).resolve(),
            permissions=permissions,
            log=_parse_log_config(root, cfg.get("log")),
        )


def _merge_defaults(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = cast(Dict[str, Any], json.loads(json.dumps(base)))
    for key, value in overrides.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for suffix, key in _ENV_OVERRIDES.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value is None or not value.strip():
            continue
        if key == "owners":
            overrides[key] = [item for item in value.split(",") if item.strip()]
        else:
            overrides[key] = value.strip()
    return overrides


def load_dotenv_for_root(root: Path) -> None:
    """Best-effort load of `<root>/.env` into the process environment."""
    try:
        candidate = root.resolve() / ".env"
        if candidate.exists():
            load_dotenv(dotenv_path=candidate, override=False)
    except OSError as exc:
        logger.debug("Failed to load .env file: %s", exc)


def load_config_data(
    root: Path, *, environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    merged = _merge_defaults(DEFAULT_CONFIG, _load_yaml_dict(root / CONFIG_FILENAME))
    override_path = root / OVERRIDE_FILENAME
    try:
        override = _load_yaml_dict(override_path)
    except ConfigError as exc:
        raise ConfigError(
            f"Invalid override config {override_path}; fix or delete it: {exc}"
        ) from exc
    if override:
        merged = _merge_defaults(merged, override)
    env = os.environ if environ is None else environ
    return _merge_defaults(merged, _env_overrides(env))


def load_config(
    root: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None
) -> DispatchConfig:
    root = (root or Path.cwd()).resolve()
    if environ is None:
        load_dotenv_for_root(root)
    return DispatchConfig.from_raw(root=root, raw=load_config_data(root, environ=environ))


def _parse_prefixes(prefix: Any, extra: Any) -> tuple[str, ...]:
    if not isinstance(prefix, str) or not prefix.strip():
        raise ConfigError("prefix must be a non-empty string")
    prefixes = [prefix.strip()]
    for item in _parse_string_ids(extra):
        if item not in prefixes:
            prefixes.append(item)
    if any(any(ch.isspace() for ch in item) for item in prefixes):
        raise ConfigError("prefixes must not contain whitespace")
    return tuple(prefixes)


def _parse_string_ids(value: Any) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = str(item).strip()
        if token:
            parsed.append(token)
    return parsed


def _parse_positive_int(value: Any, *, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        raise ConfigError(f"{key} must be > 0")
    return parsed


def _parse_positive_float(value: Any, *, key: str) -> float:
    parsed = _parse_non_negative_float(value, key=key)
    if parsed <= 0:
        raise ConfigError(f"{key} must be > 0")
    return parsed


def _parse_non_negative_float(value: Any, *, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number") from exc
    if parsed < 0:
        raise ConfigError(f"{key} must be >= 0")
    return parsed


def _parse_log_config(root: Path, raw: Any) -> LogConfig:
    cfg = raw if isinstance(raw, Mapping) else {}
    path_value = cfg.get("path", DEFAULT_LOG_FILE)
    if not isinstance(path_value, str) or not path_value.strip():
        raise ConfigError("log.path must be a non-empty string path")
    level_name = str(cfg.get("level", "INFO")).strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ConfigError(f"log.level is not a valid logging level: {level_name}")
    return LogConfig(
        path=(root / path_value.strip()).resolve(),
        level=level,
        max_bytes=_parse_positive_int(cfg.get("max_bytes", 10485760), key="log.max_bytes"),
        backup_count=_parse_positive_int(
            cfg.get("backup_count", 3), key="log.backup_count"
        ),
    )


__all__ = [
    "CONFIG_FILENAME",
    "DispatchConfig",
    "LogConfig",
    "OVERRIDE_FILENAME",
    "PermissionsConfig",
    "load_config",
    "load_config_data",
    "load_dotenv_for_root",
]
