"""Option normalization and TOML loading for pulsebus."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

try:  # pragma: no cover - exercised on Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for Python 3.9/3.10
    import tomli as tomllib  # type: ignore[no-redef]

from pulsebus.kernel.debug_log import ALLOWED_REDACTION, LogLevel, LogSink, parse_log_level
from pulsebus.kernel.errors import ConfigError
from pulsebus.kernel.match_cache import DEFAULT_CACHE_TTL_MS, DEFAULT_MAX_CACHE_SIZE
from pulsebus.kernel.types import PRIORITY_NORMAL, clamp_priority

DEFAULT_ENABLE_DEBUG = False
DEFAULT_MAX_WILDCARDS_PER_PATTERN = 5
DEFAULT_UNIFY_PARAMS = False
DEFAULT_PRIORITY = PRIORITY_NORMAL
DEFAULT_LOG_NAMESPACE = "pulsebus"
DEFAULT_LOG_TIMESTAMPS = True
DEFAULT_LOG_EVENT_DATA = False
DEFAULT_MAX_LOG_ENTRIES = 1000
DEFAULT_LOG_CONSOLE = True
DEFAULT_LOG_REDACTION = "default"
DEFAULT_CACHE_SWEEP_INTERVAL = 100

Visualizer = Callable[[Any, Dict[str, Any]], None]

# Original option names are accepted alongside the Python spelling.
OPTION_ALIASES = {
    "enableDebug": "enable_debug",
    "maxWildcardsPerPattern": "max_wildcards_per_pattern",
    "unifyParams": "unify_params",
    "defaultPriority": "default_priority",
    "logLevel": "log_level",
    "logNamespace": "log_namespace",
    "logTimestamps": "log_timestamps",
    "logEventData": "log_event_data",
    "maxLogEntries": "max_log_entries",
    "logHandler": "log_handler",
    "logConsole": "log_console",
    "logRedaction": "log_redaction",
    "cacheTtlMs": "cache_ttl_ms",
    "maxCacheSize": "max_cache_size",
    "cacheSweepInterval": "cache_sweep_interval",
}


@dataclass(frozen=True)
class BusOptions:
    enable_debug: bool = DEFAULT_ENABLE_DEBUG
    max_wildcards_per_pattern: int = DEFAULT_MAX_WILDCARDS_PER_PATTERN
    unify_params: bool = DEFAULT_UNIFY_PARAMS
    default_priority: int = DEFAULT_PRIORITY
    log_level: Optional[LogLevel] = None
    log_namespace: str = DEFAULT_LOG_NAMESPACE
    log_timestamps: bool = DEFAULT_LOG_TIMESTAMPS
    log_event_data: bool = DEFAULT_LOG_EVENT_DATA
    max_log_entries: int = DEFAULT_MAX_LOG_ENTRIES
    log_handler: Optional[LogSink] = None
    visualizer: Optional[Visualizer] = None
    log_console: bool = DEFAULT_LOG_CONSOLE
    log_redaction: str = DEFAULT_LOG_REDACTION
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    cache_sweep_interval: int = DEFAULT_CACHE_SWEEP_INTERVAL

    @property
    def effective_log_level(self) -> LogLevel:
        if self.log_level is not None:
            return self.log_level
        return LogLevel.DEBUG if self.enable_debug else LogLevel.NONE

    def as_dict(self) -> Dict[str, Any]:
        data = {item.name: getattr(self, item.name) for item in fields(self)}
        data["log_level"] = self.log_level.name.lower() if self.log_level is not None else None
        data["effective_log_level"] = self.effective_log_level.name.lower()
        data["log_handler"] = _callable_name(self.log_handler)
        data["visualizer"] = _callable_name(self.visualizer)
        return data


def _callable_name(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "__qualname__", None) or type(value).__name__)


def _safe_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _safe_positive_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        converted = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted <= 0:
        return default
    return converted


def _safe_non_negative_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        converted = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted < 0:
        return default
    return converted


def _safe_priority(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value:  # NaN
        return default
    return clamp_priority(value)


def _safe_text(value: object, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _safe_redaction(value: object, default: str) -> str:
    normalized = str(value or default).strip().lower()
    if normalized not in ALLOWED_REDACTION:
        return default
    return normalized


def _safe_callable(value: object, default: Optional[Callable[..., Any]]) -> Optional[Callable[..., Any]]:
    if value is None:
        return None
    if callable(value):
        return value  # type: ignore[return-value]
    return default


def _canonical_keys(raw: Mapping[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in raw.items():
        name = OPTION_ALIASES.get(str(key), str(key))
        result[name] = value
    return result


def merge_options(base: BusOptions, raw: Optional[Mapping[str, Any]] = None, **overrides: Any) -> BusOptions:
    """Overlay user-supplied values on ``base``.

    Each key is normalized independently; an invalid value keeps the value
    already held by ``base``. Unknown keys are ignored. ``log_level=None``
    resets the threshold to the one derived from ``enable_debug``.
    """
    data = _canonical_keys(dict(raw or {}))
    data.update(_canonical_keys(overrides))
    changes: Dict[str, Any] = {}

    if "enable_debug" in data:
        changes["enable_debug"] = _safe_bool(data["enable_debug"], base.enable_debug)
    if "max_wildcards_per_pattern" in data:
        changes["max_wildcards_per_pattern"] = _safe_positive_int(
            data["max_wildcards_per_pattern"],
            base.max_wildcards_per_pattern,
        )
    if "unify_params" in data:
        changes["unify_params"] = _safe_bool(data["unify_params"], base.unify_params)
    if "default_priority" in data:
        changes["default_priority"] = _safe_priority(data["default_priority"], base.default_priority)
    if "log_level" in data:
        if data["log_level"] is None:
            changes["log_level"] = None
        else:
            parsed = parse_log_level(data["log_level"])
            if parsed is not None:
                changes["log_level"] = parsed
    if "log_namespace" in data:
        changes["log_namespace"] = _safe_text(data["log_namespace"], base.log_namespace)
    if "log_timestamps" in data:
        changes["log_timestamps"] = _safe_bool(data["log_timestamps"], base.log_timestamps)
    if "log_event_data" in data:
        changes["log_event_data"] = _safe_bool(data["log_event_data"], base.log_event_data)
    if "max_log_entries" in data:
        changes["max_log_entries"] = _safe_positive_int(data["max_log_entries"], base.max_log_entries)
    if "log_handler" in data:
        changes["log_handler"] = _safe_callable(data["log_handler"], base.log_handler)
    if "visualizer" in data:
        changes["visualizer"] = _safe_callable(data["visualizer"], base.visualizer)
    if "log_console" in data:
        changes["log_console"] = _safe_bool(data["log_console"], base.log_console)
    if "log_redaction" in data:
        changes["log_redaction"] = _safe_redaction(data["log_redaction"], base.log_redaction)
    if "cache_ttl_ms" in data:
        changes["cache_ttl_ms"] = _safe_non_negative_int(data["cache_ttl_ms"], base.cache_ttl_ms)
    if "max_cache_size" in data:
        changes["max_cache_size"] = _safe_positive_int(data["max_cache_size"], base.max_cache_size)
    if "cache_sweep_interval" in data:
        changes["cache_sweep_interval"] = _safe_positive_int(
            data["cache_sweep_interval"],
            base.cache_sweep_interval,
        )

    if not changes:
        return base
    return replace(base, **changes)


def build_options(raw: Optional[Mapping[str, Any]] = None, **overrides: Any) -> BusOptions:
    return merge_options(BusOptions(), raw, **overrides)


def _parse_options_data(data: Dict[str, object]) -> Dict[str, Any]:
    bus = data.get("bus") if isinstance(data.get("bus"), dict) else {}
    logs = bus.get("logs") if isinstance(bus.get("logs"), dict) else {}  # type: ignore[union-attr]
    cache = bus.get("cache") if isinstance(bus.get("cache"), dict) else {}  # type: ignore[union-attr]

    flat: Dict[str, Any] = {}
    for key in ("enable_debug", "max_wildcards_per_pattern", "unify_params", "default_priority"):
        if key in bus:  # type: ignore[operator]
            flat[key] = bus[key]  # type: ignore[index]
    for key in ("level", "namespace", "timestamps", "event_data", "console", "redaction"):
        if key in logs:  # type: ignore[operator]
            flat["log_{0}".format(key)] = logs[key]  # type: ignore[index]
    if "max_entries" in logs:  # type: ignore[operator]
        flat["max_log_entries"] = logs["max_entries"]  # type: ignore[index]
    if "ttl_ms" in cache:  # type: ignore[operator]
        flat["cache_ttl_ms"] = cache["ttl_ms"]  # type: ignore[index]
    if "max_size" in cache:  # type: ignore[operator]
        flat["max_cache_size"] = cache["max_size"]  # type: ignore[index]
    if "sweep_interval" in cache:  # type: ignore[operator]
        flat["cache_sweep_interval"] = cache["sweep_interval"]  # type: ignore[index]
    return flat


def read_toml(path: Path) -> Dict[str, object]:
    target = Path(path)
    if not target.is_file():
        raise ConfigError("options file not found: {0}".format(target), path=str(target))
    try:
        with target.open("rb") as fp:
            return tomllib.load(fp)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError("failed to read options file {0}: {1}".format(target, exc), path=str(target)) from exc


def options_from_toml_data(data: Dict[str, object], base: Optional[BusOptions] = None) -> BusOptions:
    return merge_options(base or BusOptions(), _parse_options_data(data))


def load_options(path: Path, base: Optional[BusOptions] = None) -> BusOptions:
    return options_from_toml_data(read_toml(path), base)


def render_options_toml(options: BusOptions) -> str:
    level = options.log_level.name.lower() if options.log_level is not None else None
    lines = [
        "[bus]",
        "enable_debug = {0}".format(str(bool(options.enable_debug)).lower()),
        "max_wildcards_per_pattern = {0}".format(options.max_wildcards_per_pattern),
        "unify_params = {0}".format(str(bool(options.unify_params)).lower()),
        "default_priority = {0}".format(options.default_priority),
        "",
        "[bus.logs]",
    ]
    if level is not None:
        lines.append('level = "{0}"'.format(level))
    lines.extend(
        [
            'namespace = "{0}"'.format(options.log_namespace.replace("\\", "\\\\").replace('"', '\\"')),
            "timestamps = {0}".format(str(bool(options.log_timestamps)).lower()),
            "event_data = {0}".format(str(bool(options.log_event_data)).lower()),
            "max_entries = {0}".format(options.max_log_entries),
            "console = {0}".format(str(bool(options.log_console)).lower()),
            'redaction = "{0}"'.format(_safe_redaction(options.log_redaction, DEFAULT_LOG_REDACTION)),
            "",
            "[bus.cache]",
            "ttl_ms = {0}".format(options.cache_ttl_ms),
            "max_size = {0}".format(options.max_cache_size),
            "sweep_interval = {0}".format(options.cache_sweep_interval),
            "",
        ]
    )
    return "\n".join(lines)
