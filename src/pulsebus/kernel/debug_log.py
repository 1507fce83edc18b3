"""Leveled in-memory log with redaction, sinks and an optional rotating JSONL file."""

from __future__ import annotations

import json
import re
import sys
import threading
from collections import deque
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Deque, Dict, List, Optional, TextIO

from pulsebus.kernel.types import LogEntry, now_ms

if TYPE_CHECKING:
    from pulsebus.config import BusOptions


class LogLevel(IntEnum):
    NONE = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


def parse_log_level(value: object) -> Optional[LogLevel]:
    if isinstance(value, LogLevel):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return LogLevel(value)
        except ValueError:
            return None
    if isinstance(value, str):
        normalized = value.strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"
        if normalized in LogLevel.__members__:
            return LogLevel[normalized]
    return None


LogSink = Callable[[LogEntry], None]

_REDACTED = "***REDACTED***"
_SECRET_NAMES = r"password|secret|token|authorization|cookie|api[_-]?key|access[_-]?key|private[_-]?key"
_SECRET_KEY_RE = re.compile("({0})".format(_SECRET_NAMES), re.IGNORECASE)
_INLINE_SECRET_RES = (
    (re.compile(r"(?i)\b(bearer)\s+[^\s,;]+"), r"\1 " + _REDACTED),
    (re.compile(r"(?i)\b({0})\b\s*[:=]\s*[^\s,;]+".format(_SECRET_NAMES)), r"\1=" + _REDACTED),
    (re.compile(r"\bsk-[A-Za-z0-9]{8,}\b"), _REDACTED),
)

ALLOWED_REDACTION = ("default", "none", "strict")


def redact_text(text: str) -> str:
    for pattern, replacement in _INLINE_SECRET_RES:
        text = pattern.sub(replacement, text)
    return text


def redact_data(value: Any, mode: str = "default") -> Any:
    """Mask secrets in log data.

    ``default`` masks values under secret-looking keys plus inline secrets
    in strings; ``strict`` masks every scalar and keeps only the shape;
    ``none`` returns the value untouched.
    """
    if mode == "none":
        return value
    if isinstance(value, dict):
        return {
            key: _REDACTED if _SECRET_KEY_RE.search(str(key)) else redact_data(item, mode)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_data(item, mode) for item in value]
    if mode == "strict":
        return _REDACTED
    if isinstance(value, str):
        return redact_text(value)
    return value


class BusLogger:
    """Threshold-filtered log that keeps the most recent entries in memory.

    Accepted entries go to the ring buffer, then to the configured sink,
    then to ``monitor_hook`` (set by the debugger while monitoring), and
    finally to the console stream when console echo is enabled. Sink and
    hook failures never reach the caller.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream
        self.threshold = LogLevel.NONE
        self.namespace = "pulsebus"
        self.timestamps = True
        self.event_data = False
        self.console = True
        self.redaction = "default"
        self.sink: Optional[LogSink] = None
        self.monitor_hook: Optional[LogSink] = None
        self.debug_enabled = False
        self.sink_errors = 0
        self._entries: Deque[LogEntry] = deque(maxlen=1000)

    def configure(self, options: "BusOptions") -> None:
        self.threshold = options.effective_log_level
        self.namespace = options.log_namespace
        self.timestamps = options.log_timestamps
        self.event_data = options.log_event_data
        self.console = options.log_console
        self.redaction = options.log_redaction
        self.sink = options.log_handler
        self.debug_enabled = options.enable_debug
        if self._entries.maxlen != options.max_log_entries:
            self._entries = deque(self._entries, maxlen=options.max_log_entries)

    def enabled_for(self, level: LogLevel) -> bool:
        return level != LogLevel.NONE and level <= self.threshold

    def log(self, level: LogLevel, message: str, data: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        if not self.enabled_for(level):
            return None

        entry = LogEntry(
            level=level.name,
            message=message if self.redaction == "none" else redact_text(message),
            namespace=self.namespace,
            timestamp=now_ms() if self.timestamps else None,
            data=self._retain(data),
        )
        self._entries.append(entry)

        if self.sink is not None:
            try:
                self.sink(entry)
            except Exception:
                self.sink_errors += 1

        if self.monitor_hook is not None:
            try:
                self.monitor_hook(entry)
            except Exception:
                self.sink_errors += 1

        if self.console:
            self._echo(entry)
        return entry

    def error(self, message: str, data: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, data)

    def warn(self, message: str, data: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, data)

    def info(self, message: str, data: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, data)

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, data)

    def trace(self, message: str, data: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.TRACE, message, data)

    def internal(self, message: str) -> None:
        # Cache housekeeping chatter, only when debugging is switched on.
        if self.debug_enabled:
            self.debug(message)

    def entries(self, level: Optional[str] = None, limit: Optional[int] = None) -> List[LogEntry]:
        result = list(self._entries)
        if level:
            parsed = parse_log_level(level)
            wanted = parsed.name if parsed is not None else str(level).upper()
            result = [entry for entry in result if entry.level == wanted]
        if isinstance(limit, int) and not isinstance(limit, bool):
            result = result[-limit:] if limit > 0 else []
        return result

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _retain(self, data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not self.event_data or not data:
            return None
        return redact_data(dict(data), self.redaction)

    def _echo(self, entry: LogEntry) -> None:
        stream = self._stream or sys.stderr
        line = "[{0}] [{1}] {2}".format(entry.namespace, entry.level, entry.message)
        if entry.data:
            line = "{0} {1}".format(line, entry.data)
        try:
            stream.write(line + "\n")
            stream.flush()
        except Exception:
            self.sink_errors += 1


class JsonlLogSink:
    """Appends log entries as JSON lines, keeping ``max_files`` rotated copies.

    Usable directly as the ``log_handler`` option. Write failures are
    counted, never raised.
    """

    def __init__(
        self,
        *,
        logs_dir: Path,
        max_file_bytes: int = 10 * 1024 * 1024,
        max_files: int = 5,
        file_name: str = "pulsebus.log.jsonl",
    ) -> None:
        self.path = Path(logs_dir) / file_name
        self.max_file_bytes = max(1, int(max_file_bytes or 0))
        self.max_files = max(1, int(max_files or 0))
        self.write_errors = 0
        self._lock = threading.Lock()

    @property
    def active_log_file(self) -> Path:
        return self.path

    def __call__(self, entry: LogEntry) -> None:
        self.write_entry(entry)

    def write_entry(self, entry: LogEntry) -> None:
        record = entry.as_dict()
        if record["timestamp"] is None:
            record["timestamp"] = now_ms()
        line = json.dumps(record, ensure_ascii=True, separators=(",", ":"), default=str) + "\n"
        payload = line.encode("utf-8")

        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                if _file_size(self.path) + len(payload) > self.max_file_bytes:
                    self._rotate()
                with self.path.open("ab") as fp:
                    fp.write(payload)
            except OSError:
                self.write_errors += 1

    def rotated_files(self) -> List[Path]:
        return [path for path in self._backups() if path.exists()]

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "path": str(self.path),
                "size_bytes": _file_size(self.path),
                "rotated": [str(path) for path in self.rotated_files()],
                "write_errors": self.write_errors,
            }

    def _backups(self) -> List[Path]:
        return [self.path.with_name("{0}.{1}".format(self.path.name, index)) for index in range(1, self.max_files + 1)]

    def _rotate(self) -> None:
        # pulsebus.log.jsonl -> .1 -> .2 ... the last backup is dropped.
        chain = [self.path] + self._backups()
        chain[-1].unlink(missing_ok=True)
        for newer, older in reversed(list(zip(chain, chain[1:]))):
            if newer.exists():
                newer.replace(older)


def _file_size(path: Path) -> int:
    try:
        return int(path.stat().st_size)
    except OSError:
        return 0
