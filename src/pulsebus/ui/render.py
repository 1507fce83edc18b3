"""Presentation helpers for pulsebus CLI output."""

from __future__ import annotations

import sys
from typing import Any, Dict, Iterable, List, Mapping, Optional, TextIO

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from pulsebus.kernel.types import LogEntry

_LEVEL_STYLES = {
    "ERROR": "bold red",
    "WARN": "yellow",
    "INFO": "cyan",
    "DEBUG": "dim",
    "TRACE": "dim",
}


def bilingual_text(zh: str, en: Optional[str] = None) -> str:
    if not en:
        return zh
    return "{0} ({1})".format(zh, en)


def render_notice(level: str, zh: str, en: Optional[str] = None) -> str:
    prefix_map = {
        "info": bilingual_text("提示", "Info"),
        "warn": bilingual_text("警告", "Warning"),
        "error": bilingual_text("错误", "Error"),
        "success": bilingual_text("成功", "Success"),
    }
    prefix = prefix_map.get(level, bilingual_text("提示", "Info"))
    return "{0}: {1}".format(prefix, bilingual_text(zh, en))


def _is_tty(stream: TextIO, forced: Optional[bool]) -> bool:
    if forced is not None:
        return forced
    isatty = getattr(stream, "isatty", None)
    if callable(isatty):
        try:
            return bool(isatty())
        except Exception:
            return False
    return False


def _console(stream: TextIO, is_tty: Optional[bool], width: Optional[int] = None) -> Console:
    tty = _is_tty(stream, is_tty)
    return Console(
        file=stream,
        highlight=False,
        soft_wrap=False,
        force_terminal=tty,
        no_color=not tty,
        width=width or 120,
    )


def _format_args(args: Any) -> str:
    if args is None:
        return "-"
    if isinstance(args, (list, tuple)):
        return ", ".join(repr(item) for item in args) or "-"
    return repr(args)


def render_metrics(
    metrics: Mapping[str, Any],
    stream: TextIO,
    is_tty: Optional[bool] = None,
) -> None:
    table = Table(
        title=bilingual_text("总线指标", "Bus Metrics"),
        box=box.SIMPLE_HEAVY,
        min_width=60,
        show_header=True,
    )
    table.add_column("metric")
    table.add_column("value", justify="right")
    for key in sorted(metrics.keys()):
        value = metrics[key]
        if isinstance(value, dict):
            continue
        if isinstance(value, float):
            text = "{0:.2f}".format(value)
        else:
            text = str(value)
        table.add_row(key, text)
    _console(stream, is_tty).print(table)


def render_timeline(
    timeline: Iterable[Mapping[str, Any]],
    stream: TextIO,
    is_tty: Optional[bool] = None,
) -> None:
    rows = list(timeline)
    console = _console(stream, is_tty)
    if not rows:
        console.print(bilingual_text("时间线为空", "Timeline is empty"))
        return

    started = int(rows[0].get("timestamp") or 0)
    table = Table(
        title=bilingual_text("事件时间线", "Event Timeline"),
        box=box.SIMPLE_HEAVY,
        min_width=60,
    )
    table.add_column("#", justify="right")
    table.add_column("event")
    table.add_column("args")
    table.add_column("+ms", justify="right")
    for index, item in enumerate(rows, start=1):
        offset = int(item.get("timestamp") or 0) - started
        table.add_row(
            str(index),
            str(item.get("event", "")),
            _format_args(item.get("args")),
            str(max(0, offset)),
        )
    console.print(table)


def render_deliveries(
    deliveries: Iterable[Mapping[str, Any]],
    stream: TextIO,
    is_tty: Optional[bool] = None,
) -> None:
    rows = list(deliveries)
    console = _console(stream, is_tty)
    if not rows:
        console.print(bilingual_text("没有处理器被调用", "No handler was invoked"))
        return

    table = Table(
        title=bilingual_text("处理器调用", "Handler Deliveries"),
        box=box.SIMPLE_HEAVY,
        min_width=60,
    )
    table.add_column("emit", justify="right")
    table.add_column("event")
    table.add_column("label")
    table.add_column("args")
    table.add_column("status")
    for item in rows:
        failed = bool(item.get("failed"))
        status = Text("failed", style="red") if failed else Text("ok", style="green")
        table.add_row(
            str(item.get("emit", "")),
            str(item.get("event", "")),
            str(item.get("label", "")),
            _format_args(item.get("args")),
            status,
        )
    console.print(table)


def describe_match(pattern: str, event: str, matched: bool, captures: List[str]) -> str:
    if not matched:
        return render_notice(
            "warn",
            "{0} 不匹配 {1}".format(pattern, event),
            "{0} does not match {1}".format(pattern, event),
        )
    lines = [
        render_notice(
            "success",
            "{0} 匹配 {1}".format(pattern, event),
            "{0} matches {1}".format(pattern, event),
        )
    ]
    for index, value in enumerate(captures, start=1):
        lines.append("capture[{0}]={1}".format(index, value))
    return "\n".join(lines)


class ConsoleVisualizer:
    """Prints one line per emitted event or log entry while monitoring.

    Usable directly as the ``visualizer`` bus option.
    """

    def __init__(self, stream: Optional[TextIO] = None, is_tty: Optional[bool] = None) -> None:
        self._stream = stream
        self._is_tty = is_tty
        self.lines = 0

    def __call__(self, entry: Any, monitor_data: Any) -> None:
        stream = self._stream or sys.stdout
        console = _console(stream, self._is_tty)
        if isinstance(entry, LogEntry):
            text = Text("[{0}] ".format(entry.level), style=_LEVEL_STYLES.get(entry.level, ""))
            text.append(entry.message)
        elif isinstance(entry, dict) and entry.get("type") == "EVENT":
            event = str(entry.get("event", ""))
            counts: Dict[str, int] = getattr(monitor_data, "event_counts", {}) or {}
            text = Text("[EVENT] ", style="bold magenta")
            text.append(event)
            text.append(" ({0})".format(_format_args(entry.get("args"))), style="dim")
            text.append(" #{0}".format(counts.get(event, 0)))
        else:
            text = Text(str(entry))
        console.print(text)
        self.lines += 1
