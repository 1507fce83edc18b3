"""Typer CLI entrypoints for pulsebus."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from pulsebus.config import BusOptions, load_options, options_from_toml_data, read_toml
from pulsebus.kernel.bus import EventBus
from pulsebus.kernel.errors import EventBusError, PatternError, error_summary
from pulsebus.kernel.matcher import compile_pattern
from pulsebus.ui.render import (
    describe_match,
    render_deliveries,
    render_metrics,
    render_notice,
    render_timeline,
)

app = typer.Typer(
    no_args_is_help=True,
    help="pulsebus 事件总线工具 (Event bus tooling)",
)


def _fail(exc: BaseException, code: int = 2) -> None:
    typer.echo(render_notice("error", error_summary(exc)), err=True)
    raise typer.Exit(code=code)


def _normalize_format(output_format: str) -> str:
    normalized = output_format.strip().lower()
    if normalized not in {"json", "text"}:
        typer.echo(
            render_notice(
                "error",
                "不支持的格式：{0}".format(output_format),
                "Unsupported format: {0}".format(output_format),
            ),
            err=True,
        )
        raise typer.Exit(code=2)
    return normalized


def _resolve_options(config_path: Optional[Path]) -> BusOptions:
    if config_path is None:
        return BusOptions()
    return load_options(config_path)


def _table_list(data: Dict[str, object], key: str) -> List[Dict[str, Any]]:
    items = data.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class _Recorder:
    """Builds scenario handlers that append one row per delivery."""

    def __init__(self) -> None:
        self.deliveries: List[Dict[str, Any]] = []
        self.emit_index = 0
        self.current_event = ""

    def handler(self, label: str, fail: bool):
        def record(*args: Any) -> None:
            self.deliveries.append(
                {
                    "emit": self.emit_index,
                    "event": self.current_event,
                    "label": label,
                    "args": list(args),
                    "failed": fail,
                }
            )
            if fail:
                raise RuntimeError("scenario handler {0} failed".format(label))

        return record


def run_scenario(data: Dict[str, object], base: Optional[BusOptions] = None) -> Dict[str, Any]:
    """Run a replay scenario on a fresh bus and collect what happened."""
    options = options_from_toml_data(data, base)
    bus = EventBus(options, log_stream=sys.stderr)
    recorder = _Recorder()

    for index, item in enumerate(_table_list(data, "subscribe"), start=1):
        event = item.get("event")
        label = str(item.get("label") or "{0}#{1}".format(event, index))
        handler = recorder.handler(label, bool(item.get("fail", False)))
        if item.get("once"):
            bus.once(event, handler, item.get("priority"))  # type: ignore[arg-type]
        else:
            bus.on(event, handler, item.get("priority"))  # type: ignore[arg-type]

    bus.debug.start_monitoring()
    for item in _table_list(data, "emit"):
        event = item.get("event")
        args = item.get("args")
        if not isinstance(args, list):
            args = [] if args is None else [args]
        recorder.emit_index += 1
        recorder.current_event = str(event)
        bus.emit(event, *args)  # type: ignore[arg-type]
    snapshot = bus.debug.stop_monitoring()

    return {
        "deliveries": recorder.deliveries,
        "monitor": snapshot.as_dict(),
        "metrics": bus.get_metrics(),
    }


@app.command("match")
def match_cmd(
    pattern: str = typer.Argument(..., help="通配模式 (Wildcard pattern)"),
    event: str = typer.Argument(..., help="事件名 (Event name)"),
    max_wildcards: int = typer.Option(5, "--max-wildcards", help="通配符上限 (Wildcard limit)"),
) -> None:
    try:
        compiled = compile_pattern(pattern, max_wildcards)
    except PatternError as exc:
        _fail(exc)
        return

    matched = compiled.matches(event)
    typer.echo(describe_match(pattern, event, matched, list(compiled.captures(event))))
    if not matched:
        raise typer.Exit(code=1)


@app.command("replay")
def replay_cmd(
    scenario: Path = typer.Argument(..., help="场景 TOML 文件 (Scenario TOML file)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="选项 TOML 文件 (Options TOML file)"),
    output_format: str = typer.Option(
        "text",
        "--format",
        help="输出格式：text|json (Output format)",
    ),
) -> None:
    normalized_format = _normalize_format(output_format)
    try:
        base = _resolve_options(config_path)
        report = run_scenario(read_toml(scenario), base)
    except EventBusError as exc:
        _fail(exc)
        return

    if normalized_format == "json":
        typer.echo(json.dumps(report, ensure_ascii=True, indent=2, default=str))
        return

    stream = sys.stdout
    render_deliveries(report["deliveries"], stream)
    render_timeline(report["monitor"]["timeline"], stream)
    render_metrics(report["metrics"], stream)


@app.command("config")
def config_cmd(
    config_path: Optional[Path] = typer.Option(None, "--config", help="选项 TOML 文件 (Options TOML file)"),
) -> None:
    try:
        options = _resolve_options(config_path)
    except EventBusError as exc:
        _fail(exc)
        return
    typer.echo(json.dumps(options.as_dict(), ensure_ascii=True, indent=2, sort_keys=True))


if __name__ == "__main__":
    app()
