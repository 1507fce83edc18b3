"""Emit pipeline: snapshot, dispatch in priority order, isolate handler failures."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from pulsebus.kernel.debug_log import BusLogger, LogLevel
from pulsebus.kernel.debugger import BusDebugger
from pulsebus.kernel.match_cache import MatchCache
from pulsebus.kernel.metrics import BusMetrics
from pulsebus.kernel.registry import Registry
from pulsebus.kernel.types import HandlerRecord

if TYPE_CHECKING:
    from pulsebus.config import BusOptions

OptionsProvider = Callable[[], "BusOptions"]

# (pattern, captured segments, handler snapshot)
WildcardDispatch = Tuple[str, Tuple[str, ...], Tuple[HandlerRecord, ...]]


class Dispatcher:
    """Runs one synchronous pass over every handler interested in an event.

    All handler lists are copied before the first handler runs, so
    subscriptions added or removed by a handler only take effect on the
    next emission.
    """

    def __init__(
        self,
        *,
        registry: Registry,
        match_cache: MatchCache,
        metrics: BusMetrics,
        logger: BusLogger,
        debugger: BusDebugger,
        options: OptionsProvider,
    ) -> None:
        self._registry = registry
        self._match_cache = match_cache
        self._metrics = metrics
        self._logger = logger
        self._debugger = debugger
        self._options = options

    def emit(self, event: object, args: Tuple[Any, ...]) -> None:
        if not isinstance(event, str):
            return

        options = self._options()
        self._metrics.emit_count += 1
        if self._metrics.emit_count % options.cache_sweep_interval == 0:
            self._match_cache.sweep()

        if self._logger.enabled_for(LogLevel.DEBUG):
            self._logger.debug(
                "emit {0!r}".format(event),
                {
                    "args": list(args),
                    "since_last_emit_ms": self._debugger.elapsed_since_last_emit(),
                },
            )

        self._debugger.record_emit(event, args)
        self._debugger.check_breakpoint(event, args)

        exact = self._registry.snapshot(event)
        wildcard = self._wildcard_snapshot(event)

        invoked = 0
        exact_args = (event,) + args if options.unify_params else args
        for record in exact:
            self._invoke(record, event, exact_args)
            invoked += 1

        if wildcard:
            self._metrics.wildcard_match_count += len(wildcard)
        for pattern, captures, handlers in wildcard:
            call_args = (event,) + captures + args
            for record in handlers:
                self._invoke(record, event, call_args, pattern=pattern)
                invoked += 1

        self._debugger.record_handlers(event, invoked)

    def _wildcard_snapshot(self, event: str) -> List[WildcardDispatch]:
        result: List[WildcardDispatch] = []
        for entry in self._match_cache.lookup(event):
            if not entry.handlers:
                continue
            result.append((entry.pattern, entry.matcher.captures(event), tuple(entry.handlers)))
        return result

    def _invoke(
        self,
        record: HandlerRecord,
        event: str,
        call_args: Tuple[Any, ...],
        pattern: Optional[str] = None,
    ) -> None:
        try:
            record.callback(*call_args)
        except Exception as exc:
            # A failing subscriber never stops its siblings or reaches the emitter.
            self._metrics.handler_error_count += 1
            self._logger.error(
                "handler {0} (priority {1}) failed for {2!r}: {3}".format(
                    record.id,
                    record.priority,
                    event,
                    exc,
                ),
                {
                    "event": event,
                    "pattern": pattern,
                    "handler_id": record.id,
                    "error": repr(exc),
                },
            )
