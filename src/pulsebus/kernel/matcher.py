"""Wildcard pattern compilation.

A pattern such as ``user.*.updated`` becomes an anchored regular expression
in which every ``*`` captures one or more characters other than the field
separator. The literal text before the first marker is kept as a cheap
pre-filter for the match cache.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Tuple

from pulsebus.kernel.errors import PatternError
from pulsebus.kernel.types import SEPARATOR, WILDCARD

_SEGMENT = "([^{0}]+)".format(re.escape(SEPARATOR))


def count_wildcards(pattern: str) -> int:
    return pattern.count(WILDCARD)


def literal_prefix(pattern: str) -> str:
    return pattern.split(WILDCARD, 1)[0]


def wildcard_to_regex(pattern: str) -> Pattern[str]:
    parts = [re.escape(part) for part in pattern.split(WILDCARD)]
    return re.compile(_SEGMENT.join(parts))


@dataclass(frozen=True)
class CompiledPattern:
    pattern: str
    regex: Pattern[str]
    prefix: str
    wildcard_count: int

    def matches(self, event: str) -> bool:
        return self.regex.fullmatch(event) is not None

    def captures(self, event: str) -> Tuple[str, ...]:
        found = self.regex.fullmatch(event)
        if found is None:
            return ()
        return found.groups()

    def may_match(self, event: str) -> bool:
        # Patterns starting with a marker have an empty prefix and cannot be rejected early.
        return not self.prefix or event.startswith(self.prefix)


def compile_pattern(pattern: str, max_wildcards: int) -> CompiledPattern:
    wildcards = count_wildcards(pattern)
    if wildcards > max_wildcards:
        raise PatternError(
            "wildcard pattern {0!r} has {1} markers, more than the limit of {2}".format(
                pattern,
                wildcards,
                max_wildcards,
            ),
            pattern=pattern,
            wildcards=wildcards,
            limit=max_wildcards,
        )
    return CompiledPattern(
        pattern=pattern,
        regex=wildcard_to_regex(pattern),
        prefix=literal_prefix(pattern),
        wildcard_count=wildcards,
    )


class MatcherCache:
    """Keeps at most one compiled matcher per pattern string."""

    def __init__(self) -> None:
        self._compiled: Dict[str, CompiledPattern] = {}

    def get_or_compile(self, pattern: str, max_wildcards: int) -> CompiledPattern:
        # The marker budget is enforced even for patterns compiled under an older limit.
        wildcards = count_wildcards(pattern)
        if wildcards > max_wildcards:
            return compile_pattern(pattern, max_wildcards)
        compiled = self._compiled.get(pattern)
        if compiled is None:
            compiled = compile_pattern(pattern, max_wildcards)
            self._compiled[pattern] = compiled
        return compiled

    def get(self, pattern: str) -> Optional[CompiledPattern]:
        return self._compiled.get(pattern)

    def discard(self, pattern: str) -> None:
        self._compiled.pop(pattern, None)

    def clear(self) -> None:
        self._compiled.clear()

    def __len__(self) -> int:
        return len(self._compiled)
