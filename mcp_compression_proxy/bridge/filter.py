"""Glob-pattern matching for tool names.

Patterns are applied to the fully-qualified ``backend__tool`` name.
Only ``*`` is a wildcard (zero or more characters); every other character,
including ``?``, ``[`` and ``]``, is literal.  Matching is case-insensitive
and anchored at both ends.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Translate a ``*`` glob into a compiled case-insensitive regex."""
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(body, re.IGNORECASE | re.DOTALL)


def matches_pattern(candidate: str, patterns: Sequence[str]) -> bool:
    """Return True if *candidate* fully matches any of *patterns*.

    An empty pattern list never matches.
    """
    for pattern in patterns:
        if compile_pattern(pattern).fullmatch(candidate) is not None:
            return True
    return False


class PatternSet:
    """Ordered, de-duplicated list of glob patterns.

    Any single match wins; there is no precedence among patterns.
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None) -> None:
        self._patterns: List[str] = []
        self.extend(patterns or [])

    def extend(self, patterns: Iterable[str]) -> None:
        for pattern in patterns:
            if pattern and pattern not in self._patterns:
                self._patterns.append(pattern)

    def replace(self, patterns: Iterable[str]) -> None:
        """Swap the whole set, e.g. after a configuration load."""
        self._patterns = []
        self.extend(patterns)
        logger.debug("Pattern set replaced: %s", self._patterns)

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    @property
    def is_active(self) -> bool:
        """Return True if any patterns are configured."""
        return bool(self._patterns)

    def matches(self, candidate: str) -> bool:
        return matches_pattern(candidate, self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __repr__(self) -> str:
        return f"PatternSet({self._patterns!r})"
