"""
robots.txt path pattern matching.

Patterns are prefixes: `*` matches any sequence and a trailing `$`
anchors the end of the path. Everything else is literal.
"""

from __future__ import annotations

import re
from functools import lru_cache

import structlog

from crawlability.engines.base import RobotsRule

logger = structlog.get_logger(__name__)

MAX_PATTERN_LENGTH = 2048


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> re.Pattern[str]:
    anchored = pattern.endswith("$")
    body = pattern[:-1] if anchored else pattern
    body = re.sub(r"\*+", "*", body)
    regex = ".*".join(re.escape(part) for part in body.split("*"))
    if anchored:
        regex += r"\Z"
    return re.compile(regex, re.DOTALL)


def is_blocked(pattern: str, path: str) -> bool:
    """True when path falls under a Disallow-style pattern."""
    if not pattern:
        return False  # "Disallow:" with no value allows everything
    if pattern == "/":
        return True
    if len(pattern) > MAX_PATTERN_LENGTH:
        logger.debug("Ignoring oversized robots pattern", length=len(pattern))
        return False
    try:
        return _compile(pattern).match(path) is not None
    except (re.error, RecursionError) as e:
        logger.debug("Unusable robots pattern", pattern=pattern, error=str(e))
        return False


def find_blocking_rule(rules: RobotsRule, path: str) -> str | None:
    """
    Return the Disallow pattern that blocks path, or None.

    The longest matching pattern wins and Allow wins ties, which is how
    Google and Bing resolve conflicting rules.
    """
    if not path:
        path = "/"

    longest_disallow = max(
        (p for p in rules.disallow if is_blocked(p, path)),
        key=len,
        default=None,
    )
    if longest_disallow is None:
        return None

    longest_allow = max(
        (p for p in rules.allow if is_blocked(p, path)),
        key=len,
        default=None,
    )
    if longest_allow is not None and len(longest_allow) >= len(longest_disallow):
        return None
    return longest_disallow
