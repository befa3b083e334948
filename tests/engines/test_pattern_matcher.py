"""
Tests for robots.txt pattern matching and rule precedence.
"""

import pytest

from crawlability.engines.base import RobotsRule
from crawlability.engines.robots.matcher import find_blocking_rule, is_blocked


class TestIsBlocked:

    @pytest.mark.parametrize("path", ["/", "/a", "/deep/path/file.html", "/?q=1"])
    def test_root_blocks_everything(self, path):
        assert is_blocked("/", path)

    def test_empty_pattern_blocks_nothing(self):
        assert not is_blocked("", "/anything")

    def test_prefix_match(self):
        assert is_blocked("/private", "/private")
        assert is_blocked("/private", "/private/page")
        assert is_blocked("/private", "/private-notes")
        assert not is_blocked("/private", "/public/private")

    def test_wildcard(self):
        assert is_blocked("/*.pdf", "/docs/report.pdf")
        assert is_blocked("/shop/*/cart", "/shop/eu/cart/checkout")
        assert not is_blocked("/*.pdf", "/docs/report.html")

    def test_end_anchor(self):
        assert is_blocked("/x$", "/x")
        assert not is_blocked("/x$", "/x/")
        assert not is_blocked("/x$", "/xy")

    def test_wildcard_with_anchor(self):
        assert is_blocked("/*.php$", "/index.php")
        assert not is_blocked("/*.php$", "/index.php?session=1")

    def test_regex_metacharacters_are_literal(self):
        assert is_blocked("/a+b(c)", "/a+b(c)/d")
        assert not is_blocked("/a+b(c)", "/aab")
        assert is_blocked("/search?q=", "/search?q=shoes")

    def test_repeated_stars_collapse(self):
        assert is_blocked("/a" + "*" * 500 + "z", "/a-to-z")

    def test_oversized_pattern_ignored(self):
        assert not is_blocked("/" + "a" * 5000, "/" + "a" * 5000)

    def test_deterministic(self):
        results = {is_blocked("/*/x$", "/y/x") for _ in range(5)}
        assert results == {True}


class TestFindBlockingRule:

    def test_returns_longest_disallow(self):
        rules = RobotsRule(user_agent="*", disallow=["/a", "/a/b"])
        assert find_blocking_rule(rules, "/a/b/c") == "/a/b"

    def test_no_match_returns_none(self):
        rules = RobotsRule(user_agent="*", disallow=["/private"])
        assert find_blocking_rule(rules, "/public") is None

    def test_longer_allow_wins(self):
        rules = RobotsRule(user_agent="*", disallow=["/private"], allow=["/private/open"])
        assert find_blocking_rule(rules, "/private/open/page") is None
        assert find_blocking_rule(rules, "/private/closed") == "/private"

    def test_allow_wins_tie(self):
        rules = RobotsRule(user_agent="*", disallow=["/page"], allow=["/page"])
        assert find_blocking_rule(rules, "/page") is None

    def test_shorter_allow_loses(self):
        rules = RobotsRule(user_agent="*", disallow=["/shop/cart"], allow=["/shop"])
        assert find_blocking_rule(rules, "/shop/cart") == "/shop/cart"

    def test_empty_disallow_allows_all(self):
        rules = RobotsRule(user_agent="*", disallow=[""])
        assert find_blocking_rule(rules, "/anything") is None
