"""Unit tests for allowlist matching (callguard/allowlist/matcher.py)."""

from __future__ import annotations

from callguard.allowlist import is_allowlisted, is_match_allowlisted
from callguard.config import Allowlist


# ─── Whole-call allowlist ─────────────────────────────────────────────────────


class TestIsAllowlisted:
    def test_tool_listed(self) -> None:
        allowlist = Allowlist(tools=("read",))
        assert is_allowlisted(allowlist, "read") is True
        assert is_allowlisted(allowlist, "exec") is False

    def test_session_listed(self) -> None:
        allowlist = Allowlist(sessions=("trusted-session",))
        assert is_allowlisted(allowlist, "exec", "trusted-session") is True
        assert is_allowlisted(allowlist, "exec", "other-session") is False

    def test_no_session_key(self) -> None:
        allowlist = Allowlist(sessions=("trusted-session",))
        assert is_allowlisted(allowlist, "exec") is False
        assert is_allowlisted(allowlist, "exec", None) is False

    def test_tool_name_is_exact(self) -> None:
        allowlist = Allowlist(tools=("read",))
        assert is_allowlisted(allowlist, "read_file") is False
        assert is_allowlisted(allowlist, "READ") is False

    def test_empty_allowlist(self) -> None:
        assert is_allowlisted(Allowlist(), "exec", "session") is False


# ─── Match-text allowlist ─────────────────────────────────────────────────────


class TestIsMatchAllowlisted:
    def test_pattern_searches_match_text(self) -> None:
        assert is_match_allowlisted("sk-test-value", ["sk-test-.*"]) is True
        assert is_match_allowlisted("prefix sk-test-value", ["sk-test-"]) is True

    def test_case_insensitive(self) -> None:
        assert is_match_allowlisted("SK-TEST-VALUE", ["sk-test-.*"]) is True

    def test_no_match(self) -> None:
        assert is_match_allowlisted("sk-live-value", ["sk-test-.*"]) is False

    def test_any_pattern_suffices(self) -> None:
        assert is_match_allowlisted("example-key", ["nomatch", "^example-"]) is True

    def test_invalid_pattern_never_matches(self) -> None:
        assert is_match_allowlisted("anything", ["(unclosed"]) is False
        assert is_match_allowlisted("anything", ["(unclosed", "any"]) is True

    def test_no_patterns(self) -> None:
        assert is_match_allowlisted("anything") is False
        assert is_match_allowlisted("anything", []) is False
