"""Unit tests for the tool-call decision (callguard/policy/resolver.py).

Covers the four terminal states, the two-round confirmation handshake, the
interactive-tool approval annotation, allowlist bypass and fail-open.
"""

from __future__ import annotations

import pytest

from callguard.config import GuardConfig
from callguard.models.detection import DestructiveCategory, DestructiveMatch, MatchResult
from callguard.models.verdict import DecisionState
from callguard.policy.resolver import evaluate_tool_call, has_confirm_flag, strip_confirm_flag
from callguard.utils.logger import decision_id_var

OPENAI_STYLE_KEY = "sk-" + "abcdefghijklmnop"
STRIPE_LIVE_KEY = "sk_live_" + "a1b2c3d4e5f6g7h8i9j0k1l2"


# ─── Confirm flag helpers ─────────────────────────────────────────────────────


class TestConfirmFlag:
    def test_only_boolean_true_counts(self) -> None:
        assert has_confirm_flag({"_callguard_confirm": True}) is True
        assert has_confirm_flag({"_callguard_confirm": "true"}) is False
        assert has_confirm_flag({"_callguard_confirm": 1}) is False
        assert has_confirm_flag({}) is False
        assert has_confirm_flag(None) is False

    def test_strip(self) -> None:
        params = {"command": "ls", "_callguard_confirm": True}
        assert strip_confirm_flag(params) == {"command": "ls"}
        assert params == {"command": "ls", "_callguard_confirm": True}
        assert strip_confirm_flag(None) == {}


# ─── Allowed ──────────────────────────────────────────────────────────────────


class TestAllowed:
    def test_clean_call_proceeds_unmodified(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("exec", {"command": "ls -la"}, default_config)
        assert verdict.state is DecisionState.ALLOWED
        assert verdict.params is None
        assert verdict.to_hook_result() == {}

    def test_none_params(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("read", None, default_config)
        assert verdict.state is DecisionState.ALLOWED

    def test_stray_confirm_flag_is_stripped(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("exec", {"command": "ls", "_callguard_confirm": True}, default_config)
        assert verdict.state is DecisionState.ALLOWED
        assert verdict.to_hook_result() == {"params": {"command": "ls"}}

    def test_decision_id(self, default_config: GuardConfig) -> None:
        first = evaluate_tool_call("exec", {"command": "ls"}, default_config)
        second = evaluate_tool_call("exec", {"command": "ls"}, default_config)
        assert len(first.decision_id) == 26
        assert first.decision_id != second.decision_id
        assert decision_id_var.get() is None


# ─── Allowlist ────────────────────────────────────────────────────────────────


class TestAllowlist:
    def test_allowlisted_tool_is_not_inspected(self) -> None:
        config = GuardConfig.from_dict({"allowlist": {"tools": ["exec"]}})
        verdict = evaluate_tool_call("exec", {"command": f"rm -rf / {OPENAI_STYLE_KEY}"}, config)
        assert verdict.state is DecisionState.ALLOWED
        assert verdict.to_hook_result() == {}

    def test_allowlisted_session(self) -> None:
        config = GuardConfig.from_dict({"allowlist": {"sessions": ["ops"]}})
        assert evaluate_tool_call("exec", {"command": "rm -rf /"}, config, session_key="ops").state is DecisionState.ALLOWED
        assert evaluate_tool_call("exec", {"command": "rm -rf /"}, config, session_key="dev").state is DecisionState.BLOCKED


# ─── Destructive commands ─────────────────────────────────────────────────────


class TestDestructive:
    def test_critical_is_blocked(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("exec", {"command": "rm -rf /tmp/x"}, default_config)
        assert verdict.state is DecisionState.BLOCKED
        assert verdict.reason == "Blocked by CallGuard: Recursive force deletion (rm -rf)"
        assert isinstance(verdict.detection, DestructiveMatch)
        assert verdict.to_hook_result() == {"block": True, "blockReason": verdict.reason}

    def test_confirm_on_interactive_tool_requests_approval(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("exec", {"command": "git checkout main"}, default_config)
        assert verdict.state is DecisionState.ALLOWED
        assert verdict.params == {
            "command": "git checkout main",
            "ask": "always",
            "_callguard": {
                "reason": "git checkout can lose uncommitted changes",
                "severity": "high",
                "category": "git_destructive",
            },
        }

    def test_confirm_handshake_on_other_tools(self, default_config: GuardConfig) -> None:
        params = {"command": "git checkout main"}

        first = evaluate_tool_call("shell", params, default_config)
        assert first.state is DecisionState.BLOCKED_PENDING_CONFIRM
        assert first.blocked is True
        assert "`_callguard_confirm: true`" in first.reason
        assert first.reason.startswith("CallGuard: git checkout can lose uncommitted changes.")

        second = evaluate_tool_call("shell", {**params, "_callguard_confirm": True}, default_config)
        assert second.state is DecisionState.ALLOWED
        assert second.params == params

    def test_non_boolean_flag_does_not_confirm(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("shell", {"command": "git checkout main", "_callguard_confirm": "yes"}, default_config)
        assert verdict.state is DecisionState.BLOCKED_PENDING_CONFIRM

    def test_agent_confirm_applies_to_interactive_tools_too(self) -> None:
        config = GuardConfig.from_dict({"destructive": {"severityActions": {"high": "agent-confirm"}}})
        verdict = evaluate_tool_call("exec", {"command": "git checkout main"}, config)
        assert verdict.state is DecisionState.BLOCKED_PENDING_CONFIRM

    def test_disabled_detection(self) -> None:
        config = GuardConfig.from_dict({"destructive": {"enabled": False}})
        assert evaluate_tool_call("exec", {"command": "rm -rf /tmp/x"}, config).state is DecisionState.ALLOWED

    def test_disabled_category(self) -> None:
        config = GuardConfig.from_dict({"destructive": {"categories": {"fileDelete": False}}})
        assert evaluate_tool_call("exec", {"command": "rm -rf /tmp/x"}, config).state is DecisionState.ALLOWED

    def test_warn_falls_through_to_secret_scan(self) -> None:
        config = GuardConfig.from_dict({"destructive": {"severityActions": {"critical": "warn"}}})
        verdict = evaluate_tool_call("exec", {"command": f"rm -rf /tmp/x {OPENAI_STYLE_KEY}"}, config)
        assert verdict.state is DecisionState.REDACTED_ALLOWED
        assert verdict.params == {"command": "rm -rf /tmp/x [REDACTED]"}

    def test_destructive_decided_before_secret_scan(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("exec", {"command": f"rm -rf /tmp/x {STRIPE_LIVE_KEY}"}, default_config)
        assert verdict.state is DecisionState.BLOCKED
        assert isinstance(verdict.detection, DestructiveMatch)
        assert verdict.detection.category is DestructiveCategory.FILE_DELETE


# ─── Secrets / PII ────────────────────────────────────────────────────────────


class TestSecrets:
    def test_high_secret_is_redacted(self, default_config: GuardConfig) -> None:
        params = {"path": "notes.txt", "content": f"key {OPENAI_STYLE_KEY}"}
        verdict = evaluate_tool_call("write", params, default_config)
        assert verdict.state is DecisionState.REDACTED_ALLOWED
        assert verdict.to_hook_result() == {"params": {"path": "notes.txt", "content": "key [REDACTED]"}}
        assert params["content"] == f"key {OPENAI_STYLE_KEY}"

    def test_critical_secret_is_blocked(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("write", {"content": STRIPE_LIVE_KEY}, default_config)
        assert verdict.state is DecisionState.BLOCKED
        assert verdict.reason == "Blocked by CallGuard: api_key_stripe_live detected in tool parameters"
        assert isinstance(verdict.detection, MatchResult)

    def test_filter_inputs_off(self) -> None:
        config = GuardConfig.from_dict({"filterInputs": False})
        verdict = evaluate_tool_call("write", {"content": STRIPE_LIVE_KEY}, config)
        assert verdict.state is DecisionState.ALLOWED

    def test_warn_proceeds_unmodified(self) -> None:
        config = GuardConfig.from_dict({"secrets": {"severityActions": {"high": "warn"}}})
        verdict = evaluate_tool_call("write", {"content": f"key {OPENAI_STYLE_KEY}"}, config)
        assert verdict.state is DecisionState.ALLOWED
        assert verdict.params is None

    def test_agent_confirm_handshake_redacts_on_second_round(self) -> None:
        config = GuardConfig.from_dict({"secrets": {"severityActions": {"high": "agent-confirm"}}})
        params = {"content": f"key {OPENAI_STYLE_KEY}"}

        first = evaluate_tool_call("write", params, config)
        assert first.state is DecisionState.BLOCKED_PENDING_CONFIRM
        assert first.reason.startswith("CallGuard: api_key_sk detected. To proceed (with redaction)")

        second = evaluate_tool_call("write", {**params, "_callguard_confirm": True}, config)
        assert second.state is DecisionState.REDACTED_ALLOWED
        assert second.params == {"content": "key [REDACTED]", "_callguard_confirmed": "api_key_sk"}

    def test_confirm_on_interactive_tool_redacts_and_requests_approval(self) -> None:
        config = GuardConfig.from_dict({"secrets": {"severityActions": {"high": "confirm"}}})
        verdict = evaluate_tool_call("exec", {"command": f"echo {OPENAI_STYLE_KEY}"}, config)
        assert verdict.state is DecisionState.REDACTED_ALLOWED
        assert verdict.params["command"] == "echo [REDACTED]"
        assert verdict.params["ask"] == "always"
        assert verdict.params["_callguard"]["severity"] == "high"

    def test_redact_strips_confirm_flag(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call(
            "write", {"content": f"key {OPENAI_STYLE_KEY}", "_callguard_confirm": True}, default_config
        )
        assert verdict.params == {"content": "key [REDACTED]"}

    def test_field_name_secret_is_removed_from_params(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("write", {"password": "hunter2longvalue"}, default_config)
        assert verdict.state is DecisionState.REDACTED_ALLOWED
        assert verdict.detection.match.type == "json_token_field"
        assert verdict.params == {"password": "[REDACTED]"}
        assert "hunter2longvalue" not in repr(verdict.params)

    def test_field_name_secret_removed_after_agent_confirm(self) -> None:
        config = GuardConfig.from_dict({"secrets": {"severityActions": {"high": "agent-confirm"}}})
        params = {"password": "hunter2longvalue", "_callguard_confirm": True}
        verdict = evaluate_tool_call("write", params, config)
        assert verdict.state is DecisionState.REDACTED_ALLOWED
        assert verdict.params == {"password": "[REDACTED]", "_callguard_confirmed": "json_token_field"}

    def test_pii_is_redacted(self, default_config: GuardConfig) -> None:
        verdict = evaluate_tool_call("write", {"content": "ssn 123-45-6789"}, default_config)
        assert verdict.state is DecisionState.REDACTED_ALLOWED
        assert verdict.params == {"content": "ssn [REDACTED]"}


# ─── Fail open ────────────────────────────────────────────────────────────────


def test_internal_error_fails_open(monkeypatch: pytest.MonkeyPatch, default_config: GuardConfig) -> None:
    def explode(*args, **kwargs):
        raise RuntimeError("detector fault")

    monkeypatch.setattr("callguard.policy.resolver.detect_destructive", explode)
    verdict = evaluate_tool_call("exec", {"command": "rm -rf /"}, default_config)
    assert verdict.state is DecisionState.ALLOWED
    assert verdict.to_hook_result() == {}
    assert decision_id_var.get() is None
