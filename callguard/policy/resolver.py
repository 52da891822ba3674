"""Tool-call decision: destructive check, secret/PII scan, confirm handshake.

evaluate_tool_call() is the before-tool-call hook. Order of evaluation:

  1. allowlisted tool or session  → proceed, params untouched
  2. destructive-command check    → block / confirm / agent-confirm end the
                                    decision; warn, log and redact fall through
  3. secret/PII scan of the params → block / redact / confirm / agent-confirm
                                    end the decision; warn and log fall through
  4. proceed (confirm flag stripped if present)

Confirm handshake (agent-confirm, and confirm on non-interactive tools):
round 1, flag absent → BLOCKED_PENDING_CONFIRM with resubmit instructions;
round 2, flag ``_callguard_confirm: true`` present → flag stripped and the
call proceeds (redacted first when the detection was a secret/PII).

INVARIANT: NEVER raises. An unexpected internal error is logged and the call
proceeds unmodified (fail open).
"""

from __future__ import annotations

import json
from typing import Any, Optional

from callguard.allowlist.matcher import is_allowlisted
from callguard.config import GuardConfig, get_action_for_severity
from callguard.constants import (
    APPROVAL_METADATA_KEY,
    CONFIRM_FLAG,
    CONFIRMED_MARKER,
    INTERACTIVE_TOOLS,
    PRODUCT_NAME,
)
from callguard.destructive.detector import detect_destructive
from callguard.models.detection import DestructiveMatch, MatchResult, SeverityAction
from callguard.models.verdict import DecisionState, Verdict
from callguard.scanner.matcher import detect_secret
from callguard.scanner.redactor import redact_params
from callguard.utils.logger import clear_decision_id, get_logger, set_decision_id
from callguard.utils.ulid import generate_ulid

logger = get_logger(__name__)

_CONFIRM_ACTIONS = (SeverityAction.CONFIRM, SeverityAction.AGENT_CONFIRM)


def has_confirm_flag(params: Any) -> bool:
    """True only when the confirmation flag is the boolean True."""
    return isinstance(params, dict) and params.get(CONFIRM_FLAG) is True


def strip_confirm_flag(params: Any) -> dict[str, Any]:
    if not isinstance(params, dict):
        return {}
    return {key: value for key, value in params.items() if key != CONFIRM_FLAG}


def _serialize_params(params: Any) -> str:
    return json.dumps(params, ensure_ascii=False, default=str)


def evaluate_tool_call(
    tool_name: str,
    params: Optional[dict[str, Any]],
    config: GuardConfig,
    session_key: Optional[str] = None,
) -> Verdict:
    """Decide whether a tool call may proceed.

    Args:
        tool_name:   Name of the tool being invoked (``exec``, ``write`` ...).
        params:      The call's parameter mapping. Not modified.
        config:      Loaded configuration.
        session_key: Host session identifier, for the session allowlist.

    Returns:
        Verdict. ``Verdict.to_hook_result()`` gives the host-facing shape.
    """
    decision_id = generate_ulid()
    set_decision_id(decision_id)
    try:
        return _evaluate(tool_name, params if params is not None else {}, config, session_key, decision_id)
    except Exception:  # noqa: BLE001
        logger.error("Tool-call evaluation failed, allowing call unmodified", tool=tool_name, exc_info=True)
        return Verdict(state=DecisionState.ALLOWED, decision_id=decision_id)
    finally:
        clear_decision_id()


def _evaluate(
    tool_name: str,
    params: dict[str, Any],
    config: GuardConfig,
    session_key: Optional[str],
    decision_id: str,
) -> Verdict:
    if is_allowlisted(config.allowlist, tool_name, session_key):
        logger.debug("Tool call allowlisted", tool=tool_name)
        return Verdict(state=DecisionState.ALLOWED, decision_id=decision_id)

    confirmed = has_confirm_flag(params)

    # ── Destructive commands ─────────────────────────────────────────────────
    if config.destructive.enabled:
        match = detect_destructive(tool_name, params)
        if match is not None and config.destructive.categories.is_enabled(match.category):
            action = get_action_for_severity(match.severity, config.destructive)
            verdict = _resolve_destructive(tool_name, params, config, match, action, confirmed, decision_id)
            if verdict is not None:
                return verdict

    # ── Secrets / PII ────────────────────────────────────────────────────────
    if config.filter_inputs:
        result = detect_secret(_serialize_params(params), config)
        if result is not None:
            verdict = _resolve_secret(tool_name, params, config, result, confirmed, decision_id)
            if verdict is not None:
                return verdict

    if confirmed:
        return Verdict(state=DecisionState.ALLOWED, decision_id=decision_id, params=strip_confirm_flag(params))
    return Verdict(state=DecisionState.ALLOWED, decision_id=decision_id)


def _resolve_destructive(
    tool_name: str,
    params: dict[str, Any],
    config: GuardConfig,
    match: DestructiveMatch,
    action: SeverityAction,
    confirmed: bool,
    decision_id: str,
) -> Optional[Verdict]:
    """Verdict for a destructive match, or None to continue with the secret scan."""
    if action is not SeverityAction.LOG and config.logging.log_detections:
        logger.warning(
            "destructive_command_detected",
            tool=tool_name,
            category=match.category.value,
            severity=match.severity.value,
            action=action.value,
            reason=match.reason,
        )

    if action is SeverityAction.BLOCK:
        return Verdict(
            state=DecisionState.BLOCKED,
            decision_id=decision_id,
            reason=f"Blocked by {PRODUCT_NAME}: {match.reason}",
            detection=match,
        )

    if action is SeverityAction.CONFIRM and tool_name in INTERACTIVE_TOOLS:
        annotated = dict(strip_confirm_flag(params))
        annotated["ask"] = "always"
        annotated[APPROVAL_METADATA_KEY] = {
            "reason": match.reason,
            "severity": match.severity.value,
            "category": match.category.value,
        }
        return Verdict(state=DecisionState.ALLOWED, decision_id=decision_id, params=annotated, detection=match)

    if action in _CONFIRM_ACTIONS:
        if confirmed:
            if config.logging.log_detections:
                logger.info("Agent confirmed destructive action", tool=tool_name, reason=match.reason)
            return Verdict(
                state=DecisionState.ALLOWED,
                decision_id=decision_id,
                params=strip_confirm_flag(params),
                detection=match,
            )
        return Verdict(
            state=DecisionState.BLOCKED_PENDING_CONFIRM,
            decision_id=decision_id,
            reason=(
                f"{PRODUCT_NAME}: {match.reason}. "
                f"To proceed, re-run with `{CONFIRM_FLAG}: true` in params."
            ),
            detection=match,
        )

    # Remaining actions only record; the secret scan still runs
    return None


def _resolve_secret(
    tool_name: str,
    params: dict[str, Any],
    config: GuardConfig,
    result: MatchResult,
    confirmed: bool,
    decision_id: str,
) -> Optional[Verdict]:
    """Verdict for a secret/PII match, or None to let the call proceed."""
    match, action = result.match, result.action

    if action is not SeverityAction.LOG and config.logging.log_detections:
        logger.warning(
            "secret_detected",
            tool=tool_name,
            type=match.type,
            severity=match.severity.value,
            category=match.category.value,
            action=action.value,
        )

    if action is SeverityAction.BLOCK:
        return Verdict(
            state=DecisionState.BLOCKED,
            decision_id=decision_id,
            reason=f"Blocked by {PRODUCT_NAME}: {match.type} detected in tool parameters",
            detection=result,
        )

    if action is SeverityAction.REDACT:
        return Verdict(
            state=DecisionState.REDACTED_ALLOWED,
            decision_id=decision_id,
            params=redact_params(strip_confirm_flag(params), config),
            detection=result,
        )

    if action is SeverityAction.CONFIRM and tool_name in INTERACTIVE_TOOLS:
        annotated = redact_params(strip_confirm_flag(params), config)
        annotated["ask"] = "always"
        annotated[APPROVAL_METADATA_KEY] = {
            "reason": f"{match.type} detected in tool parameters",
            "severity": match.severity.value,
            "category": match.category.value,
        }
        return Verdict(state=DecisionState.REDACTED_ALLOWED, decision_id=decision_id, params=annotated, detection=result)

    if action in _CONFIRM_ACTIONS:
        if confirmed:
            if config.logging.log_detections:
                logger.info("Agent confirmed sending detected value, proceeding with redaction", type=match.type)
            redacted = redact_params(strip_confirm_flag(params), config)
            redacted[CONFIRMED_MARKER] = match.type
            return Verdict(
                state=DecisionState.REDACTED_ALLOWED,
                decision_id=decision_id,
                params=redacted,
                detection=result,
            )
        return Verdict(
            state=DecisionState.BLOCKED_PENDING_CONFIRM,
            decision_id=decision_id,
            reason=(
                f"{PRODUCT_NAME}: {match.type} detected. To proceed (with redaction), "
                f"re-run with `{CONFIRM_FLAG}: true` in params."
            ),
            detection=result,
        )

    return None
