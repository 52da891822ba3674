"""Hook decision contract.

A Verdict is what ``evaluate_tool_call()`` returns to the host. The host only
understands two shapes, "proceed with (possibly modified) params" and "block
with reason", which ``Verdict.to_hook_result()`` renders:

  - ``{"block": True, "blockReason": "..."}`` : call refused
  - ``{"params": {...}}``                     : call proceeds with new params
  - ``{}``                                    : call proceeds unmodified
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from callguard.models.detection import DestructiveMatch, MatchResult


class DecisionState(str, Enum):
    """Terminal states of one tool-call decision."""

    ALLOWED = "allowed"
    BLOCKED = "blocked"
    BLOCKED_PENDING_CONFIRM = "blocked_pending_confirm"
    REDACTED_ALLOWED = "redacted_allowed"


@dataclass(frozen=True)
class Verdict:
    """Outcome of one tool-call decision.

    Attributes:
        state:       Terminal decision state.
        decision_id: ULID correlating this decision with its log events.
        params:      Replacement params when the call proceeds modified; None
                     when it proceeds unmodified or is blocked.
        reason:      Human-readable block reason (blocked states only).
        detection:   The destructive match or secret/PII result that drove
                     the decision, if any.
    """

    state: DecisionState
    decision_id: str
    params: Optional[dict[str, Any]] = None
    reason: Optional[str] = None
    detection: Optional[Union[DestructiveMatch, MatchResult]] = None

    @property
    def blocked(self) -> bool:
        return self.state in (DecisionState.BLOCKED, DecisionState.BLOCKED_PENDING_CONFIRM)

    def to_hook_result(self) -> dict[str, Any]:
        if self.blocked:
            return {"block": True, "blockReason": self.reason}
        if self.params is not None:
            return {"params": self.params}
        return {}
