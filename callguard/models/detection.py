"""Detection data contracts.

Severity is a risk tier; SeverityAction is the policy outcome applied to a
detection. The two are independent: a critical match may be configured to
``warn`` and a low one to ``block``.

INVARIANT: PatternRule, SecretMatch, MatchResult and DestructiveMatch are
frozen. They are produced per scan and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional


class Severity(str, Enum):
    """Risk tier of a detection. Ordered ``critical > high > medium > low``."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def outranks(self, other: "Severity") -> bool:
        """True if this severity is strictly higher than ``other``."""
        return self.rank > other.rank


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class SeverityAction(str, Enum):
    """Policy outcome for a detection. Not ordered."""

    BLOCK = "block"
    REDACT = "redact"
    CONFIRM = "confirm"
    AGENT_CONFIRM = "agent-confirm"
    WARN = "warn"
    LOG = "log"


class MatchCategory(str, Enum):
    """Origin of a text-pattern rule."""

    SECRETS = "secrets"
    PII = "pii"
    CUSTOM = "custom"


class DestructiveCategory(str, Enum):
    """Semantic class of a destructive command."""

    FILE_DELETE = "file_delete"
    GIT_DESTRUCTIVE = "git_destructive"
    SQL_DESTRUCTIVE = "sql_destructive"
    SYSTEM_DESTRUCTIVE = "system_destructive"
    PROCESS_KILL = "process_kill"
    NETWORK_DESTRUCTIVE = "network_destructive"
    PRIVILEGE_ESCALATION = "privilege_escalation"


@dataclass(frozen=True)
class PatternRule:
    """One compiled detection rule.

    Attributes:
        type:      Stable identifier, e.g. ``"api_key_ghp"`` or ``"custom_acme"``.
        pattern:   Compiled re2 pattern object.
        severity:  Default severity of a match.
        category:  Which config section resolves the match's action.
        validator: Optional predicate over the matched text; a False result
                   rejects the candidate.
    """

    type: str
    pattern: Any  # re2 compiled pattern (re2._Regexp, no public type)
    severity: Severity
    category: MatchCategory
    validator: Optional[Callable[[str], bool]] = None

    def accepts(self, text: str) -> bool:
        return self.validator is None or self.validator(text)


@dataclass(frozen=True)
class SecretMatch:
    """A located detection inside one text buffer."""

    type: str
    start: int
    length: int
    severity: Severity
    category: MatchCategory

    @property
    def end(self) -> int:
        return self.start + self.length

    def text_in(self, buffer: str) -> str:
        """Return the matched substring of ``buffer``."""
        return buffer[self.start:self.end]


@dataclass(frozen=True)
class MatchResult:
    """The worst non-allowlisted match of a scan and its resolved action."""

    match: SecretMatch
    action: SeverityAction


@dataclass(frozen=True)
class DestructiveMatch:
    """A destructive-command classification."""

    category: DestructiveCategory
    reason: str
    severity: Severity
    pattern: str
