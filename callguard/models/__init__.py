"""CallGuard models package.

Defines the shared data contracts used by the scanner, the destructive-command
detector and the policy layer:

  - detection.py: Severity, SeverityAction, MatchCategory, DestructiveCategory,
                   PatternRule, SecretMatch, MatchResult, DestructiveMatch
  - verdict.py  : DecisionState and Verdict (hook decision contract)
"""

from callguard.models.detection import (
    DestructiveCategory,
    DestructiveMatch,
    MatchCategory,
    MatchResult,
    PatternRule,
    SecretMatch,
    Severity,
    SeverityAction,
)
from callguard.models.verdict import DecisionState, Verdict

__all__ = [
    "DecisionState",
    "DestructiveCategory",
    "DestructiveMatch",
    "MatchCategory",
    "MatchResult",
    "PatternRule",
    "SecretMatch",
    "Severity",
    "SeverityAction",
    "Verdict",
]
