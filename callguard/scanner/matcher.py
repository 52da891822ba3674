"""Secret/PII selection and action resolution.

detect_secret() is the single entry point the policy layer uses for text:
it builds the active rule set, enumerates matches, drops allowlisted ones,
keeps the most severe, and resolves its action.

Selection rules:
  - severity strictly decides the winner; on a tie the earlier-registered
    rule's match is kept.
  - an allowlisted match is excluded entirely, it never becomes the winner.
  - a custom pattern with an explicit ``action`` bypasses severity
    resolution for its own matches only.
"""

from __future__ import annotations

from typing import Optional

from callguard.allowlist.matcher import is_match_allowlisted
from callguard.config import GuardConfig, get_action_for_severity
from callguard.models.detection import MatchResult, SecretMatch, SeverityAction
from callguard.scanner.patterns import build_patterns, detect_all


def select_worst(text: str, matches: list[SecretMatch], allowlist_patterns=()) -> Optional[SecretMatch]:
    """Return the most severe non-allowlisted match, or None."""
    worst: Optional[SecretMatch] = None
    for match in matches:
        if is_match_allowlisted(match.text_in(text), allowlist_patterns):
            continue
        if worst is None or match.severity.outranks(worst.severity):
            worst = match
    return worst


def detect_secret(text: str, config: GuardConfig) -> Optional[MatchResult]:
    """Detect the worst secret/PII match in ``text`` and resolve its action.

    Returns:
        MatchResult(match, action), or None when nothing non-allowlisted matched.
    """
    if not text:
        return None

    worst = select_worst(text, detect_all(text, build_patterns(config)), config.allowlist.patterns)
    if worst is None:
        return None

    custom = config.custom_pattern_for(worst.type)
    if custom is not None and custom.action is not None:
        return MatchResult(match=worst, action=custom.action)

    section = config.category_config(worst.category)
    return MatchResult(match=worst, action=get_action_for_severity(worst.severity, section))


def has_secret(text: str, config: GuardConfig) -> bool:
    return detect_secret(text, config) is not None


def get_action_for_first_match(text: str, config: GuardConfig) -> Optional[SeverityAction]:
    """Action of the worst match in ``text`` (despite the name, not the first)."""
    result = detect_secret(text, config)
    return result.action if result is not None else None
