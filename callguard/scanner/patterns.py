"""Active rule-set assembly and raw match enumeration.

``build_patterns()`` is called on every decision so the rule set always
reflects the config it is given. Built-in rules are module-level constants
(see definitions.py); only user-supplied custom and allowlist patterns are
compiled here, through an LRU cache keyed on the pattern source.

IMPORT RULES: import re2 ONLY. Never import re (stdlib).
"""

from __future__ import annotations

import dataclasses
import functools
from typing import TYPE_CHECKING, Any, Optional

import re2

from callguard.models.detection import MatchCategory, PatternRule, SecretMatch, Severity
from callguard.scanner.definitions import (
    API_KEY_PATTERNS,
    CLOUD_CREDENTIAL_PATTERNS,
    PII_CREDIT_CARD,
    PII_EMAIL,
    PII_PHONE,
    PII_SSN,
    PII_SSN_NO_DASHES,
    PRIVATE_KEY_PATTERNS,
    TOKEN_PATTERNS,
)
from callguard.scanner.validators import is_valid_phone

if TYPE_CHECKING:
    from callguard.config import GuardConfig

_CUSTOM_PATTERN_CACHE_SIZE = 256


@functools.lru_cache(maxsize=_CUSTOM_PATTERN_CACHE_SIZE)
def compile_user_pattern(source: str) -> Optional[Any]:
    """Compile a user-supplied pattern case-insensitively.

    Returns None when RE2 rejects the source (invalid syntax, or a construct
    RE2 does not support such as a backreference or lookahead).

    NEVER raises.
    """
    try:
        return re2.compile("(?i)" + source)
    except re2.error:
        return None
    except Exception:  # noqa: BLE001
        return None


def build_patterns(config: "GuardConfig") -> list[PatternRule]:
    """Assemble the active rule set for ``config``.

    Order: API keys → cloud credentials → tokens → private keys → PII →
    custom. Disabled categories contribute nothing. Custom patterns that do
    not compile are skipped.
    """
    rules: list[PatternRule] = []

    secrets = config.secrets
    if secrets.enabled:
        if secrets.categories.api_keys:
            rules.extend(API_KEY_PATTERNS)
        if secrets.categories.cloud_credentials:
            rules.extend(CLOUD_CREDENTIAL_PATTERNS)
        if secrets.categories.tokens:
            rules.extend(TOKEN_PATTERNS)
        if secrets.categories.private_keys:
            rules.extend(PRIVATE_KEY_PATTERNS)

    pii = config.pii
    if pii.enabled:
        if pii.categories.ssn:
            rules.append(PII_SSN)
            rules.append(PII_SSN_NO_DASHES)
        if pii.categories.credit_card:
            rules.append(PII_CREDIT_CARD)
        if pii.categories.phone:
            rules.append(_phone_rule(pii.phone_region))
        if pii.categories.email:
            rules.append(PII_EMAIL)

    for custom in config.custom_patterns:
        compiled = compile_user_pattern(custom.pattern)
        if compiled is None:
            continue
        rules.append(
            PatternRule(
                type=custom.type,
                pattern=compiled,
                severity=custom.severity or Severity.HIGH,
                category=MatchCategory.CUSTOM,
            )
        )

    return rules


@functools.lru_cache(maxsize=16)
def _phone_rule(region: str) -> PatternRule:
    if region == "US":
        return PII_PHONE
    return dataclasses.replace(
        PII_PHONE, validator=functools.partial(is_valid_phone, default_region=region)
    )


def _iter_accepted(text: str, rule: PatternRule):
    for m in rule.pattern.finditer(text):
        start, end = m.span()
        if end == start:
            continue
        if rule.accepts(m.group(0)):
            yield SecretMatch(
                type=rule.type,
                start=start,
                length=end - start,
                severity=rule.severity,
                category=rule.category,
            )


def detect_all(text: str, rules: list[PatternRule]) -> list[SecretMatch]:
    """Return every validator-passing match of every rule.

    Matches are grouped by rule in registration order, and by position
    within a rule. They are NOT sorted by position overall. A candidate
    rejected by its validator does not stop the scan of that rule.
    Zero-length matches are ignored.
    """
    matches: list[SecretMatch] = []
    for rule in rules:
        matches.extend(_iter_accepted(text, rule))
    return matches


def detect_first(text: str, rules: list[PatternRule]) -> Optional[SecretMatch]:
    """Return the first validator-passing match in rule-registration order."""
    for rule in rules:
        for match in _iter_accepted(text, rule):
            return match
    return None
