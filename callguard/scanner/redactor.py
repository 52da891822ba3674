"""Redaction transform for secret and PII matches.

redact_text() walks the active rule set in registration order, each rule
over the output of the previous one. For every accepted match:

  - a private-key block keeps its first and last line, the interior becomes
    ``…redacted…`` (``***`` if the block has fewer than two lines);
  - otherwise the last participating, non-empty capture group is replaced
    by ``[REDACTED]`` and the surrounding match text (``API_KEY=``,
    ``Bearer ``) is kept; a match with no such group is replaced whole.

Candidates rejected by the rule's validator are left untouched, the same
way the matcher ignores them.

Output is a fixed point: redacting already-redacted text changes nothing.

IMPORT RULES: import re2 ONLY. Never import re (stdlib).
"""

from __future__ import annotations

import json
from typing import Any

import re2

from callguard.config import GuardConfig
from callguard.constants import PEM_ELLIPSIS, PEM_SHORT_MASK, PRIVATE_KEY_MARKER, REDACTED_PLACEHOLDER
from callguard.models.detection import PatternRule
from callguard.scanner.patterns import build_patterns

_LINE_BREAK = re2.compile(r"\r?\n")


def _redact_pem_block(block: str) -> str:
    lines = [line for line in _LINE_BREAK.split(block) if line]
    if len(lines) < 2:
        return PEM_SHORT_MASK
    return f"{lines[0]}\n{PEM_ELLIPSIS}\n{lines[-1]}"


def _redact_match(m: Any) -> str:
    whole = m.group(0)
    if PRIVATE_KEY_MARKER in whole:
        return _redact_pem_block(whole)

    for index in range(len(m.groups()), 0, -1):
        value = m.group(index)
        if not value:
            continue
        offset = m.start()
        start, end = m.start(index) - offset, m.end(index) - offset
        return whole[:start] + REDACTED_PLACEHOLDER + whole[end:]
    return REDACTED_PLACEHOLDER


def _apply_rule(text: str, rule: PatternRule) -> str:
    pieces: list[str] = []
    cursor = 0
    for m in rule.pattern.finditer(text):
        start, end = m.span()
        if end == start or not rule.accepts(m.group(0)):
            continue
        pieces.append(text[cursor:start])
        pieces.append(_redact_match(m))
        cursor = end
    if cursor == 0:
        return text
    pieces.append(text[cursor:])
    return "".join(pieces)


def redact_text(text: Any, config: GuardConfig) -> Any:
    """Mask every secret/PII span in ``text``.

    Non-string or empty input is returned unchanged.
    """
    if not text or not isinstance(text, str):
        return text
    for rule in build_patterns(config):
        text = _apply_rule(text, rule)
    return text


def _redact_entry(key: Any, value: Any, config: GuardConfig) -> Any:
    """Redact a mapping value in its serialized ``"key": value`` context.

    Detection scans the JSON form of the whole parameter tree, so rules keyed
    on field names (``"password": "..."``, ``"ssn": 123456789``) only match
    there. A pair that redaction leaves unparseable has its value masked whole.
    """
    value = redact_text(value, config)
    pair = json.dumps({str(key): value}, ensure_ascii=False, default=str)
    redacted = redact_text(pair, config)
    if redacted == pair:
        return value
    try:
        loaded = json.loads(redacted)
    except ValueError:
        return REDACTED_PLACEHOLDER
    if isinstance(loaded, dict) and len(loaded) == 1:
        return next(iter(loaded.values()))
    return REDACTED_PLACEHOLDER


def _redact_value(value: Any, config: GuardConfig) -> Any:
    if isinstance(value, str):
        return redact_text(value, config)
    if isinstance(value, dict):
        return {key: _redact_item(key, item, config) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, config) for item in value]
    return value


def _redact_item(key: Any, item: Any, config: GuardConfig) -> Any:
    if isinstance(item, str) or (isinstance(item, (int, float)) and not isinstance(item, bool)):
        return _redact_entry(key, item, config)
    return _redact_value(item, config)


def redact_params(params: Any, config: GuardConfig) -> Any:
    """Redact every string in a JSON-like tree.

    Mappings and sequences are walked recursively. Scalar mapping values are
    redacted together with their key; numbers and booleans elsewhere pass
    through. ``None`` at the root becomes ``{}``. The input is not modified.
    """
    if params is None:
        return {}
    return _redact_value(params, config)
