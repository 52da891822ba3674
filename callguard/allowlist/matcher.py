"""Allowlist matching.

Two independent granularities:
  - whole call: the tool name or the session key is listed; the call is not
    inspected at all.
  - single match: the matched text matches one of the allowlist patterns;
    that match is excluded from selection, other matches in the same text
    still count.

Patterns are compiled case-insensitively with RE2 and cached. An invalid
pattern never matches.

IMPORT RULES:
  - `import re2` ONLY; `import re` is PROHIBITED.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

from callguard.scanner.patterns import compile_user_pattern

if TYPE_CHECKING:
    from callguard.config import Allowlist


def is_allowlisted(
    allowlist: "Allowlist",
    tool_name: str,
    session_key: Optional[str] = None,
) -> bool:
    """Return True if the whole call is exempt.

    INVARIANT: independent of the call's text content.
    """
    if tool_name in allowlist.tools:
        return True
    if session_key and session_key in allowlist.sessions:
        return True
    return False


def is_match_allowlisted(matched_text: str, patterns: Iterable[str] = ()) -> bool:
    """Return True if ``matched_text`` matches any allowlist pattern.

    Patterns are searched (not anchored). A pattern RE2 cannot compile is
    treated as non-matching.

    NEVER raises.
    """
    for source in patterns:
        compiled = compile_user_pattern(source)
        if compiled is not None and compiled.search(matched_text):
            return True
    return False
