"""ULID generation utility for CallGuard.

Provides a single `generate_ulid()` function that returns a 26-character ULID
used as the ``decision_id`` of every hook decision:
  - returned to the host in the hook response (``decisionId``)
  - bound into every structured log entry of that decision

Uses the `python-ulid` library; do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: Crockford Base32 ULID, charset ``[0-9A-HJKMNP-TV-Z]``.
    """
    return str(ULID())
