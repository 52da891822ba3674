"""Unit tests for decision ID generation (callguard/utils/ulid.py).

Every hook decision carries a ULID as ``decisionId``; the same value is bound
into the decision's log events as ``decision_id``.
"""

from __future__ import annotations

import re
import threading
import time

from callguard.utils.ulid import generate_ulid

# ─── ULID format constants ─────────────────────────────────────────────────────

# Crockford Base32 charset: 0-9 and A-Z, excluding I, L, O, U
ULID_CHARSET = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")
ULID_LENGTH = 26


# ─── Basic format tests ────────────────────────────────────────────────────────


def test_generate_ulid_returns_string() -> None:
    result = generate_ulid()
    assert isinstance(result, str)


def test_generate_ulid_length() -> None:
    result = generate_ulid()
    assert len(result) == ULID_LENGTH, f"Expected 26 chars, got {len(result)}: {result!r}"


def test_generate_ulid_charset() -> None:
    """ULID must use Crockford Base32 charset only."""
    result = generate_ulid()
    assert ULID_CHARSET.match(result), f"ULID {result!r} contains invalid characters"


def test_generate_ulid_is_json_and_log_safe() -> None:
    """decisionId is emitted in JSON bodies and log lines without escaping."""
    result = generate_ulid()
    assert all(0x20 <= ord(c) <= 0x7E for c in result)
    assert not any(c in '"\\\r\n' for c in result)


# ─── Uniqueness tests ──────────────────────────────────────────────────────────


def test_generate_ulid_unique_1000() -> None:
    ulids = [generate_ulid() for _ in range(1000)]
    assert len(set(ulids)) == 1000, (
        f"Duplicate ULIDs detected among 1,000 generated: "
        f"{len(ulids) - len(set(ulids))} duplicates"
    )


def test_generate_ulid_all_valid_format_1000() -> None:
    ulids = [generate_ulid() for _ in range(1000)]
    invalid = [u for u in ulids if not ULID_CHARSET.match(u)]
    assert not invalid, f"Invalid ULIDs found: {invalid[:5]}"


# ─── Ordering ─────────────────────────────────────────────────────────────────


def test_generate_ulid_lexicographic_order() -> None:
    """Decision IDs sort in generation order once the timestamp advances."""
    first_batch = [generate_ulid() for _ in range(10)]
    time.sleep(0.002)  # 2ms guarantees timestamp advances
    second_batch = [generate_ulid() for _ in range(10)]

    assert all(
        b > a for a in first_batch for b in second_batch
    ), "ULIDs are not lexicographically ordered across timestamps"


# ─── Thread safety ────────────────────────────────────────────────────────────


def test_generate_ulid_thread_safe() -> None:
    """Concurrent decisions must never share a decision ID."""
    results: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        ulids = [generate_ulid() for _ in range(50)]
        with lock:
            results.extend(ulids)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 500
    assert len(set(results)) == 500
