"""Root test configuration for CallGuard.

Isolates every test from the machine it runs on: CALLGUARD_CONFIG and
CALLGUARD_PORT are cleared, and load_config() does not look at
``.callguard/config.yaml`` or ``~/.callguard/config.yaml`` unless a test
points it somewhere explicitly.
"""

from __future__ import annotations

import pytest

from callguard.config import GuardConfig


@pytest.fixture(autouse=True)
def isolate_config_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear config env vars and the default search paths for all tests."""
    monkeypatch.delenv("CALLGUARD_CONFIG", raising=False)
    monkeypatch.delenv("CALLGUARD_PORT", raising=False)
    monkeypatch.setattr("callguard.config.DEFAULT_CONFIG_PATHS", [])


@pytest.fixture
def default_config() -> GuardConfig:
    """GuardConfig with all default values (no file I/O)."""
    return GuardConfig.defaults()
