"""CallGuard allowlist: exemptions by tool, session or matched text.

Public API:
    is_allowlisted      : whole-call exemption by tool name or session key
    is_match_allowlisted: per-match exemption by text pattern
"""
from callguard.allowlist.matcher import is_allowlisted, is_match_allowlisted

__all__ = ["is_allowlisted", "is_match_allowlisted"]
