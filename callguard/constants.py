"""Shared constants for CallGuard.

Marker strings, hook parameter keys and tool-name sets used across modules are
defined here. No magic strings in other modules; import from here.
"""

# ─── Redaction markers ───────────────────────────────────────────────────────

# Replaces the secret portion of a masked span.
REDACTED_PLACEHOLDER: str = "[REDACTED]"

# Replaces the interior of a multi-line private-key block; the BEGIN and END
# lines are kept.
PEM_ELLIPSIS: str = "…redacted…"

# Used for a key block too short to keep its boundary lines.
PEM_SHORT_MASK: str = "***"

# Substring that identifies a private-key block in a matched span.
PRIVATE_KEY_MARKER: str = "PRIVATE KEY-----"

# ─── Confirmation handshake ──────────────────────────────────────────────────

# Caller-supplied flag. Only the boolean True counts as confirmation.
CONFIRM_FLAG: str = "_callguard_confirm"

# Added to redacted params once a secret/PII match has been confirmed.
CONFIRMED_MARKER: str = "_callguard_confirmed"

# Metadata key attached to interactive calls that request host approval.
APPROVAL_METADATA_KEY: str = "_callguard"

# Tools whose host has its own interactive approval channel.
INTERACTIVE_TOOLS: frozenset[str] = frozenset({"exec", "bash"})

# ─── Display ─────────────────────────────────────────────────────────────────

PRODUCT_NAME: str = "CallGuard"

# ─── Sidecar defaults ────────────────────────────────────────────────────────

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 4343
