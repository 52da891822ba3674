"""Pattern catalog for secret and PII detection.

All built-in patterns are pre-compiled at module load time using google-re2.
NO built-in pattern compilation happens per-call or lazily.

IMPORT RULES:
  - ``import re2`` ONLY; ``import re`` is PROHIBITED in this file and any
    callguard/scanner/ file.
  - RE2 has no backreferences and no lookaround. Patterns that would need a
    back-referenced quote spell out the quoted and bare forms as alternatives.

Registration order matters: it is the tie-break order for equal severities
(API keys → cloud credentials → tokens → private keys → PII → custom).

Redaction masks the LAST participating, non-empty capture group of a match,
or the whole match when no group participates. Put the secret value in the
last group.
"""

from __future__ import annotations

import re2

from callguard.models.detection import MatchCategory, PatternRule, Severity
from callguard.scanner.validators import (
    is_valid_credit_card,
    is_valid_email,
    is_valid_phone,
    is_valid_ssn,
    is_valid_ssn_digits,
)

_SECRETS = MatchCategory.SECRETS
_PII = MatchCategory.PII

_CRITICAL = Severity.CRITICAL
_HIGH = Severity.HIGH
_MEDIUM = Severity.MEDIUM


def _rule(type_: str, source: str, severity: Severity, category: MatchCategory = _SECRETS) -> PatternRule:
    return PatternRule(type=type_, pattern=re2.compile(source), severity=severity, category=category)


# UUID shape shared by Postmark and Heroku keys.
_UUID = r"(?i)\b([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})\b"


# ===========================================================================
# API KEYS
# COMPILED AT MODULE LOAD, never per-call
# ===========================================================================

API_KEY_PATTERNS: list[PatternRule] = [
    # OpenAI (sk-proj-*, sk-*) and Anthropic (sk-ant-*)
    _rule("api_key_sk", r"\b(sk-[A-Za-z0-9_-]{8,})\b", _HIGH),
    _rule("api_key_anthropic", r"\b(sk-ant-[A-Za-z0-9_-]{20,})\b", _HIGH),
    # ─── GitHub ──────────────────────────────────────────────────────────
    _rule("api_key_ghp", r"\b(ghp_[A-Za-z0-9]{20,})\b", _HIGH),
    _rule("api_key_github_pat", r"\b(github_pat_[A-Za-z0-9_]{20,})\b", _HIGH),
    _rule("api_key_gho", r"\b(gho_[A-Za-z0-9]{20,})\b", _HIGH),
    _rule("api_key_ghu", r"\b(ghu_[A-Za-z0-9]{20,})\b", _HIGH),
    _rule("api_key_ghs", r"\b(ghs_[A-Za-z0-9]{20,})\b", _HIGH),
    # ─── Slack ───────────────────────────────────────────────────────────
    _rule("api_key_xox", r"\b(xox[baprs]-[A-Za-z0-9-]{10,})\b", _HIGH),
    _rule("api_key_xapp", r"\b(xapp-[A-Za-z0-9-]{10,})\b", _HIGH),
    # ─── Google, Groq, npm, Telegram, Perplexity ─────────────────────────
    _rule("api_key_google", r"\b(AIza[0-9A-Za-z_-]{20,})\b", _HIGH),
    _rule("api_key_gsk", r"\b(gsk_[A-Za-z0-9_-]{10,})\b", _HIGH),
    _rule("api_key_npm", r"\b(npm_[A-Za-z0-9]{10,})\b", _HIGH),
    _rule("api_key_telegram", r"\b(\d{6,}:[A-Za-z0-9_-]{20,})\b", _HIGH),
    _rule("api_key_pplx", r"\b(pplx-[A-Za-z0-9_-]{10,})\b", _HIGH),
    # ─── Payments ────────────────────────────────────────────────────────
    _rule("api_key_stripe_live", r"\b(sk_live_[A-Za-z0-9]{20,})\b", _CRITICAL),
    _rule("api_key_stripe_test", r"\b(sk_test_[A-Za-z0-9]{20,})\b", _HIGH),
    _rule("api_key_stripe_pk", r"\b(pk_(?:live|test)_[A-Za-z0-9]{20,})\b", _MEDIUM),
    _rule("api_key_stripe_rk", r"\b(rk_(?:live|test)_[A-Za-z0-9]{20,})\b", _HIGH),
    # ─── Messaging / email ───────────────────────────────────────────────
    _rule("api_key_twilio_sid", r"\b(AC[a-f0-9]{32})\b", _HIGH),
    _rule("api_key_twilio_auth", r"\b(SK[a-f0-9]{32})\b", _HIGH),
    _rule("api_key_sendgrid", r"\b(SG\.[A-Za-z0-9_-]{20,}\.[A-Za-z0-9_-]{20,})\b", _HIGH),
    _rule("api_key_mailgun", r"\b(key-[A-Za-z0-9]{32})\b", _HIGH),
    _rule("api_key_postmark", _UUID, _MEDIUM),
    _rule(
        "api_key_discord",
        r"\b([MN][A-Za-z0-9]{23,}\.[A-Za-z0-9_-]{6}\.[A-Za-z0-9_-]{27,})\b",
        _HIGH,
    ),
    # ─── Hosting / infrastructure ────────────────────────────────────────
    _rule("api_key_heroku", _UUID, _MEDIUM),
    _rule("api_key_datadog", r"\b(dd[a-z]{1,2}_[A-Za-z0-9]{32,})\b", _HIGH),
    _rule("api_key_sentry", r"(?i)\b(https://[a-f0-9]{32}@[a-z0-9.]+\.sentry\.io/\d+)\b", _HIGH),
    _rule("api_key_supabase", r"\b(sbp_[A-Za-z0-9]{40,})\b", _HIGH),
    _rule("api_key_vercel", r"(?i)\b(vercel_[A-Za-z0-9_-]{20,})\b", _HIGH),
    _rule("api_key_netlify", r"\b(nfp_[A-Za-z0-9]{40,})\b", _HIGH),
    # ─── SaaS ────────────────────────────────────────────────────────────
    _rule("api_key_linear", r"\b(lin_api_[A-Za-z0-9]{40,})\b", _HIGH),
    _rule("api_key_notion", r"\b(secret_[A-Za-z0-9]{40,})\b", _HIGH),
    _rule("api_key_airtable", r"\b(key[A-Za-z0-9]{14})\b", _HIGH),
    _rule("api_key_figma", r"\b(figd_[A-Za-z0-9_-]{40,})\b", _HIGH),
    _rule("api_key_mapbox", r"\b(pk\.[A-Za-z0-9]{60,})\b", _MEDIUM),
    _rule("api_key_mapbox_sk", r"\b(sk\.[A-Za-z0-9]{60,})\b", _HIGH),
    _rule("api_key_firebase", r"\b(AAAA[A-Za-z0-9_-]{7}:[A-Za-z0-9_-]{140,})\b", _HIGH),
]


# ===========================================================================
# CLOUD CREDENTIALS
# ===========================================================================

CLOUD_CREDENTIAL_PATTERNS: list[PatternRule] = [
    # AKIA / ABIA / ASIA prefixes
    _rule("aws_access_key", r"\b(A[KBS]IA[0-9A-Z]{16})\b", _HIGH),
    # Only near an AWS secret keyword; 40 base64 characters
    _rule(
        "aws_secret_key",
        r"""(?i)(?:aws_secret|secret_access_key|AWS_SECRET)[^\w]*[=:]\s*["']?([A-Za-z0-9/+=]{40})["']?""",
        _HIGH,
    ),
    # AIza + 35
    _rule("gcp_api_key", r"\b(AIza[0-9A-Za-z_-]{35})\b", _HIGH),
    _rule("azure_connection_string", r"(?i)(?:DefaultEndpointsProtocol|AccountKey|AccountName)=[^;]+", _HIGH),
    _rule(
        "azure_storage_key",
        r"""(?i)(?:AccountKey|azure_storage_key)[^\w]*[=:]\s*["']?([A-Za-z0-9/+=]{86,88})["']?""",
        _HIGH,
    ),
]


# ===========================================================================
# TOKENS
# ===========================================================================

TOKEN_PATTERNS: list[PatternRule] = [
    _rule("bearer", r"\bBearer\s+([A-Za-z0-9._\-+=]{18,})\b", _HIGH),
    _rule("authorization_header", r"(?i)Authorization\s*[:=]\s*Bearer\s+([A-Za-z0-9._\-+=]+)", _HIGH),
    # NAME_KEY=value, NAME_TOKEN: "value", PASSWORD='value'
    _rule(
        "env_key_token",
        r"""\b[A-Z0-9_]*(?:KEY|TOKEN|SECRET|PASSWORD|PASSWD)\b\s*[=:]\s*"""
        r"""(?:"([^\s"'\\]+)"|'([^\s"'\\]+)'|([^\s"'\\]+))""",
        _HIGH,
    ),
    _rule(
        "json_token_field",
        r'"(?:apiKey|token|secret|password|passwd|accessToken|refreshToken)"\s*:\s*"([^"]+)"',
        _HIGH,
    ),
    # --api-key VALUE, --token "VALUE"
    _rule(
        "cli_token_flag",
        r"""--(?:api[-_]?key|token|secret|password|passwd)\s+"""
        r"""(?:"([^\s"']+)"|'([^\s"']+)'|([^\s"']+))""",
        _HIGH,
    ),
]


# ===========================================================================
# PRIVATE KEYS
# Multi-line PEM block; redaction keeps the BEGIN/END lines.
# ===========================================================================

PRIVATE_KEY_PATTERNS: list[PatternRule] = [
    _rule(
        "pem_private_key",
        r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]+?-----END [A-Z ]*PRIVATE KEY-----",
        _CRITICAL,
    ),
]


# ===========================================================================
# PII
# Every PII rule carries a validator. The phone rule's validator is rebound
# to the configured region by build_patterns().
# ===========================================================================

PII_SSN = PatternRule(
    type="pii_ssn",
    pattern=re2.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    severity=_HIGH,
    category=_PII,
    validator=is_valid_ssn,
)

# Undashed SSNs only in labelled context ("ssn: 123456789")
PII_SSN_NO_DASHES = PatternRule(
    type="pii_ssn_no_dashes",
    pattern=re2.compile(r"(?i)(?:ssn|social\s*security)[^\d]*(\d{9})\b"),
    severity=_HIGH,
    category=_PII,
    validator=is_valid_ssn_digits,
)

# 13–19 digits with optional separators; Luhn decides
PII_CREDIT_CARD = PatternRule(
    type="pii_credit_card",
    pattern=re2.compile(r"\b(?:\d{4}[- ]?){2,4}\d{1,4}\b"),
    severity=_HIGH,
    category=_PII,
    validator=is_valid_credit_card,
)

PII_PHONE = PatternRule(
    type="pii_phone",
    pattern=re2.compile(r"\b(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
    severity=_MEDIUM,
    category=_PII,
    validator=is_valid_phone,
)

PII_EMAIL = PatternRule(
    type="pii_email",
    pattern=re2.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    severity=_MEDIUM,
    category=_PII,
    validator=is_valid_email,
)


# ---------------------------------------------------------------------------
# Aggregate (ReDoS gate + health endpoint)
# ---------------------------------------------------------------------------

PII_PATTERNS: list[PatternRule] = [PII_SSN, PII_SSN_NO_DASHES, PII_CREDIT_CARD, PII_PHONE, PII_EMAIL]

ALL_PATTERNS: list[PatternRule] = (
    API_KEY_PATTERNS
    + CLOUD_CREDENTIAL_PATTERNS
    + TOKEN_PATTERNS
    + PRIVATE_KEY_PATTERNS
    + PII_PATTERNS
)
