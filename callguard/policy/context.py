"""Agent context text describing the confirmation protocol."""

from __future__ import annotations

from typing import Optional

from callguard.config import GuardConfig
from callguard.constants import CONFIRM_FLAG, INTERACTIVE_TOOLS, PRODUCT_NAME, REDACTED_PLACEHOLDER

_TAG = PRODUCT_NAME.lower()


def _monitored(config: GuardConfig) -> list[str]:
    monitored: list[str] = []
    if config.secrets.enabled:
        monitored.append("API keys, tokens, credentials")
    if config.pii.enabled:
        categories = config.pii.categories
        pii_types = [
            label
            for enabled, label in (
                (categories.ssn, "SSN"),
                (categories.credit_card, "credit cards"),
                (categories.email, "emails"),
                (categories.phone, "phone numbers"),
            )
            if enabled
        ]
        if pii_types:
            monitored.append(f"PII ({', '.join(pii_types)})")
    if config.destructive.enabled:
        monitored.append("destructive commands (rm -rf, git reset, DROP TABLE, etc.)")
    for custom in config.custom_patterns:
        monitored.append(f"custom pattern '{custom.name}'")
    return monitored


def build_agent_context(config: GuardConfig) -> Optional[str]:
    """Text to prepend to the agent's initial context.

    Returns None when no detection family is enabled.
    """
    if not (config.secrets.enabled or config.pii.enabled or config.destructive.enabled):
        return None

    interactive = "/".join(sorted(INTERACTIVE_TOOLS))
    lines = [
        f"<{_TAG}>",
        f"{PRODUCT_NAME} is active. It monitors tool calls for sensitive data and destructive commands.",
        "",
        "If a tool call is blocked with a message asking you to confirm:",
        f'- Add `"{CONFIRM_FLAG}": true` to the tool parameters and retry',
        "- Only confirm if you understand the risk and the action is intentional",
        "- For secrets/PII, confirmation will still redact the sensitive data",
        "",
        "Actions:",
        "- block: Tool call rejected entirely",
        f"- redact: Sensitive data replaced with {REDACTED_PLACEHOLDER}",
        f"- confirm: User approval required ({interactive} tools only)",
        f"- agent-confirm: You must retry with {CONFIRM_FLAG}: true",
        "- warn/log: Allowed with logging",
    ]

    monitored = _monitored(config)
    if monitored:
        lines.append("")
        lines.append(f"Monitoring: {'; '.join(monitored)}")

    lines.append(f"</{_TAG}>")
    return "\n".join(lines)
