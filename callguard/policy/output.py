"""Output-side filtering of tool results before they are persisted.

A result message carries ``content``: either a string or a list of blocks,
of which only ``{"type": "text", "text": ...}`` blocks are inspected.

If any text block's worst detection resolves to ``block``, the whole content
is replaced by a single notice block. Otherwise every text block is
redacted. Non-text blocks and other message keys pass through.

INVARIANT: NEVER raises. On an internal error the message is returned
unchanged (fail open).
"""

from __future__ import annotations

from typing import Any

from callguard.config import GuardConfig
from callguard.constants import PRODUCT_NAME
from callguard.models.detection import SeverityAction
from callguard.scanner.matcher import detect_secret
from callguard.scanner.redactor import redact_text
from callguard.utils.logger import get_logger

logger = get_logger(__name__)


def _is_text_block(block: Any) -> bool:
    return isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)


def _blocked_notice(match_type: str) -> str:
    return f"[{PRODUCT_NAME}: Output blocked - {match_type} detected]"


def filter_tool_result(message: Any, config: GuardConfig) -> Any:
    """Redact or block secrets in a tool-result message.

    Returns:
        A new message dict, or ``message`` itself when output filtering is
        off or there is nothing to inspect.
    """
    if not config.filter_outputs or not isinstance(message, dict):
        return message
    try:
        return _filter(message, config)
    except Exception:  # noqa: BLE001
        logger.error("Tool-result filtering failed, returning output unmodified", exc_info=True)
        return message


def _filter(message: dict, config: GuardConfig) -> dict:
    content = message.get("content")

    if isinstance(content, str):
        blocks = [{"type": "text", "text": content}]
    elif isinstance(content, list):
        blocks = content
    else:
        return message

    for block in blocks:
        if not _is_text_block(block):
            continue
        result = detect_secret(block["text"], config)
        if result is not None and result.action is SeverityAction.BLOCK:
            if config.logging.log_detections:
                logger.warning(
                    "output_secret_detected",
                    type=result.match.type,
                    severity=result.match.severity.value,
                    action=result.action.value,
                )
            notice = _blocked_notice(result.match.type)
            if isinstance(content, str):
                return {**message, "content": notice}
            return {**message, "content": [{"type": "text", "text": notice}]}

    if isinstance(content, str):
        return {**message, "content": redact_text(content, config)}
    redacted = [
        {**block, "text": redact_text(block["text"], config)} if _is_text_block(block) else block
        for block in content
    ]
    return {**message, "content": redacted}
