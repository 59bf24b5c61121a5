"""Token amount formatting for notifications.

Pure display helper, kept outside the classification pipeline.
"""

from __future__ import annotations

import math

from invoice_notifier.core.config import TokensDisplay, get_settings

BIG_UNIT_DIVISOR = 100_000_000
K_SUFFIX_THRESHOLD = 10_000


def _full_display(tokens: int) -> str:
    if tokens <= K_SUFFIX_THRESHOLD:
        return f"{tokens:,}"

    thousands = math.floor(tokens / 100) / 10
    if thousands.is_integer():
        return f"{int(thousands):,}.0k"
    return f"{thousands:,}k"


def format_tokens(
    tokens: int,
    *,
    none: str | None = None,
    display: TokensDisplay | None = None,
) -> str:
    """Format a token amount.

    Args:
        tokens: Amount in tokens
        none: Substitute text used when the amount is zero
        display: Display mode, defaults to NOTIFY_PREFERRED_TOKENS_TYPE

    Returns:
        "0.00012345" style big unit amounts, or "12,345" / "12.3k" in full mode
    """
    if isinstance(none, str) and not tokens:
        return none

    mode = display or get_settings().notify.preferred_tokens_type
    if mode == TokensDisplay.FULL:
        return _full_display(tokens)

    return f"{tokens / BIG_UNIT_DIVISOR:.8f}"
