"""Telegram MarkdownV2 helpers."""

import re

MARKDOWN_V2 = "MarkdownV2"

_RESERVED = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def escape_markdown(text: str) -> str:
    """Backslash-prefix every MarkdownV2 reserved character."""
    return _RESERVED.sub(r"\\\1", text)
