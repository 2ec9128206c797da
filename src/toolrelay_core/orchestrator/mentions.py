"""Tool mentions in free-form user text."""

import re
from collections.abc import Iterable

from toolrelay_core.dispatch.naming import is_tool_id

# Sentence punctuation that may trail a mention without being part of it
TRAILING_PUNCTUATION = ",.;:!?)"


def find_mentions(message: str) -> list[str]:
    """Canonical tool ids mentioned in a message, deduplicated in order."""
    mentions: list[str] = []
    for token in message.split():
        candidate = token.rstrip(TRAILING_PUNCTUATION)
        if is_tool_id(candidate) and candidate not in mentions:
            mentions.append(candidate)
    return mentions


def strip_mentions(message: str, mentions: Iterable[str]) -> str:
    """Remove each mention, leaving any punctuation that trailed it."""
    trailing = f"[{re.escape(TRAILING_PUNCTUATION)}]"
    stripped = message
    for mention in mentions:
        escaped = re.escape(mention)
        # "use @mcp-a:b, please" -> "use, please"
        stripped = re.sub(rf"(?:[ \t]+|(?<!\S)){escaped}(?={trailing}+(?!\S))", "", stripped)
        stripped = re.sub(rf"(?<!\S){escaped}(?!\S)", "", stripped)
    # Collapse the gaps left behind, keep line breaks
    stripped = re.sub(r"[ \t]{2,}", " ", stripped)
    return stripped.strip()
