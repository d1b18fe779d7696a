"""Text helpers for rendering portal data inside Discord messages."""

from datetime import datetime, timezone

from modfeed.util.logger import get_logger

logger = get_logger("format_utils")

TRUNCATION_MARKER = "\u2026"
ZERO_WIDTH_SPACE = "\u200b"

_ESCAPED_CHARACTERS = frozenset("_*~")


def escape_formatting(text: str) -> str:
    """Escape markdown emphasis characters and defuse ``@`` mentions.

    ``_``, ``*`` and ``~`` get a leading backslash; every ``@`` is followed by a
    zero-width space so portal-supplied text can never ping ``@everyone``.
    """
    out: list[str] = []
    for char in text:
        if char in _ESCAPED_CHARACTERS:
            out.append("\\")
        out.append(char)
        if char == "@":
            out.append(ZERO_WIDTH_SPACE)
    return "".join(out)


def truncate_for_embed(text: str, limit: int) -> str:
    """Clip ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return text[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def parse_portal_timestamp(value: str | None) -> int:
    """Convert an RFC 3339 timestamp from the portal to unix seconds.

    Missing or malformed values map to 0, which downstream code treats as
    "release time unknown".
    """
    if not value:
        return 0
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable portal timestamp %r", value)
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())
