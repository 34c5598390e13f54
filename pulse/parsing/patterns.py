"""Line-level patterns shared by the segmenter and the extractor."""

import re

BULLET_RE = re.compile(r"^(?:[•\-*]|\d+\.)\s+")
URL_RE = re.compile(r"https?://\S+")
NUMBERED_RE = re.compile(r"^\d{1,3}[.)]\s+.+")
ARTICLE_RE = re.compile(r"^Article\s+\d+", re.IGNORECASE)
MARKDOWN_HEADER_RE = re.compile(r"^#{1,3}\s+.+")
BOLD_LINE_RE = re.compile(r"^\*\*.+\*\*$")

# "Sources:", "**Citations:**", "Citations 2", "## Sources" ... but not "Sources say ..."
SOURCES_LABEL_RE = re.compile(
    r"^(?:#{1,3}\s*)?(?:\*\*|__)?\s*(?:Citations?|Sources?)(?:\s+\d+)?\s*(?:\*\*|__)?"
    r"\s*(?::(?:\*\*|__)?(?P<rest>.*)|(?:\*\*|__)?$)",
    re.IGNORECASE,
)

CONTENTS_LABEL_RE = re.compile(r"^(?:\*\*)?Contents(?:\s+\d+)?:?(?:\*\*)?$", re.IGNORECASE)

_MARKUP_RE = re.compile(r"\*\*|__")


def is_bullet(line: str) -> bool:
    return bool(BULLET_RE.match(line.strip()))


def is_sources_label(line: str) -> bool:
    return bool(SOURCES_LABEL_RE.match(line.strip()))


def is_heading_like(line: str) -> bool:
    """Single-line heading check (no lookahead) used to close citation blocks."""
    s = line.strip()
    if not s or is_sources_label(s):
        return False
    return bool(
        NUMBERED_RE.match(s) or ARTICLE_RE.match(s)
        or MARKDOWN_HEADER_RE.match(s) or BOLD_LINE_RE.match(s)
    )


def strip_markup(text: str) -> str:
    return _MARKUP_RE.sub("", text).strip()
