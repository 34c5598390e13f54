"""Split normalized digest text into (heading, body) sections.

Heading detection is an ordered cascade of named strategies. Each strategy
looks at one line (with access to the lines after it) and either returns a
:class:`HeadingMatch` or ``None``; the first strategy that matches wins.

    1. numbered_marker   "1. Title", "2) Title", "Article 3 - Title"
    2. markdown_header   "# Title" .. "### Title"
    3. bold_line         "**Title**"
    4. label_headline    "NVDA: Title" followed closely by a bullet line

When no heading is found the text falls back to blank-line paragraphs, each
titled by its first line, so any non-empty input yields at least one section.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..contracts import Section
from .patterns import (
    ARTICLE_RE,
    BOLD_LINE_RE,
    MARKDOWN_HEADER_RE,
    NUMBERED_RE,
    URL_RE,
    is_bullet,
    is_sources_label,
    strip_markup,
)

logger = logging.getLogger(__name__)

LABEL_LOOKAHEAD_LINES = 8
LABEL_MAX_NON_BULLET_LINES = 5

_LABEL_HEADLINE_RE = re.compile(
    r"^(?:\*\*)?[A-Za-z$][A-Za-z0-9&/'.$ ()-]{0,40}?(?:\*\*)?:(?:\*\*)?\s+\S.*$"
)
_NUMBER_PREFIX_RE = re.compile(r"^\d{1,3}[.)]\s+")
_ARTICLE_PREFIX_RE = re.compile(r"^(Article\s+\d+)\s*[-:.)]*\s*", re.IGNORECASE)
_HASH_PREFIX_RE = re.compile(r"^#{1,6}\s*")


@dataclass(frozen=True)
class HeadingMatch:
    strategy: str
    text: str


HeadingStrategy = Callable[[List[str], int], Optional[HeadingMatch]]


def clean_heading(line: str) -> str:
    """Strip heading markers (``#``, ``**``, ``1.``, ``Article N -``) from a line."""
    text = _HASH_PREFIX_RE.sub("", line.strip())
    text = strip_markup(text)
    text = _NUMBER_PREFIX_RE.sub("", text)
    article = _ARTICLE_PREFIX_RE.match(text)
    if article:
        remainder = text[article.end():].strip()
        text = remainder or article.group(1)
    return text.strip().rstrip(":").strip()


def numbered_marker(lines: List[str], index: int) -> Optional[HeadingMatch]:
    line = lines[index].strip()
    if NUMBERED_RE.match(line) or ARTICLE_RE.match(line):
        return HeadingMatch("numbered_marker", clean_heading(line))
    return None


def markdown_header(lines: List[str], index: int) -> Optional[HeadingMatch]:
    line = lines[index].strip()
    if MARKDOWN_HEADER_RE.match(line):
        return HeadingMatch("markdown_header", clean_heading(line))
    return None


def bold_line(lines: List[str], index: int) -> Optional[HeadingMatch]:
    line = lines[index].strip()
    if BOLD_LINE_RE.match(line):
        return HeadingMatch("bold_line", clean_heading(line))
    return None


def label_headline(lines: List[str], index: int) -> Optional[HeadingMatch]:
    line = lines[index].strip()
    if is_bullet(line) or URL_RE.search(line) or not _LABEL_HEADLINE_RE.match(line):
        return None

    non_blank = 0
    non_bullet = 0
    for following in lines[index + 1:]:
        candidate = following.strip()
        if not candidate:
            continue
        non_blank += 1
        if is_bullet(candidate):
            return HeadingMatch("label_headline", strip_markup(line))
        non_bullet += 1
        if non_bullet >= LABEL_MAX_NON_BULLET_LINES or non_blank >= LABEL_LOOKAHEAD_LINES:
            break
    return None


HEADING_STRATEGIES: List[HeadingStrategy] = [
    numbered_marker,
    markdown_header,
    bold_line,
    label_headline,
]


def detect_heading(lines: List[str], index: int,
                   strategies: Optional[List[HeadingStrategy]] = None) -> Optional[HeadingMatch]:
    """Run the strategy cascade for ``lines[index]``."""
    line = lines[index].strip()
    if not line or is_sources_label(line):
        return None
    for strategy in strategies or HEADING_STRATEGIES:
        match = strategy(lines, index)
        if match is not None:
            return match
    return None


def _paragraph_sections(lines: List[str]) -> List[Section]:
    paragraphs: List[List[str]] = []
    current: List[str] = []
    for line in lines:
        if line.strip():
            current.append(line.strip())
        elif current:
            paragraphs.append(current)
            current = []
    if current:
        paragraphs.append(current)

    sections = []
    for paragraph in paragraphs:
        heading = paragraph[0]
        # single-line paragraphs keep their text as the body so they still yield a card
        body = "\n".join(paragraph[1:]) if len(paragraph) > 1 else heading
        sections.append(Section(heading=heading, body=body))
    return sections


def segment(text: str) -> List[Section]:
    """Split ``text`` into ordered sections.

    Lines inside a Sources/Citations block that carry a URL are never treated
    as headings, so numbered citation lists stay attached to their section.
    """
    if not text:
        return []
    lines = text.split("\n")

    headings = []
    in_citations = False
    for index, raw in enumerate(lines):
        line = raw.strip()
        if not line:
            in_citations = False
            continue
        if is_sources_label(line):
            in_citations = True
            continue
        if in_citations and URL_RE.search(line):
            continue
        match = detect_heading(lines, index)
        if match is not None:
            headings.append((index, match))
            in_citations = False

    if not headings:
        sections = _paragraph_sections(lines)
        if not sections:
            # whitespace-only input still yields one (empty) section
            sections = [Section(heading="", body="")]
        logger.debug(f"No headings found; fell back to {len(sections)} paragraph sections")
        return sections

    if headings[0][0] > 0 and any(l.strip() for l in lines[:headings[0][0]]):
        logger.debug("Ignoring preamble before first heading")

    sections = []
    for position, (index, match) in enumerate(headings):
        end = headings[position + 1][0] if position + 1 < len(headings) else len(lines)
        body = "\n".join(lines[index + 1:end]).strip("\n")
        sections.append(Section(heading=match.text, body=body))
    logger.debug(f"Segmented {len(sections)} sections "
                 f"({', '.join(sorted({m.strategy for _, m in headings}))})")
    return sections
