"""Per-section entity extraction: bullets, citations, ticker tag, exposure."""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit, urlunsplit

from ..contracts import Citation, Section
from ..errors import ParseError
from .patterns import (
    BULLET_RE,
    CONTENTS_LABEL_RE,
    SOURCES_LABEL_RE,
    URL_RE,
    is_heading_like,
    is_sources_label,
    strip_markup,
)

logger = logging.getLogger(__name__)

DEFAULT_CITATION_TITLE = "Source"

# Ordered: company names before the market-wide pseudo-tags.
DEFAULT_TICKER_ALIASES: Tuple[Tuple[str, str], ...] = (
    ("nvidia", "NVDA"),
    ("palantir", "PLTR"),
    ("ionq", "IONQ"),
    ("oklo", "OKLO"),
    ("ge vernova", "GEV"),
    ("vernova", "GEV"),
    ("vanguard total stock", "VTI"),
    ("vanguard russell 1000 growth", "VONG"),
    ("vanguard growth", "VONG"),
    ("apple", "AAPL"),
    ("microsoft", "MSFT"),
    ("alphabet", "GOOGL"),
    ("google", "GOOGL"),
    ("amazon", "AMZN"),
    ("meta platforms", "META"),
    ("tesla", "TSLA"),
    ("broadcom", "AVGO"),
    ("advanced micro devices", "AMD"),
    ("intel", "INTC"),
    ("netflix", "NFLX"),
    ("berkshire", "BRK.B"),
    ("jpmorgan", "JPM"),
    ("market", "MARKET"),
    ("markets", "MARKET"),
    ("wall street", "MARKET"),
    ("macro", "MACRO"),
    ("economy", "MACRO"),
    ("economic", "MACRO"),
    ("federal reserve", "MACRO"),
    ("portfolio", "PORTFOLIO"),
)

GENERAL_TAGS = frozenset({"MARKET", "MACRO", "PORTFOLIO"})

# Uppercase tokens that look like tickers but are not.
NON_TICKER_TOKENS = frozenset({
    "SMA", "RSI", "GDP", "CPI", "EPS", "PPI", "PCE", "CEO", "CFO", "CTO", "COO",
    "AI", "US", "USA", "UK", "EU", "ETF", "IPO", "SEC", "FDA", "FTC", "DOJ",
    "FED", "FOMC", "YOY", "QOQ", "EV", "PE", "GPU", "CPU", "API", "ESG", "NYSE",
    "USD", "EUR", "HBM", "AGM", "TBD", "NEW", "THE",
})

_MARKET_CONTEXT_RE = re.compile(r"market context(?P<rest>[^\n]*)", re.IGNORECASE)
_TICKER_TOKEN_RE = re.compile(r"\$?\b([A-Z]{2,5})\b")
_PAREN_TICKER_RE = re.compile(r"\((?:(?:NASDAQ|NYSE|AMEX)\s*:\s*)?\$?([A-Z]{2,5})\)")
_EXPOSURE_RE = re.compile(
    r"([\d.]+)%\s*(?:of\s+(?:the\s+|your\s+)?)?"
    r"(?:portfolio|exposure|allocation|weight|position)",
    re.IGNORECASE,
)
_MD_LINK_RE = re.compile(r"\[([^\]]*)\]\((https?://[^)\s]+)\)")
_EMPTY_BRACKETS_RE = re.compile(r"\(\s*\)|\[\s*\]|<\s*>")
_LEADING_PUNCT_RE = re.compile(r"^[\s•*\-\"'>:|]+")
_TRAILING_PUNCT_RE = re.compile(r"[\s(\[<\-:|,;\"']+$")
_URL_TRAILING = ".,;:!?'\">]"


@dataclass
class Extraction:
    bullets: List[str] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    ticker_tag: Optional[str] = None
    exposure: Optional[float] = None


class TickerResolver:
    """Data-driven ticker inference.

    Name aliases match case-insensitively on word boundaries; ``symbols`` (for
    example the saved portfolio's tickers) match case-sensitively so short
    tickers do not fire on ordinary words. Headings are checked against company
    aliases, then symbols, then the general pseudo-tag aliases.
    """

    def __init__(self,
                 aliases: Sequence[Tuple[str, str]] = DEFAULT_TICKER_ALIASES,
                 symbols: Iterable[str] = (),
                 general_tags: Iterable[str] = GENERAL_TAGS):
        self.aliases = tuple(aliases)
        self.symbols = tuple(dict.fromkeys(s.upper() for s in symbols if s))
        self.general_tags = frozenset(general_tags)
        alias_patterns = [
            (re.compile(r"\b" + re.escape(alias) + r"\b", re.IGNORECASE), tag)
            for alias, tag in self.aliases
        ]
        self._company_patterns = [(p, tag) for p, tag in alias_patterns if tag not in self.general_tags]
        self._general_patterns = [(p, tag) for p, tag in alias_patterns if tag in self.general_tags]
        self._symbol_patterns = [
            (re.compile(r"(?<![A-Za-z])\$?" + re.escape(symbol) + r"(?![A-Za-z])"), symbol)
            for symbol in self.symbols
        ]

    def with_symbols(self, symbols: Iterable[str]) -> "TickerResolver":
        return TickerResolver(self.aliases, list(self.symbols) + list(symbols), self.general_tags)

    def is_general(self, tag: Optional[str]) -> bool:
        return tag in self.general_tags

    def from_heading(self, heading: str) -> Optional[str]:
        for patterns in (self._company_patterns, self._symbol_patterns, self._general_patterns):
            for pattern, tag in patterns:
                if pattern.search(heading):
                    return tag
        return None

    def from_body(self, body: str) -> Optional[str]:
        for context in _MARKET_CONTEXT_RE.finditer(body):
            for match in _TICKER_TOKEN_RE.finditer(context.group("rest")):
                if match.group(1) not in NON_TICKER_TOKENS:
                    return match.group(1)
        for match in _PAREN_TICKER_RE.finditer(body):
            if match.group(1) not in NON_TICKER_TOKENS:
                return match.group(1)
        return None

    def resolve(self, heading: str, body: str) -> Optional[str]:
        return self.from_heading(heading) or self.from_body(body)


DEFAULT_RESOLVER = TickerResolver()


def citation_key(url: str) -> str:
    """Dedup key for a citation URL: scheme and host folded to lower case."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment))


def _clean_url(url: str) -> str:
    url = url.rstrip(_URL_TRAILING)
    while url.endswith(")") and url.count(")") > url.count("("):
        url = url[:-1].rstrip(_URL_TRAILING)
    return url


def _clean_citation_title(text: str) -> str:
    text = strip_markup(text)
    match = BULLET_RE.match(text.strip())
    if match:
        text = text.strip()[match.end():]
    text = text.replace("[", "").replace("]", "")
    text = _EMPTY_BRACKETS_RE.sub("", text)
    text = _LEADING_PUNCT_RE.sub("", text)
    text = _TRAILING_PUNCT_RE.sub("", text)
    return " ".join(text.split()) or DEFAULT_CITATION_TITLE


def parse_citation_line(line: str) -> List[Citation]:
    """Turn one candidate line into zero or more citations.

    A line with a single URL is titled by everything else on the line; a line
    listing several URLs is titled segment by segment.
    """
    links = list(_MD_LINK_RE.finditer(line))
    if links:
        return [Citation(title=_clean_citation_title(m.group(1)), url=_clean_url(m.group(2)))
                for m in links]

    matches = list(URL_RE.finditer(line))
    if not matches:
        return []
    if len(matches) == 1:
        m = matches[0]
        title = line[:m.start()] + " " + line[m.end():]
        return [Citation(title=_clean_citation_title(title), url=_clean_url(m.group(0)))]

    citations = []
    previous_end = 0
    for m in matches:
        citations.append(Citation(
            title=_clean_citation_title(line[previous_end:m.start()]),
            url=_clean_url(m.group(0)),
        ))
        previous_end = m.end()
    return citations


def dedupe_citations(citations: Iterable[Citation]) -> List[Citation]:
    """Drop repeated URLs, keeping the first occurrence."""
    seen = set()
    unique = []
    for citation in citations:
        key = citation_key(citation.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(citation)
    return unique


def extract_citations(lines: List[str]) -> List[Citation]:
    start = None
    for index, line in enumerate(lines):
        if is_sources_label(line):
            start = index
            break
    if start is None:
        return []

    candidates = []
    rest = SOURCES_LABEL_RE.match(lines[start].strip()).group("rest")
    if rest and rest.strip():
        candidates.append(rest)
    for line in lines[start + 1:]:
        stripped = line.strip()
        if not stripped:
            break
        if is_heading_like(stripped) and not URL_RE.search(stripped):
            break
        candidates.append(stripped)

    citations = []
    for candidate in candidates:
        citations.extend(parse_citation_line(candidate))
    return dedupe_citations(citations)


def extract_bullets(lines: List[str]) -> List[str]:
    bullets: List[str] = []
    after_bullet = False
    in_citations = False
    for line in lines:
        stripped = line.strip()
        if not stripped:
            after_bullet = False
            in_citations = False
            continue
        if is_sources_label(stripped):
            after_bullet = False
            in_citations = True
            continue
        if in_citations:
            if URL_RE.search(stripped) or not is_heading_like(stripped):
                continue
            in_citations = False
        if CONTENTS_LABEL_RE.match(stripped):
            after_bullet = False
            continue
        match = BULLET_RE.match(stripped)
        if match:
            text = strip_markup(stripped[match.end():])
            if text:
                bullets.append(text)
                after_bullet = True
            continue
        if after_bullet:
            bullets[-1] = f"{bullets[-1]} {strip_markup(stripped)}"
    return bullets


def fallback_paragraphs(lines: List[str]) -> List[str]:
    """Plain paragraphs of a section with no bullet lines."""
    paragraphs: List[str] = []
    current: List[str] = []
    in_citations = False
    for line in lines + [""]:
        stripped = line.strip()
        if not stripped:
            if current:
                paragraphs.append(" ".join(current))
                current = []
            in_citations = False
            continue
        if is_sources_label(stripped):
            in_citations = True
            continue
        if in_citations or CONTENTS_LABEL_RE.match(stripped):
            continue
        text = strip_markup(stripped)
        if text:
            current.append(text)
    return paragraphs


def extract_exposure(text: str) -> Optional[float]:
    for match in _EXPOSURE_RE.finditer(text):
        try:
            return float(match.group(1))
        except ValueError:
            continue
    return None


def extract(section: Section, resolver: Optional[TickerResolver] = None) -> Extraction:
    """Extract entities from one section.

    Raises:
        ParseError: If the section has neither bullets nor paragraph text.
    """
    resolver = resolver or DEFAULT_RESOLVER
    lines = section.body.split("\n") if section.body else []

    bullets = extract_bullets(lines) or fallback_paragraphs(lines)
    if not bullets:
        raise ParseError(f"Section '{section.heading}' has no bullets or paragraph text")

    return Extraction(
        bullets=bullets,
        citations=extract_citations(lines),
        ticker_tag=resolver.resolve(section.heading, section.body),
        exposure=extract_exposure(f"{section.heading}\n{section.body}"),
    )
