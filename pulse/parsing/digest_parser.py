"""Raw digest text -> Digest: normalize, segment, extract, categorize, aggregate."""

import logging
import re
from datetime import datetime
from typing import Callable, List, Optional

from ..contracts import Card, Digest, Section
from ..errors import ParseError
from .aggregator import DEFAULT_DIGEST_TITLE, AggregationMode, aggregate
from .categorizer import categorize
from .extractor import DEFAULT_RESOLVER, TickerResolver, extract
from .normalizer import normalize
from .patterns import is_sources_label, strip_markup
from .segmenter import segment

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"^(?:#{1,3}\s*)?(?P<title>.*\bdigest\b.*)$", re.IGNORECASE)

ExposureLookup = Callable[[str], Optional[float]]


def time_label(hour: int) -> str:
    """Time-of-day label used in digest titles and generation prompts."""
    if 5 <= hour < 12:
        return "Morning"
    if 12 <= hour < 17:
        return "Afternoon"
    if 17 <= hour < 21:
        return "Evening"
    return "Night"


def extract_title(text: str, default: str = DEFAULT_DIGEST_TITLE) -> str:
    """First line naming the digest (e.g. "# Scout Pulse Portfolio Digest"), else ``default``."""
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped or is_sources_label(stripped) or "http" in stripped:
            continue
        match = _TITLE_RE.match(stripped)
        if match:
            title = strip_markup(match.group("title")).strip(" :-")
            if title:
                return title
    return default


def build_card(section: Section,
               resolver: Optional[TickerResolver] = None,
               exposure_lookup: Optional[ExposureLookup] = None) -> Card:
    """Turn one section into a card.

    Raises:
        ParseError: If the section yields no bullets and no fallback paragraph.
    """
    resolver = resolver or DEFAULT_RESOLVER
    extraction = extract(section, resolver)
    exposure = extraction.exposure
    tag = extraction.ticker_tag
    if exposure is None and tag and exposure_lookup and not resolver.is_general(tag):
        exposure = exposure_lookup(tag)
    return Card(
        title=section.heading or extraction.bullets[0],
        bullets=extraction.bullets,
        sources=extraction.citations,
        category=categorize(section.heading),
        ticker_tag=tag,
        exposure=exposure,
    )


def parse_digest(raw: str,
                 mode: AggregationMode = AggregationMode.FLAT,
                 resolver: Optional[TickerResolver] = None,
                 exposure_lookup: Optional[ExposureLookup] = None,
                 generated_at: Optional[datetime] = None,
                 source_document_id: Optional[str] = None) -> Digest:
    """Parse free-form digest text into a Digest.

    Sections that yield nothing usable are dropped and logged; they never fail
    the whole parse. The result may therefore have zero cards.
    """
    text = normalize(raw)
    cards: List[Card] = []
    for section in segment(text):
        try:
            cards.append(build_card(section, resolver, exposure_lookup))
        except ParseError as e:
            logger.warning(f"Dropping section: {e}")

    generated_at = generated_at or datetime.now()
    label = f"{time_label(generated_at.hour)} Digest • {generated_at.strftime('%Y-%m-%d %H:%M')}"
    digest = aggregate(
        cards,
        mode=mode,
        title=extract_title(text),
        generated_at=generated_at,
        time_label=label,
        source_document_id=source_document_id,
    )
    logger.info(f"Parsed digest '{digest.title}': {len(digest.cards)} cards from {len(text)} chars")
    return digest
