"""Assemble extracted cards into a Digest, flat or grouped by ticker."""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..contracts import Card, CardGroup, Category, Citation, Digest
from .extractor import GENERAL_TAGS, dedupe_citations

logger = logging.getLogger(__name__)

DEFAULT_DIGEST_TITLE = "Portfolio Digest"


class AggregationMode(Enum):
    FLAT = "flat"
    GROUPED = "grouped"


def dedupe_cards(cards: Iterable[Card]) -> List[Card]:
    """Drop cards repeating an earlier card's title and bullets, preserving order."""
    seen = set()
    unique = []
    for card in cards:
        key = (card.title.strip().lower(), tuple(b.strip().lower() for b in card.bullets))
        if key in seen:
            continue
        seen.add(key)
        unique.append(card)
    return unique


def group_cards(cards: List[Card], general_tags: Iterable[str] = GENERAL_TAGS) -> List[CardGroup]:
    """Merge cards per ticker in order of first appearance.

    Untagged cards and cards carrying a general pseudo-tag stay on their own.
    """
    general = frozenset(general_tags)
    order: List[object] = []
    members: Dict[object, List[Card]] = {}
    for position, card in enumerate(cards):
        if card.ticker_tag and card.ticker_tag not in general:
            key: object = card.ticker_tag
        else:
            key = ("standalone", position)
        if key not in members:
            order.append(key)
            members[key] = []
        members[key].append(card)

    groups = []
    for key in order:
        grouped = members[key]
        sources: List[Citation] = dedupe_citations(
            citation for card in grouped for citation in card.sources
        )
        groups.append(CardGroup(ticker_tag=grouped[0].ticker_tag, cards=grouped, sources=sources))
    return groups


def aggregate(cards: List[Card],
              mode: AggregationMode = AggregationMode.FLAT,
              title: str = DEFAULT_DIGEST_TITLE,
              generated_at: Optional[datetime] = None,
              digest_id: Optional[str] = None,
              time_label: str = "",
              source_document_id: Optional[str] = None) -> Digest:
    """Build the final Digest.

    Args:
        cards: Cards in section order.
        mode: FLAT keeps one card per section; GROUPED drops exact duplicates
            and merges cards per ticker.
        title: Digest title.
        generated_at: Creation time (defaults to now).
        digest_id: Stable id (defaults to the millisecond timestamp).
        time_label: Display label such as "Morning Digest • 2026-10-19 08:00".
        source_document_id: Id of the remote document the text came from.

    Returns:
        An immutable Digest.
    """
    generated_at = generated_at or datetime.now()

    groups: List[CardGroup] = []
    ordered = list(cards)
    if mode == AggregationMode.GROUPED:
        unique = dedupe_cards(cards)
        if len(unique) < len(cards):
            logger.info(f"Dropped {len(cards) - len(unique)} duplicate cards")
        groups = group_cards(unique)
        ordered = [card for group in groups for card in group.cards]

    return Digest(
        id=digest_id or str(int(generated_at.timestamp() * 1000)),
        title=title or DEFAULT_DIGEST_TITLE,
        generated_at=generated_at,
        time_label=time_label,
        cards=ordered,
        groups=groups,
        source_document_id=source_document_id,
    )


def cards_by_category(digest: Digest) -> Dict[Category, List[Card]]:
    """Renderer view: cards bucketed by category, digest order kept inside each bucket.

    Exact duplicates (same title and bullets) are shown once.
    """
    view: Dict[Category, List[Card]] = {category: [] for category in Category}
    for card in dedupe_cards(digest.cards):
        view[card.category].append(card)
    return view
