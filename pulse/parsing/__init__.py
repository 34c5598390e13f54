"""Deterministic conversion of free-form digest text into display cards."""

from .aggregator import AggregationMode, aggregate, cards_by_category, group_cards
from .categorizer import Categorizer, categorize
from .digest_parser import build_card, extract_title, parse_digest, time_label
from .extractor import GENERAL_TAGS, Extraction, TickerResolver, extract
from .normalizer import normalize
from .segmenter import HEADING_STRATEGIES, segment

__all__ = [
    "AggregationMode",
    "aggregate",
    "cards_by_category",
    "group_cards",
    "Categorizer",
    "categorize",
    "build_card",
    "extract_title",
    "parse_digest",
    "time_label",
    "GENERAL_TAGS",
    "Extraction",
    "TickerResolver",
    "extract",
    "normalize",
    "HEADING_STRATEGIES",
    "segment",
]
