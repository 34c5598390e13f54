"""Heading-only card categorization.

Keyword tables are data: a trailing ``*`` makes the entry a word prefix
(``risk*`` matches "risks", "risky"), otherwise it must match a whole word.
Consideration keywords are checked before opportunity keywords, so a heading
carrying both ("Regulatory Growth Concerns") is a Consideration.
"""

import re
from typing import Iterable, List, Sequence, Tuple

from ..contracts import Category

CONSIDERATION_KEYWORDS: Tuple[str, ...] = (
    "risk*", "concern*", "warn*", "regulat*", "headwind*", "lawsuit*",
    "litigation", "probe", "probes", "investigat*", "downgrade*", "declin*",
    "slump*", "plung*", "selloff", "sell-off", "tariff*", "sanction*",
    "antitrust", "caution*", "volatil*", "uncertain*", "delay*", "miss",
    "misses", "missed", "loss", "losses", "layoff*", "recall*", "dilution",
    "short seller*", "pressure*",
)

OPPORTUNITY_KEYWORDS: Tuple[str, ...] = (
    "growth", "grows", "growing", "momentum", "record*", "surges", "surged",
    "surging", "upgrade*", "beat", "beats", "rally", "rallies", "rallied",
    "expansion", "expands", "partnership*", "breakthrough*", "outperform*",
    "opportunit*", "tailwind*", "soar*", "jump*", "boost*", "accelerat*",
)


def compile_keywords(keywords: Iterable[str]) -> re.Pattern:
    parts = []
    for keyword in keywords:
        if keyword.endswith("*"):
            parts.append(re.escape(keyword[:-1]) + r"\w*")
        else:
            parts.append(re.escape(keyword) + r"\b")
    return re.compile(r"\b(?:" + "|".join(parts) + r")")


DEFAULT_RULES: Tuple[Tuple[Category, Sequence[str]], ...] = (
    (Category.CONSIDERATION, CONSIDERATION_KEYWORDS),
    (Category.OPPORTUNITY, OPPORTUNITY_KEYWORDS),
)


class Categorizer:
    """Ordered keyword rules evaluated against the lower-cased heading."""

    def __init__(self,
                 rules: Sequence[Tuple[Category, Sequence[str]]] = DEFAULT_RULES,
                 default: Category = Category.NEWS):
        self.default = default
        self._rules: List[Tuple[Category, re.Pattern]] = [
            (category, compile_keywords(keywords)) for category, keywords in rules
        ]

    def categorize(self, heading: str) -> Category:
        text = (heading or "").lower()
        for category, pattern in self._rules:
            if pattern.search(text):
                return category
        return self.default


_DEFAULT = Categorizer()


def categorize(heading: str) -> Category:
    return _DEFAULT.categorize(heading)
