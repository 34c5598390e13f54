"""Text canonicalization applied before structural analysis.

Generated digests arrive as markdown, as text pulled out of PDFs, or as plain
prose. This step removes the typographic noise those sources introduce so the
segmenter and extractor only ever see ASCII quotes/dashes and one bullet glyph.
"""

import re

CANONICAL_BULLET = "•"

_SOFT_HYPHEN = "\u00ad"

_CHAR_MAP = {
    # quotes
    "‘": "'", "’": "'", "‚": "'", "‛": "'", "′": "'",
    "“": '"', "”": '"', "„": '"', "‟": '"', "″": '"',
    "«": '"', "»": '"',
    # dashes
    "‐": "-", "‑": "-", "‒": "-", "–": "-", "—": "-",
    "―": "-", "−": "-",
    # spaces
    "\u00a0": " ", "\u2009": " ", "\u202f": " ",
    "…": "...",
    # bullet glyphs
    "▪": CANONICAL_BULLET,
    "●": CANONICAL_BULLET,
    "·": CANONICAL_BULLET,
    "◦": CANONICAL_BULLET,
    "‣": CANONICAL_BULLET,
    "∙": CANONICAL_BULLET,
    "■": CANONICAL_BULLET,
}
_TRANSLATION = str.maketrans(_CHAR_MAP)

_LINE_WRAP_HYPHEN = re.compile(r"(?<=\w)-\n(?=\w)")
_BLANK_RUN = re.compile(r"\n{3,}")


def normalize(raw: str) -> str:
    """Canonicalize raw digest text.

    Dash folding runs before the line-wrap repair and whitespace trimming runs
    before it too, so a second pass never finds new ``-\\n`` joins and
    ``normalize(normalize(x)) == normalize(x)``.
    """
    if not raw:
        return ""
    text = raw.replace("\r", "").replace(_SOFT_HYPHEN, "")
    text = text.translate(_TRANSLATION)
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _LINE_WRAP_HYPHEN.sub("", text)
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip("\n")
