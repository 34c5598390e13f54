"""Stable payload schemas for portfolio, digest and scheduler state."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp into a naive local datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class Category(Enum):
    """Display bucket for a digest card."""
    NEWS = "News"
    CONSIDERATION = "Consideration"
    OPPORTUNITY = "Opportunity"


@dataclass
class Holding:
    ticker: str
    quantity: float
    dollar_value: float
    exposure: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "quantity": self.quantity,
            "dollar_value": self.dollar_value,
            "exposure": self.exposure,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Holding":
        return cls(
            ticker=payload["ticker"],
            quantity=float(payload["quantity"]),
            dollar_value=float(payload["dollar_value"]),
            exposure=float(payload.get("exposure", 0.0)),
        )


@dataclass
class Portfolio:
    """A full set of holdings, replaced wholesale on every save."""

    holdings: List[Holding]
    total_value: float
    last_updated: datetime = field(default_factory=datetime.now)
    input_method: str = "manual"

    @property
    def tickers(self) -> List[str]:
        return [h.ticker for h in self.holdings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "holdings": [h.to_dict() for h in self.holdings],
            "total_value": self.total_value,
            "last_updated": self.last_updated.isoformat(),
            "input_method": self.input_method,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Portfolio":
        return cls(
            holdings=[Holding.from_dict(h) for h in payload.get("holdings", [])],
            total_value=float(payload.get("total_value", 0.0)),
            last_updated=parse_timestamp(payload.get("last_updated")) or datetime.now(),
            input_method=payload.get("input_method", "manual"),
        )


@dataclass(frozen=True)
class InlineContent:
    """Document content already available as text."""
    text: str


@dataclass(frozen=True)
class RemoteContent:
    """Document content that must be downloaded (and possibly extracted)."""
    uri: str
    content_type: Optional[str] = None


ContentRef = Union[InlineContent, RemoteContent]


@dataclass
class DocumentMeta:
    id: str
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    title: Optional[str] = None
    job_id: Optional[str] = None
    content: Optional[ContentRef] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.updated_at or self.created_at


@dataclass(frozen=True)
class Section:
    heading: str
    body: str


@dataclass(frozen=True)
class Citation:
    title: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "url": self.url}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Citation":
        return cls(title=payload.get("title") or "Source", url=payload["url"])


@dataclass(frozen=True)
class Card:
    """One displayable unit derived from a text section."""

    title: str
    bullets: List[str]
    sources: List[Citation]
    category: Category
    ticker_tag: Optional[str] = None
    exposure: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "bullets": list(self.bullets),
            "sources": [s.to_dict() for s in self.sources],
            "category": self.category.value,
            "ticker_tag": self.ticker_tag,
            "exposure": self.exposure,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Card":
        exposure = payload.get("exposure")
        return cls(
            title=payload["title"],
            bullets=list(payload.get("bullets", [])),
            sources=[Citation.from_dict(s) for s in payload.get("sources", [])],
            category=Category(payload.get("category", Category.NEWS.value)),
            ticker_tag=payload.get("ticker_tag"),
            exposure=float(exposure) if exposure is not None else None,
        )


@dataclass(frozen=True)
class CardGroup:
    """Cards merged under one ticker in grouped aggregation mode."""

    ticker_tag: Optional[str]
    cards: List[Card]
    sources: List[Citation]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker_tag": self.ticker_tag,
            "cards": [c.to_dict() for c in self.cards],
            "sources": [s.to_dict() for s in self.sources],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CardGroup":
        return cls(
            ticker_tag=payload.get("ticker_tag"),
            cards=[Card.from_dict(c) for c in payload.get("cards", [])],
            sources=[Citation.from_dict(s) for s in payload.get("sources", [])],
        )


@dataclass(frozen=True)
class Digest:
    """Structured output of one generation cycle. Never mutated after creation."""

    title: str
    generated_at: datetime
    cards: List[Card]
    id: str = ""
    time_label: str = ""
    groups: List[CardGroup] = field(default_factory=list)
    source_document_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "generated_at": self.generated_at.isoformat(),
            "time_label": self.time_label,
            "cards": [c.to_dict() for c in self.cards],
            "groups": [g.to_dict() for g in self.groups],
            "source_document_id": self.source_document_id,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Digest":
        return cls(
            id=payload.get("id", ""),
            title=payload.get("title", ""),
            generated_at=parse_timestamp(payload.get("generated_at")) or datetime.now(),
            time_label=payload.get("time_label", ""),
            cards=[Card.from_dict(c) for c in payload.get("cards", [])],
            groups=[CardGroup.from_dict(g) for g in payload.get("groups", [])],
            source_document_id=payload.get("source_document_id"),
        )


@dataclass
class ScheduleState:
    enabled: bool = False
    last_run_key: Optional[str] = None
