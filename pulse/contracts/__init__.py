"""Typed contracts shared by the portfolio, parsing and scheduling layers."""

from .schemas import (
    Card,
    CardGroup,
    Category,
    Citation,
    ContentRef,
    Digest,
    DocumentMeta,
    Holding,
    InlineContent,
    Portfolio,
    RemoteContent,
    ScheduleState,
    Section,
)

__all__ = [
    "Card",
    "CardGroup",
    "Category",
    "Citation",
    "ContentRef",
    "Digest",
    "DocumentMeta",
    "Holding",
    "InlineContent",
    "Portfolio",
    "RemoteContent",
    "ScheduleState",
    "Section",
]
