"""End-to-end tests for raw text -> Digest."""

from datetime import datetime

from pulse.contracts import Category, Citation
from pulse.parsing import AggregationMode, TickerResolver, extract_title, parse_digest, time_label

MORNING = datetime(2026, 10, 19, 8, 0)


def test_scenario_single_card():
    raw = (
        "1. Chip Demand Surge\n• Orders up 40%\n• New fab announced\n"
        "Sources:\n- Reuters (https://reuters.com/x)"
    )
    digest = parse_digest(raw, generated_at=MORNING)

    assert len(digest.cards) == 1
    card = digest.cards[0]
    assert card.title == "Chip Demand Surge"
    assert card.bullets == ["Orders up 40%", "New fab announced"]
    assert card.sources == [Citation("Reuters", "https://reuters.com/x")]
    assert card.category == Category.NEWS
    assert digest.title == "Portfolio Digest"


def test_full_digest(sample_digest_text):
    digest = parse_digest(sample_digest_text, generated_at=MORNING, source_document_id="doc-1")

    assert digest.title == "Scout Pulse Portfolio Digest"
    assert digest.time_label == "Morning Digest • 2026-10-19 08:00"
    assert digest.source_document_id == "doc-1"
    assert [c.ticker_tag for c in digest.cards] == ["NVDA", "PLTR", "MARKET"]
    assert [c.category for c in digest.cards] == [
        Category.OPPORTUNITY, Category.CONSIDERATION, Category.NEWS,
    ]
    assert len(digest.cards[0].sources) == 2


def test_exposure_filled_from_portfolio_for_company_cards(sample_digest_text):
    exposures = {"NVDA": 62.5, "PLTR": 37.5}
    digest = parse_digest(sample_digest_text, exposure_lookup=exposures.get, generated_at=MORNING)

    assert [c.exposure for c in digest.cards] == [62.5, 37.5, None]


def test_grouped_mode_merges_ticker_cards():
    raw = (
        "1. NVIDIA: Blackwell ramp\n- Shipments began\n"
        "Sources:\n- Reuters (https://reuters.com/a)\n\n"
        "2. Oklo: License filed\n- NRC accepted\n\n"
        "3. NVIDIA: New export rules\n- Filing disclosed\n"
        "Sources:\n- Reuters (https://reuters.com/a)\n"
    )
    resolver = TickerResolver().with_symbols(["OKLO"])
    digest = parse_digest(raw, mode=AggregationMode.GROUPED, resolver=resolver, generated_at=MORNING)

    assert [g.ticker_tag for g in digest.groups] == ["NVDA", "OKLO"]
    assert len(digest.groups[0].cards) == 2
    assert len(digest.groups[0].sources) == 1


def test_unparseable_sections_are_dropped():
    raw = "1. Empty heading\n\n2. Real one\n- has a bullet"
    digest = parse_digest(raw, generated_at=MORNING)
    assert [c.title for c in digest.cards] == ["Real one"]


def test_empty_text_gives_empty_digest():
    assert parse_digest("   \n", generated_at=MORNING).cards == []


def test_extract_title_defaults():
    assert extract_title("1. Something\n- else") == "Portfolio Digest"
    assert extract_title("**Evening Digest:**\n1. x") == "Evening Digest"


def test_time_label_boundaries():
    assert [time_label(h) for h in (4, 5, 11, 12, 16, 17, 20, 21)] == [
        "Night", "Morning", "Morning", "Afternoon", "Afternoon", "Evening", "Evening", "Night",
    ]
