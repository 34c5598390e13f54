"""Tests for per-section entity extraction."""

import pytest

from pulse.contracts import Citation, Section
from pulse.errors import ParseError
from pulse.parsing import TickerResolver, extract
from pulse.parsing.extractor import (
    citation_key,
    dedupe_citations,
    extract_bullets,
    extract_citations,
    extract_exposure,
    fallback_paragraphs,
    parse_citation_line,
)


class TestCitations:
    """Test suite for citation parsing and dedup."""

    def test_title_then_url_in_parens(self):
        assert parse_citation_line("- Reuters (https://reuters.com/x)") == [
            Citation("Reuters", "https://reuters.com/x")
        ]

    def test_markdown_links(self):
        line = "[CNBC](https://cnbc.com/a), [WSJ](https://wsj.com/b)"
        assert parse_citation_line(line) == [
            Citation("CNBC", "https://cnbc.com/a"),
            Citation("WSJ", "https://wsj.com/b"),
        ]

    def test_bare_url_gets_default_title(self):
        assert parse_citation_line("https://example.com/story.") == [
            Citation("Source", "https://example.com/story")
        ]

    def test_several_urls_titled_per_segment(self):
        line = "Reuters https://reuters.com/a Bloomberg https://bloomberg.com/b"
        assert [c.title for c in parse_citation_line(line)] == ["Reuters", "Bloomberg"]

    def test_url_with_balanced_parens_is_kept(self):
        url = "https://en.wikipedia.org/wiki/Nvidia_(company)"
        assert parse_citation_line(f"Wiki ({url})")[0].url == url

    def test_dedupe_by_url_keeps_first(self):
        citations = [
            Citation("Reuters", "https://Reuters.com/x"),
            Citation("Reuters again", "https://reuters.com/x"),
            Citation("Other", "https://other.com/y"),
        ]
        assert dedupe_citations(citations) == [citations[0], citations[2]]

    def test_citation_key_keeps_path_case(self):
        assert citation_key("HTTPS://Example.COM/Path") == "https://example.com/Path"

    def test_block_with_inline_first_entry(self):
        lines = [
            "- point",
            "**Citations:** Reuters (https://reuters.com/a)",
            "- Bloomberg (https://bloomberg.com/b)",
            "- Reuters (https://reuters.com/a)",
        ]
        assert [c.url for c in extract_citations(lines)] == [
            "https://reuters.com/a", "https://bloomberg.com/b",
        ]

    def test_block_ends_at_blank_line(self):
        lines = ["Sources:", "- A (https://a.com)", "", "- B (https://b.com)"]
        assert [c.url for c in extract_citations(lines)] == ["https://a.com"]

    def test_no_label_no_citations(self):
        assert extract_citations(["- see https://a.com"]) == []


class TestBullets:
    """Test suite for bullet extraction."""

    def test_markers_and_continuations(self):
        lines = [
            "• First point",
            "  continues here",
            "- Second **point**",
            "* Third",
            "12. Fourth",
        ]
        assert extract_bullets(lines) == [
            "First point continues here", "Second point", "Third", "Fourth",
        ]

    def test_citation_lines_are_not_bullets(self):
        lines = ["- Real point", "Sources:", "- Reuters (https://reuters.com/x)"]
        assert extract_bullets(lines) == ["Real point"]

    def test_contents_label_skipped(self):
        assert extract_bullets(["Contents:", "- one"]) == ["one"]

    def test_paragraph_fallback(self):
        lines = ["First para line", "wraps here.", "", "Second para.", "Sources:", "https://x.com"]
        assert fallback_paragraphs(lines) == ["First para line wraps here.", "Second para."]


class TestTickerResolver:
    """Test suite for ticker inference."""

    def test_company_alias_in_heading(self):
        assert TickerResolver().resolve("NVIDIA beats estimates", "") == "NVDA"

    def test_aliases_match_whole_words(self):
        assert TickerResolver().from_heading("Intelligence agencies sign deal") is None

    def test_company_alias_wins_over_market(self):
        assert TickerResolver().resolve("Palantir leads market rally", "") == "PLTR"

    def test_held_symbol_wins_over_general_tag(self):
        resolver = TickerResolver().with_symbols(["PLTR", "AMD"])
        assert resolver.resolve("PLTR: Market reacts to Army contract", "- shares rose") == "PLTR"
        assert resolver.resolve("AMD gains portfolio share in data centers", "- shares rose") == "AMD"

    def test_market_pseudo_tag(self):
        assert TickerResolver().resolve("Wall Street closes higher", "") == "MARKET"

    def test_portfolio_symbols_are_case_sensitive(self):
        resolver = TickerResolver().with_symbols(["ON"])
        assert resolver.from_heading("ON Semiconductor guides higher") == "ON"
        assert resolver.from_heading("Shares moved on news") is None

    def test_market_context_token_in_body(self):
        body = "Market Context: SMA crossover for OKLO and IONQ"
        assert TickerResolver(aliases=()).from_body(body) == "OKLO"

    def test_parenthesized_ticker_in_body(self):
        body = "Shares of GE Vernova Inc. (GEV) rose; (CEO) comments followed"
        assert TickerResolver(aliases=()).from_body(body) == "GEV"

    @pytest.mark.parametrize("body, expected", [
        ("Shares of NVIDIA Corp. (NASDAQ: NVDA) rose", "NVDA"),
        ("GE Vernova (NYSE: GEV) extended gains", "GEV"),
    ])
    def test_exchange_prefixed_ticker_in_body(self, body, expected):
        assert TickerResolver(aliases=()).from_body(body) == expected

    def test_no_ticker(self):
        assert TickerResolver().resolve("Chip Demand Surge", "- Orders up 40%") is None


class TestExtract:
    """Test suite for extract()."""

    def test_scenario_section(self):
        section = Section(
            "Chip Demand Surge",
            "• Orders up 40%\n• New fab announced\nSources:\n- Reuters (https://reuters.com/x)",
        )
        result = extract(section)

        assert result.bullets == ["Orders up 40%", "New fab announced"]
        assert result.citations == [Citation("Reuters", "https://reuters.com/x")]
        assert result.ticker_tag is None
        assert result.exposure is None

    def test_exposure_from_text(self):
        assert extract_exposure("IONQ is 12.5% of your portfolio") == 12.5
        assert extract_exposure("Revenue up 40%") is None

    def test_exposure_found_in_heading(self):
        section = Section("Oklo (8.2% of portfolio): License filed", "- NRC accepted the filing")
        assert extract(section).exposure == 8.2

    def test_paragraph_section_uses_fallback(self):
        result = extract(Section("Quiet day", "Nothing material happened today."))
        assert result.bullets == ["Nothing material happened today."]

    @pytest.mark.parametrize("body", ["", "Sources:\n- https://a.com", "Contents:"])
    def test_empty_section_raises(self, body):
        with pytest.raises(ParseError):
            extract(Section("Heading only", body))
