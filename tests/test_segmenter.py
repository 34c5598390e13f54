"""Tests for heading detection and section segmentation."""

import pytest

from pulse.contracts import Section
from pulse.parsing import normalize, segment
from pulse.parsing.segmenter import (
    bold_line,
    clean_heading,
    detect_heading,
    label_headline,
    markdown_header,
    numbered_marker,
)


class TestHeadingStrategies:
    """Each strategy is checked on its own."""

    def test_numbered_marker(self):
        match = numbered_marker(["2) Chip Demand Surge"], 0)
        assert match.strategy == "numbered_marker"
        assert match.text == "Chip Demand Surge"

    def test_article_prefix_is_removed(self):
        assert numbered_marker(["Article 3 - Oklo Licensing Update"], 0).text == "Oklo Licensing Update"
        assert numbered_marker(["Article 4"], 0).text == "Article 4"

    def test_markdown_header(self):
        assert markdown_header(["## **NVIDIA Earnings**"], 0).text == "NVIDIA Earnings"
        assert markdown_header(["#### too deep"], 0) is None

    def test_bold_line(self):
        assert bold_line(["**Palantir Contract Win:**"], 0).text == "Palantir Contract Win"
        assert bold_line(["**bold** then text"], 0) is None

    def test_label_headline_needs_bullet_nearby(self):
        lines = ["NVDA: Blackwell shipments begin", "", "Some context.", "- first point"]
        assert label_headline(lines, 0).text == "NVDA: Blackwell shipments begin"
        assert label_headline(["NVDA: Blackwell shipments begin", "Just prose."], 0) is None

    def test_label_headline_gives_up_after_lookahead(self):
        lines = ["IONQ: New system"] + [f"prose line {i}" for i in range(6)] + ["- late bullet"]
        assert label_headline(lines, 0) is None

    def test_sources_label_is_never_a_heading(self):
        lines = ["**Sources:**", "- Reuters (https://reuters.com/x)"]
        assert detect_heading(lines, 0) is None

    def test_clean_heading_strips_markers(self):
        assert clean_heading("### 1. **Market Context:**") == "Market Context"


class TestSegment:
    """Test suite for segment()."""

    def test_scenario_numbered_section(self):
        text = normalize(
            "1. Chip Demand Surge\n• Orders up 40%\n• New fab announced\n"
            "Sources:\n- Reuters (https://reuters.com/x)"
        )
        sections = segment(text)

        assert len(sections) == 1
        assert sections[0].heading == "Chip Demand Surge"
        assert sections[0].body.startswith("• Orders up 40%")

    def test_scenario_paragraph_fallback(self):
        text = "Markets were calm today\nVolumes were light.\n\nOil slipped overnight\nEnergy names lagged."
        sections = segment(text)

        assert len(sections) == 2
        assert sections[0].heading == "Markets were calm today"
        assert sections[1].heading == "Oil slipped overnight"
        assert sections[1].body == "Energy names lagged."

    def test_single_line_paragraph_keeps_text_as_body(self):
        assert segment("Only one line") == [Section("Only one line", "Only one line")]

    def test_numbered_citations_stay_in_section(self):
        text = (
            "1. NVIDIA Update\n- Shipments began\nSources:\n"
            "1. Reuters https://reuters.com/a\n2. Bloomberg https://bloomberg.com/b\n\n"
            "2. Palantir Update\n- Contract signed"
        )
        sections = segment(text)

        assert [s.heading for s in sections] == ["NVIDIA Update", "Palantir Update"]
        assert "https://bloomberg.com/b" in sections[0].body

    def test_title_line_is_a_markdown_section(self, sample_digest_text):
        sections = segment(normalize(sample_digest_text))
        assert sections[0].heading == "Scout Pulse Portfolio Digest"
        assert sections[1].heading == "NVIDIA: Data Center Revenue Hits Record on AI Demand"
        assert len(sections) == 4

    def test_preamble_before_first_heading_is_dropped(self):
        sections = segment("Here is your update.\n\n1. Oklo Licensing\n- NRC review advanced")
        assert sections == [Section("Oklo Licensing", "- NRC review advanced")]

    def test_mixed_heading_styles(self):
        text = (
            "## Palantir\n- Won Army contract\n\n"
            "**Oklo Licensing**\n- NRC review advanced\n\n"
            "IONQ: Quantum networking deal\n- Signed with a telecom"
        )
        assert [s.heading for s in segment(text)] == [
            "Palantir", "Oklo Licensing", "IONQ: Quantum networking deal",
        ]

    @pytest.mark.parametrize("text", [
        "x",
        "   ",
        "- only a bullet",
        "Sources:\n- https://example.com",
        "\n\n\nword\n\n\n",
        "**",
    ])
    def test_non_empty_text_yields_at_least_one_section(self, text):
        assert len(segment(text)) >= 1
