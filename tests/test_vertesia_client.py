"""Tests for the Vertesia HTTP client."""

from datetime import datetime
from unittest.mock import Mock

import pytest
import requests

from pulse.ai import VertesiaClient, build_digest_prompt
from pulse.config import NewsConfig, VertesiaConfig
from pulse.contracts import Holding, InlineContent, Portfolio, RemoteContent
from pulse.errors import ContentError, TransportError


@pytest.fixture
def portfolio():
    return Portfolio(
        holdings=[
            Holding("PLTR", 5, 1000, exposure=16.67),
            Holding("NVDA", 10, 5000, exposure=83.33),
        ],
        total_value=6000,
    )


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    config = VertesiaConfig(api_base="https://api.example.test/api/v1/", api_key="secret",
                            environment_id="env-1", model="model-x")
    return VertesiaClient(config, NewsConfig(), session=session)


def json_response(payload, status=200):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.reason = "OK" if response.ok else "Unauthorized"
    response.json.return_value = payload
    return response


def test_prompt_lists_holdings_by_exposure(portfolio):
    prompt = build_digest_prompt(portfolio, NewsConfig(lookback_days=3), now=datetime(2026, 10, 19, 14, 5))

    assert prompt.index("NVDA (83.3% of portfolio") < prompt.index("PLTR (16.7% of portfolio")
    assert "Last 3 days" in prompt
    assert "$6,000.00" in prompt
    assert "(Afternoon)" in prompt


class TestTrigger:
    """Test suite for trigger()."""

    def test_posts_conversation_payload(self, client, session, portfolio):
        session.request.return_value = json_response({"runId": "run-42"})

        assert client.trigger(portfolio) == "run-42"

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url == "https://api.example.test/api/v1/execute/async"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        body = kwargs["json"]
        assert body["type"] == "conversation"
        assert body["interaction"] == "PortfolioPulse"
        assert body["config"] == {"environment": "env-1", "model": "model-x"}
        assert "NVDA" in body["data"]["task"]

    def test_missing_job_id(self, client, session, portfolio):
        session.request.return_value = json_response({})
        assert client.trigger(portfolio) is None

    def test_http_error_becomes_transport_error(self, client, session, portfolio):
        session.request.return_value = json_response({}, status=401)

        with pytest.raises(TransportError) as excinfo:
            client.trigger(portfolio)
        assert excinfo.value.status_code == 401
        assert client.metrics.summary()["trigger"]["failures"] == 1

    def test_connection_error_becomes_transport_error(self, client, session, portfolio):
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(TransportError):
            client.trigger(portfolio)


class TestDocuments:
    """Test suite for list_documents() and fetch_content()."""

    def test_list_documents_maps_payload(self, client, session):
        session.request.return_value = json_response({"objects": [
            {
                "id": "doc-1",
                "name": "portfolio_digest.md",
                "created_at": "2026-10-19T08:01:00",
                "properties": {"title": "Morning Digest", "run_id": "run-42"},
                "text": "1. NVIDIA\n- up",
            },
            {
                "id": "doc-2",
                "name": "digest.pdf",
                "updated_at": "2026-10-19T08:02:00",
                "content": {"source": "gs://bucket/digest.pdf", "type": "application/pdf"},
            },
        ]})

        docs = client.list_documents()

        assert [d.id for d in docs] == ["doc-1", "doc-2"]
        assert docs[0].title == "Morning Digest"
        assert docs[0].job_id == "run-42"
        assert docs[0].created_at == datetime(2026, 10, 19, 8, 1)
        assert docs[0].content == InlineContent("1. NVIDIA\n- up")
        assert docs[1].content == RemoteContent("gs://bucket/digest.pdf", "application/pdf")
        assert docs[1].timestamp == datetime(2026, 10, 19, 8, 2)

    def test_inline_content_needs_no_request(self, client, session):
        assert client.fetch_content(InlineContent("hello")) == "hello"
        session.request.assert_not_called()
        session.get.assert_not_called()

    def test_remote_text_download(self, client, session):
        session.request.return_value = json_response({"url": "https://cdn.example.test/d.md"})
        download = Mock()
        download.headers = {"Content-Type": "text/markdown"}
        download.text = "digest body"
        session.get.return_value = download

        assert client.fetch_content(RemoteContent("store://d.md")) == "digest body"
        session.get.assert_called_once_with("https://cdn.example.test/d.md", timeout=30.0)

    def test_remote_pdf_uses_extractor(self, session):
        extractor = Mock(return_value="pdf text")
        client = VertesiaClient(VertesiaConfig(api_key="k"), pdf_extractor=extractor, session=session)
        download = Mock()
        download.headers = {}
        download.content = b"%PDF-1.7"
        session.get.return_value = download

        assert client.fetch_content(RemoteContent("https://cdn.example.test/d.pdf")) == "pdf text"
        extractor.assert_called_once_with(b"%PDF-1.7")

    def test_remote_pdf_without_extractor(self, client, session):
        download = Mock()
        download.headers = {"Content-Type": "application/pdf"}
        session.get.return_value = download

        with pytest.raises(ContentError):
            client.fetch_content(RemoteContent("https://cdn.example.test/d.pdf"))
