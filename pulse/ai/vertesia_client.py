"""Vertesia API client: digest generation trigger and generated-document access."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from ..config import NewsConfig, VertesiaConfig
from ..contracts import ContentRef, DocumentMeta, InlineContent, Portfolio, RemoteContent
from ..contracts.schemas import parse_timestamp
from ..errors import ContentError, TransportError
from ..observability import CallMetrics
from ..parsing import time_label
from .protocol import DocumentSource, GenerationService

logger = logging.getLogger(__name__)

PdfExtractor = Callable[[bytes], str]


def build_digest_prompt(portfolio: Portfolio, news: NewsConfig, now: Optional[datetime] = None) -> str:
    """Generation prompt listing holdings by exposure (largest first)."""
    now = now or datetime.now()
    holdings = sorted(portfolio.holdings, key=lambda h: h.exposure, reverse=True)
    holdings_text = "\n".join(
        f"{h.ticker} ({h.exposure:.1f}% of portfolio, {h.quantity:g} shares)" for h in holdings
    )
    lookback = news.lookback_days
    priority = news.min_exposure_for_priority

    prompt = f"""
Generate a portfolio news digest for the following holdings:

{holdings_text}

Portfolio Total Value: ${portfolio.total_value:,.2f}

Research Parameters:
- Time window: Last {lookback} days only (from {now.strftime('%Y-%m-%d')})
- Focus areas: Earnings, regulatory changes, product launches, M&A activity, analyst ratings, executive moves, material operational updates
- Tone: Professional, factual, investor-focused. No sensationalism, no emoji, no exaggeration
- Exposure weighting: Prioritize coverage depth based on portfolio exposure percentage (positions >{priority:g}% deserve more detail)

For each ticker with relevant news in the last {lookback} days:
1. A numbered headline line (10-15 words) naming the company, e.g. "1. NVIDIA: <headline>"
2. 2-4 bullet points ("- ") with specific facts, dates, and numbers
3. A "Sources:" line followed by one "- Title (URL)" line per article

Also provide:
- An overall digest title on the first line containing the word "Digest" (no date/time in title)
- Only include tickers that have material news in the {lookback}-day window
- If a ticker has no material news, explicitly state "No significant developments"

Current time: {now.strftime('%H:%M')} ({time_label(now.hour)})
Today's date: {now.strftime('%Y-%m-%d')}
"""
    return prompt.strip()


class VertesiaClient(GenerationService, DocumentSource):
    """HTTP client for the Vertesia execution and object-store APIs.

    Example:
        >>> client = VertesiaClient(config.vertesia, config.news)
        >>> job_id = client.trigger(portfolio)
        >>> docs = client.list_documents()
    """

    def __init__(self,
                 config: VertesiaConfig,
                 news: Optional[NewsConfig] = None,
                 pdf_extractor: Optional[PdfExtractor] = None,
                 session: Optional[requests.Session] = None,
                 metrics: Optional[CallMetrics] = None):
        self.config = config
        self.news = news or NewsConfig()
        self.base_url = config.api_base.rstrip('/')
        self.pdf_extractor = pdf_extractor
        self.session = session or requests.Session()
        self.metrics = metrics or CallMetrics()

        if not config.api_key:
            logger.warning("VERTESIA_API_KEY not set. Requests will be rejected.")

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.config.api_key or ""}',
            'Content-Type': 'application/json',
        }

    def _call(self, method: str, endpoint: str, **kwargs) -> Any:
        """JSON API call; every transport or HTTP failure becomes TransportError."""
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.config.request_timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Vertesia API call failed for {endpoint}: {e}")
            raise TransportError(f"{method} {endpoint} failed: {e}") from e

        if not response.ok:
            logger.error(f"Vertesia API call failed for {endpoint}: {response.status_code} {response.reason}")
            raise TransportError(
                f"{method} {endpoint} failed: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{method} {endpoint} returned invalid JSON") from e

    def trigger(self, portfolio: Portfolio) -> Optional[str]:
        prompt = build_digest_prompt(portfolio, self.news)
        payload = {
            'type': 'conversation',
            'interaction': self.config.interaction,
            'data': {'task': prompt},
            'config': {
                'environment': self.config.environment_id,
                'model': self.config.model,
            },
        }
        logger.info(f"Triggering digest generation for {len(portfolio.holdings)} holdings")
        with self.metrics.track('trigger'):
            response = self._call('POST', '/execute/async', json=payload)

        job_id = None
        if isinstance(response, dict):
            job_id = response.get('runId') or response.get('workflowId') or response.get('id')
        if job_id:
            logger.info(f"Generation job started: {job_id}")
        else:
            logger.warning("Generation trigger returned no job id; document selection will rely on timestamps")
        return str(job_id) if job_id else None

    @staticmethod
    def _to_content_ref(obj: Dict) -> Optional[ContentRef]:
        """Map a raw object payload onto InlineContent / RemoteContent."""
        text = obj.get('text')
        if isinstance(text, str) and text.strip():
            return InlineContent(text)
        content = obj.get('content')
        if isinstance(content, dict) and content.get('source'):
            return RemoteContent(uri=content['source'], content_type=content.get('type'))
        if isinstance(content, str) and content.strip():
            return InlineContent(content)
        return None

    @classmethod
    def _to_document(cls, obj: Dict) -> DocumentMeta:
        properties = obj.get('properties') or {}
        return DocumentMeta(
            id=str(obj.get('id') or obj.get('_id') or ''),
            name=obj.get('name') or '',
            created_at=parse_timestamp(obj.get('created_at')),
            updated_at=parse_timestamp(obj.get('updated_at')),
            title=properties.get('title') or obj.get('title'),
            job_id=properties.get('run_id') or properties.get('workflow_run_id'),
            content=cls._to_content_ref(obj),
        )

    def list_documents(self, limit: int = 50) -> List[DocumentMeta]:
        with self.metrics.track('list_documents'):
            response = self._call('GET', '/objects', params={'limit': limit})
        items = response if isinstance(response, list) else (response or {}).get('objects', [])
        documents = []
        for obj in items:
            try:
                documents.append(self._to_document(obj))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable object {obj.get('id') if isinstance(obj, dict) else obj}: {e}")
        logger.debug(f"Listed {len(documents)} documents")
        return documents

    def _download_url(self, uri: str) -> str:
        if uri.startswith(('http://', 'https://')):
            return uri
        response = self._call('POST', '/objects/download-url', json={'file': uri, 'format': 'original'})
        url = response.get('url') if isinstance(response, dict) else None
        if not url:
            raise TransportError(f"No download URL returned for {uri}")
        return url

    def fetch_content(self, ref: ContentRef) -> str:
        if isinstance(ref, InlineContent):
            return ref.text

        with self.metrics.track('fetch_content'):
            url = self._download_url(ref.uri)
            try:
                response = self.session.get(url, timeout=self.config.request_timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.error(f"Download failed for {ref.uri}: {e}")
                raise TransportError(f"Download failed for {ref.uri}: {e}") from e

        content_type = (ref.content_type or response.headers.get('Content-Type') or '').lower()
        if 'pdf' in content_type or ref.uri.lower().endswith('.pdf'):
            if self.pdf_extractor is None:
                raise ContentError(f"{ref.uri} is a PDF and no text extractor is configured")
            return self.pdf_extractor(response.content)
        return response.text
