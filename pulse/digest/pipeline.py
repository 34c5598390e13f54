"""Digest generation orchestration.

Trigger remote generation, wait for the resulting document, fetch it and
parse it into a stored Digest. All failures are reported through a
:class:`GenerationResult`; the last good digest always stays in history.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional

from ..ai.protocol import DocumentSource, GenerationService
from ..config import GenerationConfig
from ..contracts import Digest, DocumentMeta, Portfolio
from ..data import DigestHistory, PortfolioStore
from ..errors import ContentError, NotFoundError, PulseError, ValidationError
from ..parsing import AggregationMode, TickerResolver, parse_digest
from ..parsing.extractor import DEFAULT_RESOLVER

logger = logging.getLogger(__name__)


class RunStatus(Enum):
    SUCCESS = "success"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    NO_PORTFOLIO = "no_portfolio"
    FAILED = "failed"


@dataclass
class GenerationResult:
    """Outcome of one generate/refresh request.

    ``digest`` is the new digest on success and the last good digest (if any)
    otherwise.
    """

    status: RunStatus
    digest: Optional[Digest] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (RunStatus.SUCCESS, RunStatus.UNCHANGED)


def is_digest_document(document: DocumentMeta) -> bool:
    return any("digest" in (text or "").lower() for text in (document.name, document.title))


def select_digest_document(documents: Iterable[DocumentMeta],
                           since: Optional[datetime] = None,
                           job_id: Optional[str] = None) -> DocumentMeta:
    """Pick the document to load.

    A document produced by ``job_id`` wins outright. Otherwise the newest
    digest-like document (created at or after ``since``, when given) is used.

    Raises:
        NotFoundError: If no document qualifies.
    """
    candidates = [d for d in documents if is_digest_document(d)]

    if job_id:
        correlated = [d for d in candidates if d.job_id == job_id]
        if correlated:
            candidates = correlated
            since = None

    if since is not None:
        candidates = [d for d in candidates if d.timestamp is not None and d.timestamp >= since]

    if not candidates:
        raise NotFoundError("No digest documents found")

    return max(candidates, key=lambda d: d.timestamp or datetime.min)


class DigestPipeline:
    """Runs one generation at a time against the remote collaborators.

    Example:
        >>> pipeline = DigestPipeline(store, client, client, history, config.generation)
        >>> result = pipeline.generate()
        >>> result.status
        <RunStatus.SUCCESS: 'success'>
    """

    def __init__(self,
                 portfolio_store: PortfolioStore,
                 generator: GenerationService,
                 documents: DocumentSource,
                 history: DigestHistory,
                 config: Optional[GenerationConfig] = None,
                 resolver: Optional[TickerResolver] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 sleep: Callable[[float], None] = time.sleep):
        self.portfolio_store = portfolio_store
        self.generator = generator
        self.documents = documents
        self.history = history
        self.config = config or GenerationConfig()
        self.resolver = resolver or DEFAULT_RESOLVER
        self.clock = clock
        self.sleep = sleep
        self.mode = AggregationMode(self.config.aggregation_mode)
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def generate(self) -> GenerationResult:
        """Trigger a new remote digest and load it once it appears."""
        return self._run("generate", self._generate)

    def refresh(self) -> GenerationResult:
        """Load the newest existing digest document without triggering a new one."""
        return self._run("refresh", self._refresh)

    def _run(self, operation: str, work: Callable[[], GenerationResult]) -> GenerationResult:
        if not self._lock.acquire(blocking=False):
            logger.info(f"Skipping {operation}: a generation is already in flight")
            return GenerationResult(RunStatus.SKIPPED, digest=self._last_good())

        try:
            return work()
        except ValidationError as e:
            logger.warning(f"Cannot {operation} digest: {e}")
            return self._failure(RunStatus.NO_PORTFOLIO, e)
        except PulseError as e:
            logger.error(f"Digest {operation} failed ({type(e).__name__}): {e}")
            return self._failure(RunStatus.FAILED, e)
        except Exception as e:
            logger.exception(f"Unexpected error during digest {operation}")
            return self._failure(RunStatus.FAILED, e)
        finally:
            self._lock.release()

    def _failure(self, status: RunStatus, error: Exception) -> GenerationResult:
        return GenerationResult(
            status,
            digest=self._last_good(),
            error=str(error),
            error_type=type(error).__name__,
        )

    def _last_good(self) -> Optional[Digest]:
        try:
            return self.history.latest()
        except Exception as e:
            logger.error(f"Could not read digest history: {e}")
            return None

    def _require_portfolio(self) -> Portfolio:
        portfolio = self.portfolio_store.load()
        if portfolio is None or not portfolio.holdings:
            raise ValidationError("No portfolio saved")
        return portfolio

    def _generate(self) -> GenerationResult:
        portfolio = self._require_portfolio()
        started_at = self.clock()
        job_id = self.generator.trigger(portfolio)
        document = self._await_document(job_id, started_at)
        digest = self._load(document, portfolio)
        return GenerationResult(RunStatus.SUCCESS, digest=digest)

    def _refresh(self) -> GenerationResult:
        portfolio = self._require_portfolio()
        document = select_digest_document(self.documents.list_documents())
        if self.history.has_document(document.id):
            logger.info(f"Document {document.id} already loaded; nothing new")
            return GenerationResult(RunStatus.UNCHANGED, digest=self.history.latest())
        digest = self._load(document, portfolio)
        return GenerationResult(RunStatus.SUCCESS, digest=digest)

    def _await_document(self, job_id: Optional[str], started_at: datetime) -> DocumentMeta:
        """Poll the document source until the triggered digest shows up.

        Raises:
            NotFoundError: If it does not appear within ``max_attempts`` polls
                or ``timeout_seconds``.
        """
        cfg = self.config
        since = started_at - timedelta(seconds=cfg.clock_skew_seconds)

        waited = 0.0
        if cfg.initial_delay_seconds > 0:
            logger.info(f"Waiting {cfg.initial_delay_seconds:g}s for generation to start")
            self.sleep(cfg.initial_delay_seconds)
            waited += cfg.initial_delay_seconds

        interval = cfg.poll_interval_seconds
        attempts = 0
        while attempts < cfg.max_attempts:
            attempts += 1
            try:
                document = select_digest_document(self.documents.list_documents(), since, job_id)
                logger.info(f"Digest document {document.id} ready after {attempts} polls")
                return document
            except NotFoundError:
                logger.debug(f"Digest not ready (poll {attempts}/{cfg.max_attempts})")

            if attempts >= cfg.max_attempts or waited + interval > cfg.timeout_seconds:
                break
            self.sleep(interval)
            waited += interval
            interval = min(interval * cfg.backoff_factor, cfg.max_poll_interval_seconds)

        raise NotFoundError(
            f"Digest document did not appear after {attempts} polls ({waited:.0f}s)"
        )

    def _load(self, document: DocumentMeta, portfolio: Portfolio) -> Digest:
        if document.content is None:
            raise ContentError(f"Document {document.id} has no content")

        text = self.documents.fetch_content(document.content) or ""
        if len(text.strip()) < self.config.min_content_length:
            raise ContentError(
                f"Document {document.id} content too short ({len(text.strip())} chars)"
            )

        exposures = {h.ticker: h.exposure for h in portfolio.holdings}
        digest = parse_digest(
            text,
            mode=self.mode,
            resolver=self.resolver.with_symbols(portfolio.tickers),
            exposure_lookup=exposures.get,
            generated_at=self.clock(),
            source_document_id=document.id,
        )
        if not digest.cards:
            raise ContentError(f"Document {document.id} produced no cards")

        self.history.add(digest)
        return digest
