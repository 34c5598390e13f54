"""Remote digest generation and document access."""

from .protocol import DocumentSource, GenerationService
from .vertesia_client import VertesiaClient, build_digest_prompt

__all__ = ["DocumentSource", "GenerationService", "VertesiaClient", "build_digest_prompt"]
