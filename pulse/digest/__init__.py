"""Digest generation orchestration."""

from .pipeline import DigestPipeline, GenerationResult, RunStatus, select_digest_document

__all__ = ["DigestPipeline", "GenerationResult", "RunStatus", "select_digest_document"]
