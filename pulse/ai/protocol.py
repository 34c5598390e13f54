"""Interfaces for the remote collaborators the digest pipeline depends on."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..contracts import ContentRef, DocumentMeta, Portfolio


class GenerationService(ABC):
    """Starts a remote digest generation job."""

    @abstractmethod
    def trigger(self, portfolio: Portfolio) -> Optional[str]:
        """Fire the job. Returns a correlation/job id when the remote provides one."""


class DocumentSource(ABC):
    """Lists generated documents and resolves their content to text."""

    @abstractmethod
    def list_documents(self) -> List[DocumentMeta]:
        """Return metadata for the documents currently available."""

    @abstractmethod
    def fetch_content(self, ref: ContentRef) -> str:
        """Return the text behind ``ref`` (PDFs are converted by an extractor)."""
