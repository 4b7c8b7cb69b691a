"""Turns knowledge items into plain text for chunking."""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

from ..errors import ProviderError, ValidationError
from ..models import ExtractedDocument, KnowledgeItem, KnowledgeType

logger = logging.getLogger(__name__)

_STRUCTURAL_LINE = (
    re.compile(r"^\d{2}:\d{2}(:\d{2})?$"),  # timestamp
    re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+:$"),  # "First Last:"
    re.compile(r"^#{1,6}\s"),  # markdown header
    re.compile(r"^[-*•]\s"),  # list item
)


def clean_pdf_page(text: str) -> str:
    """Rejoin lines that pypdf splits mid-paragraph.

    Blank lines stay paragraph breaks; timestamps, speaker labels, headers
    and list items keep their own line.
    """
    paragraphs: list[str] = []
    current: list[str] = []

    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped:
            if current:
                paragraphs.append(" ".join(current))
                current = []
            continue

        if any(p.match(stripped) for p in _STRUCTURAL_LINE):
            if current:
                paragraphs.append(" ".join(current))
                current = []
            paragraphs.append(stripped)
        else:
            current.append(stripped)

    if current:
        paragraphs.append(" ".join(current))

    return "\n".join(paragraphs)


def _read_pdf(file_path: Path) -> ExtractedDocument:
    from pypdf import PdfReader

    reader = PdfReader(str(file_path))
    pages = []
    for page in reader.pages:
        text = page.extract_text()
        if text:
            pages.append(clean_pdf_page(text))

    info: dict[str, Any] = {}
    meta = reader.metadata
    if meta:
        info = {k.lstrip("/"): str(v) for k, v in meta.items()}

    return ExtractedDocument(
        text="\n\n".join(pages),
        metadata={"pages": len(reader.pages), "info": info},
    )


class DocumentLoader:
    """Extracts text from a knowledge item according to its type."""

    async def extract(self, item: KnowledgeItem) -> ExtractedDocument:
        if item.type == KnowledgeType.PDF:
            return await self._extract_pdf(item.content)
        if item.type == KnowledgeType.NOTE:
            return ExtractedDocument(text=item.content or "", metadata={})
        if item.type in (KnowledgeType.URL, KnowledgeType.ARTICLE):
            # Pages are not fetched; the address itself is indexed.
            return ExtractedDocument(text=f"URL: {item.content}", metadata={"url": item.content})
        raise ValidationError(f"Unsupported knowledge item type: {item.type}")

    async def _extract_pdf(self, file_path: str) -> ExtractedDocument:
        path = Path(file_path)
        try:
            doc = await asyncio.to_thread(_read_pdf, path)
        except Exception as e:
            raise ProviderError(f"Failed to process PDF: {e}", context={"path": str(path)}, cause=e) from e
        logger.debug("Extracted %d page(s) from %s", doc.metadata["pages"], path.name)
        return doc
